from __future__ import annotations

import hashlib


def compute_bytes_digest(data: bytes, alg: str = "sha256") -> str:
    h = hashlib.new(alg)
    h.update(data)
    return h.hexdigest()


def compute_text_digest(text: str, alg: str = "sha256") -> str:
    return compute_bytes_digest(text.encode("utf-8"), alg=alg)

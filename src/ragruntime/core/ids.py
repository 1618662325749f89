from __future__ import annotations

import uuid


def deterministic_uuid(name: str, namespace: uuid.UUID = uuid.NAMESPACE_URL) -> str:
    """Generate a deterministic UUID5 from a stable name."""
    return str(uuid.uuid5(namespace, name))


def chunk_id(source_id: str, index: int) -> str:
    return f"{source_id}:chunk:{index}"

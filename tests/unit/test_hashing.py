from ragruntime.application.services.change_detection import hash_text
from ragruntime.core.hashing import compute_bytes_digest, compute_text_digest


def test_compute_bytes_digest_sha256() -> None:
    assert (
        compute_bytes_digest(b"abc")
        == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_text_digest_matches_utf8_bytes() -> None:
    assert compute_text_digest("café") == compute_bytes_digest("café".encode("utf-8"))
    assert hash_text("abc") == compute_bytes_digest(b"abc")
    assert hash_text("abc") != hash_text("abd")

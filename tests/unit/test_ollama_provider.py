from __future__ import annotations

import pytest

from ragruntime.core.errors import ProviderCallError
from ragruntime.infrastructure.vector.ollama_provider import OllamaProvider


class _FakeClient:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.requests: list[dict[str, object]] = []

    async def embed(self, *, model: str, input: list[str]) -> dict[str, object]:
        self.requests.append({"model": model, "input": list(input)})
        if self.fail:
            raise ConnectionError("connection refused")
        return {"model": model, "embeddings": [[0.5, 0.25, 0.0, 1.0] for _ in input]}


@pytest.mark.asyncio
async def test_learns_dimensions_from_first_response() -> None:
    client = _FakeClient()
    provider = OllamaProvider(client=client)

    assert provider.dimensions == 0
    vector = await provider.embed("hello")

    assert vector == [0.5, 0.25, 0.0, 1.0]
    assert provider.dimensions == 4
    assert client.requests == [{"model": "nomic-embed-text", "input": ["hello"]}]


@pytest.mark.asyncio
async def test_embed_batch_sends_one_request() -> None:
    client = _FakeClient()
    provider = OllamaProvider(model="mxbai-embed-large", dimensions=4, client=client)

    vectors = await provider.embed_batch(["a", "b", "c"])

    assert len(vectors) == 3
    assert len(client.requests) == 1
    assert await provider.embed_batch([]) == []


@pytest.mark.asyncio
async def test_rejects_empty_text() -> None:
    provider = OllamaProvider(client=_FakeClient())

    with pytest.raises(ProviderCallError):
        await provider.embed("  ")
    with pytest.raises(ProviderCallError):
        await provider.embed_batch(["ok", ""])


@pytest.mark.asyncio
async def test_client_errors_are_wrapped() -> None:
    provider = OllamaProvider(base_url="http://gpu-box:11434/", client=_FakeClient(fail=True))

    with pytest.raises(ProviderCallError, match="gpu-box:11434 "):
        await provider.embed("hello")

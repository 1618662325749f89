from __future__ import annotations

from collections.abc import Callable

from ragruntime.core.config import RagSettings
from ragruntime.core.errors import ConfigurationError
from ragruntime.domain.protocols import EmbeddingProvider, VectorStore
from ragruntime.infrastructure.vector.embeddings import EmbeddingConfig, SentenceTransformerProvider
from ragruntime.infrastructure.vector.memory_store import InMemoryVectorStore
from ragruntime.infrastructure.vector.ollama_provider import DEFAULT_OLLAMA_MODEL, OllamaProvider
from ragruntime.infrastructure.vector.openai_provider import DEFAULT_OPENAI_MODEL, OpenAIProvider
from ragruntime.infrastructure.vector.qdrant_store import QdrantVectorStore

ProviderFactory = Callable[[RagSettings], EmbeddingProvider]


def _sentence_transformers(settings: RagSettings) -> EmbeddingProvider:
    config = EmbeddingConfig(device=settings.embedding_device)
    if settings.embedding_model:
        config.model_name = settings.embedding_model
    return SentenceTransformerProvider(config)


def _ollama(settings: RagSettings) -> EmbeddingProvider:
    return OllamaProvider(
        model=settings.embedding_model or DEFAULT_OLLAMA_MODEL,
        base_url=settings.ollama_base_url,
    )


def _openai(settings: RagSettings) -> EmbeddingProvider:
    return OpenAIProvider(
        model=settings.embedding_model or DEFAULT_OPENAI_MODEL,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
    )


_PROVIDER_FACTORIES: dict[str, ProviderFactory] = {
    "sentence-transformers": _sentence_transformers,
    "ollama": _ollama,
    "openai": _openai,
}


def register_embedding_provider(provider_type: str, factory: ProviderFactory) -> None:
    """Make ``create_provider`` build ``factory(settings)`` for ``provider_type``.

    Registering an existing type replaces its factory.
    """
    key = provider_type.strip().lower()
    if not key:
        raise ConfigurationError("Provider type must not be empty")
    _PROVIDER_FACTORIES[key] = factory


def available_provider_types() -> list[str]:
    return sorted(_PROVIDER_FACTORIES)


def create_provider(settings: RagSettings) -> EmbeddingProvider:
    factory = _PROVIDER_FACTORIES.get(settings.embedding_provider.strip().lower())
    if factory is None:
        raise ConfigurationError(
            f"Unknown embedding provider: {settings.embedding_provider!r}. "
            f"Supported: {', '.join(available_provider_types())}"
        )
    return factory(settings)


def create_store(settings: RagSettings, *, in_memory: bool = False) -> VectorStore:
    if in_memory:
        return InMemoryVectorStore(distance=settings.distance)
    return QdrantVectorStore(
        storage_path=settings.qdrant_path,
        collection_name=settings.qdrant_collection,
        url=settings.qdrant_url,
        distance=settings.distance,
    )

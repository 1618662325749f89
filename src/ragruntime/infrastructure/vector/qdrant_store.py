from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from ragruntime.core.errors import StoreError
from ragruntime.core.ids import deterministic_uuid
from ragruntime.infrastructure.vector.distance import COSINE, DOT, L2, resolve_metric

logger = logging.getLogger(__name__)

ID_PAYLOAD_KEY = "chunk_id"


class QdrantVectorStore:
    """Vector store over a Qdrant collection.

    Qdrant point ids must be UUIDs, so each string id is mapped to a
    deterministic UUID and kept in the payload under ``chunk_id``. Qdrant
    reports similarity for cosine and dot collections; ``query`` converts
    those scores back to distances (lower is closer).
    """

    def __init__(
        self,
        *,
        storage_path: Path | None = None,
        collection_name: str | None = None,
        url: str | None = None,
        api_key: str | None = None,
        distance: str = COSINE,
        timeout_seconds: float | None = None,
        location: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.storage_path = storage_path
        self.server_url = (url or os.getenv("RAG_QDRANT_URL") or "").strip() or None
        self.collection_name = collection_name or os.getenv("RAG_QDRANT_COLLECTION") or "rag_chunks"
        self.api_key = api_key or os.getenv("RAG_QDRANT_API_KEY")
        self.distance = resolve_metric(distance)
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else 10.0
        self.location = location
        if self.server_url:
            self.backend_name = "qdrant-server"
        elif location:
            self.backend_name = "qdrant-memory"
        else:
            self.backend_name = "qdrant-local"
        self._client = client
        self._models = None
        self._ready_dimensions: int | None = None

    def ensure_collection(self, vector_size: int) -> None:
        if vector_size <= 0:
            raise ValueError("vector_size must be positive")
        client, models = self._client_and_models()

        try:
            exists = bool(client.collection_exists(collection_name=self.collection_name))
            if not exists:
                client.create_collection(
                    collection_name=self.collection_name,
                    vectors_config=models.VectorParams(size=vector_size, distance=self._qdrant_distance(models)),
                )
            else:
                info = client.get_collection(collection_name=self.collection_name)
        except Exception as exc:
            raise StoreError(f"Qdrant collection setup failed for '{self.collection_name}': {exc}") from exc

        if not exists:
            self._ready_dimensions = vector_size
            return

        configured_size = getattr(getattr(info, "config", None), "params", None)
        vectors_conf = getattr(configured_size, "vectors", None)
        configured_dim = getattr(vectors_conf, "size", None)
        if configured_dim is not None and int(configured_dim) != int(vector_size):
            raise StoreError(
                f"Qdrant collection '{self.collection_name}' has vector size {configured_dim}, "
                f"but embedder produced {vector_size}."
            )
        self._ready_dimensions = vector_size

    def upsert(self, id: str, vector: Sequence[float], metadata: Mapping[str, Any] | None = None) -> None:
        if self._ready_dimensions is None:
            self.ensure_collection(len(vector))
        client, models = self._client_and_models()
        payload = dict(metadata or {})
        payload[ID_PAYLOAD_KEY] = id
        try:
            client.upsert(
                collection_name=self.collection_name,
                wait=True,
                points=[models.PointStruct(id=deterministic_uuid(id), vector=list(vector), payload=payload)],
            )
        except Exception as exc:
            raise StoreError(f"Qdrant upsert failed for {id}: {exc}") from exc

    def query(
        self,
        vector: Sequence[float],
        k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[tuple[str, float]]:
        client, models = self._client_and_models()
        clauses = [
            models.FieldCondition(key=key, match=models.MatchValue(value=value))
            for key, value in (filter or {}).items()
        ]
        query_filter = models.Filter(must=clauses) if clauses else None
        try:
            if not client.collection_exists(collection_name=self.collection_name):
                return []
            response = client.query_points(
                collection_name=self.collection_name,
                query=list(vector),
                query_filter=query_filter,
                with_payload=True,
                with_vectors=False,
                limit=max(1, k),
            )
        except Exception as exc:
            raise StoreError(f"Qdrant query failed: {exc}") from exc

        out: list[tuple[str, float]] = []
        for hit in list(getattr(response, "points", []) or []):
            payload = dict(getattr(hit, "payload", {}) or {})
            point_id = str(payload.get(ID_PAYLOAD_KEY) or getattr(hit, "id", ""))
            out.append((point_id, self._score_to_distance(float(getattr(hit, "score", 0.0)))))
        return out

    def get(self, id: str) -> list[float] | None:
        client, _ = self._client_and_models()
        try:
            if not client.collection_exists(collection_name=self.collection_name):
                return None
            records = client.retrieve(
                collection_name=self.collection_name,
                ids=[deterministic_uuid(id)],
                with_vectors=True,
                with_payload=False,
            )
        except Exception as exc:
            raise StoreError(f"Qdrant retrieve failed for {id}: {exc}") from exc
        if not records:
            return None
        vector = getattr(records[0], "vector", None)
        if vector is None:
            return None
        return [float(x) for x in vector]

    def delete(self, id: str) -> None:
        client, models = self._client_and_models()
        try:
            client.delete(
                collection_name=self.collection_name,
                points_selector=models.PointIdsList(points=[deterministic_uuid(id)]),
                wait=True,
            )
        except Exception as exc:
            raise StoreError(f"Qdrant delete failed for {id}: {exc}") from exc

    def count_points(self) -> int:
        client, _ = self._client_and_models()
        try:
            if not client.collection_exists(collection_name=self.collection_name):
                return 0
            result = client.count(collection_name=self.collection_name, exact=True)
        except Exception as exc:
            raise StoreError(f"Qdrant count failed: {exc}") from exc
        return int(getattr(result, "count", 0))

    def _score_to_distance(self, score: float) -> float:
        if self.distance == COSINE:
            return 1.0 - score
        if self.distance == DOT:
            return -score
        return score

    def _qdrant_distance(self, models):
        if self.distance == L2:
            return models.Distance.EUCLID
        if self.distance == DOT:
            return models.Distance.DOT
        return models.Distance.COSINE

    def _client_and_models(self):
        if self._models is not None and self._client is not None:
            return self._client, self._models

        try:
            from qdrant_client import QdrantClient
            from qdrant_client.http import models
        except ImportError as exc:  # pragma: no cover - dependency guard
            raise RuntimeError(
                "Qdrant dependency is missing. Install with `pip install -e '.[vector]'`."
            ) from exc

        self._models = models
        if self._client is not None:
            return self._client, self._models

        if self.server_url:
            self._client = QdrantClient(url=self.server_url, api_key=self.api_key, timeout=self.timeout_seconds)
        elif self.location:
            self._client = QdrantClient(location=self.location)
        else:
            if self.storage_path is None:
                raise StoreError("Qdrant needs a server URL, a location or a local storage path.")
            target = self.storage_path.expanduser().resolve()
            target.mkdir(parents=True, exist_ok=True)
            self._client = QdrantClient(path=str(target))
        logger.debug("Opened %s collection %s", self.backend_name, self.collection_name)
        return self._client, self._models

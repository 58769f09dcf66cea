"""ChromaDB vector store holding the greenlist reference URLs."""

from __future__ import annotations

import hashlib
from pathlib import Path

import chromadb
from chromadb.config import Settings


def url_id(url: str) -> str:
    return hashlib.md5(url.encode("utf-8")).hexdigest()


class GreenlistStore:
    """ChromaDB-based store of approved reference URLs."""

    def __init__(
        self,
        persist_dir: str = "./data/chroma",
        collection_name: str = "greenlist",
        embedding_model: str = "all-MiniLM-L6-v2",
    ):
        self.persist_dir = persist_dir
        self.collection_name = collection_name
        self.embedding_model_name = embedding_model
        self._embedding_fn = None

        Path(persist_dir).mkdir(parents=True, exist_ok=True)
        self.client = chromadb.PersistentClient(
            path=persist_dir,
            settings=Settings(anonymized_telemetry=False),
        )

    @property
    def embedding_function(self):
        """Lazy-load sentence-transformers embedding function."""
        if self._embedding_fn is None:
            from chromadb.utils.embedding_functions import SentenceTransformerEmbeddingFunction
            self._embedding_fn = SentenceTransformerEmbeddingFunction(
                model_name=self.embedding_model_name,
            )
        return self._embedding_fn

    def get_or_create_collection(self) -> chromadb.Collection:
        return self.client.get_or_create_collection(
            name=self.collection_name,
            embedding_function=self.embedding_function,
            metadata={"hnsw:space": "cosine"},
        )

    def add_urls(self, urls: list[str], categories: list[str] | None = None) -> None:
        """Embed and upsert URLs, keyed by a hash of the URL."""
        if not urls:
            return
        categories = categories or [""] * len(urls)
        collection = self.get_or_create_collection()
        collection.upsert(
            documents=urls,
            metadatas=[{"category": c} for c in categories],
            ids=[url_id(u) for u in urls],
        )

    def query_urls(self, query_text: str, n_results: int = 10) -> list[dict]:
        """Return the nearest URLs as ``{"content", "distance"}`` rows."""
        collection = self.get_or_create_collection()
        result = collection.query(query_texts=[query_text], n_results=n_results)

        rows = []
        if result["documents"] and result["documents"][0]:
            distances = result.get("distances") or [[]]
            for i, doc in enumerate(result["documents"][0]):
                rows.append({
                    "content": doc,
                    "distance": distances[0][i] if i < len(distances[0]) else None,
                })
        return rows

    def count(self) -> int:
        return self.get_or_create_collection().count()

    def reset(self) -> None:
        """Delete the collection and recreate it."""
        try:
            self.client.delete_collection(self.collection_name)
        except Exception:
            # Collection may not exist on first run
            pass

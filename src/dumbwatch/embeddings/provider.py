"""Report text embedding using sentence-transformers."""

import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)


class EmbeddingProvider:
    """Embeds report texts. The model is loaded once, on first use."""

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "EmbeddingProvider":
        return cls(config.get("embedding_model", "sentence-transformers/all-MiniLM-L6-v2"))

    def _load_model(self):
        from sentence_transformers import SentenceTransformer
        return SentenceTransformer(self.model_name)

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            with self._lock:
                if self._model is None:
                    logger.info(f"Loading embedding model {self.model_name}")
                    self._model = self._load_model()
        return self._model

    def embed(self, text: str) -> list[float]:
        """Mean-pooled, L2-normalized embedding of `text`.

        Returns an empty list if the model fails; such reports are simply not
        eligible for clustering.
        """
        try:
            vector = self.model.encode(text, normalize_embeddings=True)
        except Exception as e:
            logger.error(f"Error generating embedding: {e}")
            return []
        return [float(v) for v in vector]

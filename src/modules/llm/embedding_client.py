import os
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np
from langchain_core.embeddings import Embeddings
from sentence_transformers import SentenceTransformer

# Instruction-aware models score better when the query side carries a task description.
INSTRUCTIONS = {
    "query_property": (
        "Instruct: Given a search phrase, retrieve relations and relation chains "
        "from an RDF knowledge graph that are relevant to it.\nQuery: {text}"
    ),
}


class EmbeddingClient:
    def __init__(
        self,
        provider: str = "sentence_transformers",
        model_name: str = "all-MiniLM-L6-v2",
        batch_size: Optional[int] = None,
        embeddings: Optional[Embeddings] = None,
        verbose: bool = True,
    ):
        """
        :param provider: 'sentence_transformers', 'huggingface' or 'ollama'
        :param model_name: e.g. 'all-MiniLM-L6-v2', 'nomic-embed-text'
        :param batch_size: texts per model call, defaults to EMBEDDING_BATCH_SIZE or 32
        :param embeddings: ready LangChain embeddings instance, overrides provider
        """
        self.provider = provider
        self.model_name = model_name
        self.batch_size = int(batch_size or os.getenv("EMBEDDING_BATCH_SIZE") or 32)
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        self.verbose = verbose
        self._sbert_model: Optional[SentenceTransformer] = None
        self._embeddings: Optional[Embeddings] = embeddings

    def _log(self, msg: str) -> None:
        if self.verbose:
            print(msg)

    def _ensure_model(self) -> None:
        if self._sbert_model is not None or self._embeddings is not None:
            return

        if self.provider == "sentence_transformers":
            self._log(f"Loading embedding model ({self.model_name})...")
            self._sbert_model = SentenceTransformer(self.model_name)
        elif self.provider == "huggingface":
            from langchain_huggingface import HuggingFaceEmbeddings

            self._log(f"Loading HuggingFace embeddings ({self.model_name})...")
            self._embeddings = HuggingFaceEmbeddings(model_name=self.model_name)
        elif self.provider == "ollama":
            from langchain_ollama import OllamaEmbeddings

            self._log(f"🔌 Connecting to local Ollama embeddings ({self.model_name})...")
            self._embeddings = OllamaEmbeddings(model=self.model_name)
        else:
            raise ValueError(f"Unsupported embedding provider: {self.provider}")

    def _format(self, texts: Sequence[str], instruction: Optional[str]) -> List[str]:
        if not instruction or instruction == "none":
            return list(texts)
        template = INSTRUCTIONS.get(instruction)
        if template is None:
            raise ValueError(f"Unknown instruction mode: {instruction}")
        return [template.format(text=t) for t in texts]

    def _encode(self, batch: List[str]) -> List[np.ndarray]:
        if self._sbert_model is not None:
            vectors = self._sbert_model.encode(batch, normalize_embeddings=True, convert_to_numpy=True)
            return [np.asarray(v, dtype=np.float32) for v in vectors]
        vectors = self._embeddings.embed_documents(batch)
        return [np.asarray(v, dtype=np.float32) for v in vectors]

    def iter_embeddings(
        self, texts: Sequence[str], instruction: Optional[str] = None
    ) -> Iterator[Tuple[str, np.ndarray]]:
        """Yields (original text, vector) pairs, one model call per batch."""
        texts = list(texts)
        if not texts:
            return
        self._ensure_model()
        formatted = self._format(texts, instruction)

        n_batches = (len(formatted) + self.batch_size - 1) // self.batch_size
        for b, i in enumerate(range(0, len(formatted), self.batch_size), start=1):
            batch = formatted[i : i + self.batch_size]
            originals = texts[i : i + self.batch_size]
            if n_batches > 1:
                self._log(f"Processing embedding batch {b}/{n_batches} ({len(batch)} texts)")
            vectors = self._encode(batch)
            for text, vec in zip(originals, vectors):
                yield text, vec

    def embed(self, texts: Sequence[str], instruction: Optional[str] = None) -> List[np.ndarray]:
        return [vec for _text, vec in self.iter_embeddings(texts, instruction=instruction)]

from __future__ import annotations

import time
from dataclasses import replace
from typing import Any, Dict, List, Sequence

import numpy as np
from sentence_transformers import util

from src.modules.knowledge_graph.kg_schema import KGPath, KGStep

DEPTH_BIAS_FACTOR = 0.15
QUERY_INSTRUCTION = "query_property"


class EmbeddingUnavailableError(RuntimeError):
    """Embeddings could not be produced for ranking."""


def step_text(step: KGStep) -> str:
    return f"{step.subject} {step.relation} {step.object}"


def raw_path_score(mean_similarity: float, depth: int, depth_bias_factor: float = DEPTH_BIAS_FACTOR) -> float:
    # Additive bonus shrinking with 1/depth, so shorter chains win at equal similarity.
    return float(mean_similarity) + depth_bias_factor / depth


def softmax(scores: Sequence[float]) -> np.ndarray:
    x = np.asarray(scores, dtype=np.float64)
    if x.size == 0:
        return x
    # Shifting by the max leaves the distribution unchanged and keeps exp() finite.
    e = np.exp(x - x.max())
    return e / e.sum()


def depth_order(paths: Sequence[KGPath]) -> List[KGPath]:
    return sorted(paths, key=lambda p: p.depth)


class PathRanker:
    """
    Ranks candidate paths by semantic relevance to a free-text phrase.

    Each path is scored by the mean cosine similarity between the phrase embedding and
    the embeddings of its step texts, plus depth_bias_factor / depth. Raw scores are
    softmax-normalized over all candidates before truncation to top_n.

    If embeddings cannot be obtained the ranker falls back to ascending depth and leaves
    scores unset; the exploration itself never fails because of the embedder.
    """

    def __init__(
        self,
        embedder: Any,
        depth_bias_factor: float = DEPTH_BIAS_FACTOR,
        batch_across_paths: bool = True,
        verbose: bool = False,
    ):
        self.embedder = embedder
        self.depth_bias_factor = float(depth_bias_factor)
        self.batch_across_paths = batch_across_paths
        self.verbose = verbose
        self._metrics: Dict[str, Any] = {
            "duration_seconds": 0.0,
            "embedding_calls": 0,
            "fallback": False,
        }

    def _reset_metrics(self) -> None:
        self._metrics["duration_seconds"] = 0.0
        self._metrics["embedding_calls"] = 0
        self._metrics["fallback"] = False

    def metrics(self) -> Dict[str, Any]:
        return dict(self._metrics)

    def rank(self, paths: Sequence[KGPath], relevance_query: str, top_n: int) -> List[KGPath]:
        if int(top_n) < 1:
            raise ValueError(f"top_n must be >= 1, got {top_n}")
        self._reset_metrics()
        if not paths:
            return []

        started = time.perf_counter()
        try:
            scored = self.score_paths(paths, relevance_query)
        except EmbeddingUnavailableError as e:
            if self.verbose:
                print(f"Embeddings unavailable ({e}), ranking paths by depth only.")
            self._metrics["fallback"] = True
            return depth_order(paths)[: int(top_n)]
        finally:
            self._metrics["duration_seconds"] = time.perf_counter() - started

        ranked = sorted(scored, key=lambda p: p.score, reverse=True)
        return ranked[: int(top_n)]

    def score_paths(self, paths: Sequence[KGPath], relevance_query: str) -> List[KGPath]:
        """Returns scored copies of all paths, in input order, with softmax probabilities as scores."""
        if not paths:
            return []

        query_vectors = self._embed([relevance_query], instruction=QUERY_INSTRUCTION)
        if not query_vectors:
            raise EmbeddingUnavailableError("empty embedding for relevance query")
        query_vec = self._as_vector(query_vectors[0])

        step_vectors = self._step_vectors(paths)

        raw_scores: List[float] = []
        for path, vectors in zip(paths, step_vectors):
            vectors = [self._as_vector(v) for v in vectors]
            if any(v.shape != query_vec.shape for v in vectors):
                raise EmbeddingUnavailableError(
                    f"step embeddings do not match the query embedding shape {query_vec.shape}"
                )
            mean_sim = self._mean_similarity(query_vec, vectors)
            raw_scores.append(raw_path_score(mean_sim, path.depth, self.depth_bias_factor))

        probs = softmax(raw_scores)
        return [replace(path, score=float(prob)) for path, prob in zip(paths, probs)]

    def _embed(self, texts: List[str], instruction: str = "none") -> List[np.ndarray]:
        self._metrics["embedding_calls"] += 1
        try:
            vectors = self.embedder.embed(texts, instruction=instruction)
        except Exception as e:
            raise EmbeddingUnavailableError(str(e) or e.__class__.__name__) from e
        return list(vectors or [])

    def _step_vectors(self, paths: Sequence[KGPath]) -> List[List[np.ndarray]]:
        if not self.batch_across_paths:
            out: List[List[np.ndarray]] = []
            for path in paths:
                texts = [step_text(s) for s in path.steps]
                vectors = self._embed(texts)
                if len(vectors) != len(texts):
                    raise EmbeddingUnavailableError(
                        f"expected {len(texts)} step embeddings, got {len(vectors)}"
                    )
                out.append(vectors)
            return out

        # One call for every step of every path, sliced back per path afterwards.
        texts = [step_text(s) for path in paths for s in path.steps]
        vectors = self._embed(texts)
        if len(vectors) != len(texts):
            raise EmbeddingUnavailableError(f"expected {len(texts)} step embeddings, got {len(vectors)}")

        out = []
        offset = 0
        for path in paths:
            n = len(path.steps)
            out.append(vectors[offset : offset + n])
            offset += n
        return out

    @staticmethod
    def _as_vector(vec: Any) -> np.ndarray:
        try:
            arr = np.asarray(vec, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise EmbeddingUnavailableError(f"non-numeric embedding: {e}") from e
        if arr.ndim != 1 or arr.size == 0:
            raise EmbeddingUnavailableError(f"expected a non-empty 1-D embedding, got shape {arr.shape}")
        return arr

    @staticmethod
    def _mean_similarity(query_vec: np.ndarray, step_vectors: List[np.ndarray]) -> float:
        if not step_vectors:
            return 0.0
        sims = util.cos_sim(np.asarray(query_vec, dtype=np.float32), np.stack(step_vectors).astype(np.float32))
        return float(sims.mean())

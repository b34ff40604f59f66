from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PathExplorationConfig:
    sparql_endpoint: str = "https://dbpedia.org/sparql"

    top_n: int = 20
    max_depth: int = 5
    depth_bias_factor: float = 0.15

    # Reference behavior lets chains repeat edges; set to drop them at query time.
    avoid_backtracking: bool = False
    batch_across_paths: bool = True

    embedding_provider: str = "sentence_transformers"
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_batch_size: int = 32

    sparql_timeout: float = 60.0
    rate_limit_delay: float = 0.1

    custom_prefixes: str = ""
    verbose: bool = True

    @classmethod
    def from_env(cls) -> "PathExplorationConfig":
        d = cls()
        return cls(
            sparql_endpoint=os.getenv("SPARQL_ENDPOINT") or d.sparql_endpoint,
            top_n=int(os.getenv("PATH_TOP_N") or d.top_n),
            max_depth=int(os.getenv("PATH_MAX_DEPTH") or d.max_depth),
            depth_bias_factor=float(os.getenv("DEPTH_BIAS_FACTOR") or d.depth_bias_factor),
            avoid_backtracking=_env_bool("PATH_AVOID_BACKTRACKING", d.avoid_backtracking),
            batch_across_paths=_env_bool("EMBEDDING_BATCH_ACROSS_PATHS", d.batch_across_paths),
            embedding_provider=os.getenv("EMBEDDING_PROVIDER") or d.embedding_provider,
            embedding_model=os.getenv("EMBEDDING_MODEL") or d.embedding_model,
            embedding_batch_size=int(os.getenv("EMBEDDING_BATCH_SIZE") or d.embedding_batch_size),
            sparql_timeout=float(os.getenv("SPARQL_TIMEOUT") or d.sparql_timeout),
            custom_prefixes=os.getenv("CUSTOM_PREFIXES") or d.custom_prefixes,
            verbose=_env_bool("PATH_VERBOSE", d.verbose),
        )

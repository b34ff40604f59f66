"""
Shared test fixtures for the path exploration test suite.
"""

import os
import re
import sys
from typing import List, Optional, Sequence

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.modules.knowledge_graph.kg_schema import BoundTerm, KGPath, KGStep, KGTriple
from src.modules.knowledge_graph.kg_store import KGStore


EX = "http://example.org/"
A, B, C, D = EX + "A", EX + "B", EX + "C", EX + "D"
P1, P2, P3, P4 = EX + "p1", EX + "p2", EX + "p3", EX + "p4"


# =============================================================================
# Test Embedders
# =============================================================================

class KeywordEmbedder:
    """
    Deterministic embedder: one dimension per vocabulary token plus a small constant
    dimension, so texts sharing tokens are similar and no vector is zero.
    """

    def __init__(self, vocab: Sequence[str] = ("p1", "p2", "p3", "p4")):
        self.vocab = list(vocab)
        self.calls: List[List[str]] = []
        self.instructions: List[Optional[str]] = []

    def vector(self, text: str) -> np.ndarray:
        tokens = re.findall(r"[a-z0-9]+", text.lower())
        counts = [float(tokens.count(v)) for v in self.vocab]
        return np.asarray(counts + [0.1], dtype=np.float32)

    def embed(self, texts, instruction=None):
        self.calls.append(list(texts))
        self.instructions.append(instruction)
        return [self.vector(t) for t in texts]


class FailingEmbedder:
    def __init__(self, exc: Exception = None):
        self.exc = exc or ConnectionError("embedding service down")
        self.calls = 0

    def embed(self, texts, instruction=None):
        self.calls += 1
        raise self.exc


class EmptyEmbedder:
    def embed(self, texts, instruction=None):
        return []


# =============================================================================
# Helpers
# =============================================================================

def make_path(*steps) -> KGPath:
    """make_path((A, P1, D)) -> KGPath with one step."""
    kg_steps = tuple(KGStep(subject=s, relation=r, object=o) for s, r, o in steps)
    return KGPath(depth=len(kg_steps), steps=kg_steps)


def uri(value: str) -> BoundTerm:
    return BoundTerm(value=value, kind="uri")


def literal(value) -> BoundTerm:
    return BoundTerm(value=str(value), kind="literal")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def keyword_embedder():
    return KeywordEmbedder()


@pytest.fixture
def sample_paths():
    """The three A -> D paths of the reference scenario."""
    return [
        make_path((A, P1, D)),
        make_path((A, P2, B), (B, P3, D)),
        make_path((A, P2, B), (B, P4, C), (C, P3, D)),
    ]


@pytest.fixture
def sample_kg():
    """Graph with exactly the reference scenario's chains from A to D."""
    kg = KGStore()
    kg.add_triples(
        [
            KGTriple(subject=A, relation=P1, object=D),
            KGTriple(subject=A, relation=P2, object=B),
            KGTriple(subject=B, relation=P3, object=D),
            KGTriple(subject=B, relation=P4, object=C),
            KGTriple(subject=C, relation=P3, object=D),
        ]
    )
    return kg


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that need a live endpoint or model download"
    )

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class KGTriple:
    # Stored fact of the local graph: a directed, labeled edge plus provenance.
    subject: str
    relation: str
    object: str
    source: str = ""
    meta: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class KGStep:
    # Single hop of a path: subject --relation--> object.
    subject: str
    relation: str
    object: str


@dataclass(frozen=True)
class KGPath:
    # Relation chain from source to target. Only the score is assigned after parsing,
    # and ranking hands out scored copies instead of mutating the parsed path.
    depth: int
    steps: Tuple[KGStep, ...]
    score: Optional[float] = None


@dataclass
class PathTreeNode:
    uri: str
    is_target: bool = False
    children: Dict[str, "PathTreeNode"] = field(default_factory=dict)


class BoundTerm(BaseModel):
    """
    One variable binding of an evaluator result row.

    Mirrors the SPARQL JSON results term layout, {"type": "uri", "value": "..."},
    so endpoint payloads validate directly.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    value: str
    kind: str = Field(default="uri", alias="type")


BindingRow = Dict[str, BoundTerm]


def row_key(row: BindingRow) -> Tuple[Tuple[str, str, str], ...]:
    # Order-independent identity of a row, used for DISTINCT semantics.
    return tuple(sorted((var, term.value, term.kind) for var, term in row.items()))

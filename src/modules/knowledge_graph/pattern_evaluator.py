from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Sequence

from src.modules.knowledge_graph.kg_schema import BindingRow

if TYPE_CHECKING:
    from src.modules.path_exploration.path_query_builder import PathQuery


class PatternEvaluationError(RuntimeError):
    """The evaluator rejected a query or could not be reached."""


class PatternEvaluator(ABC):
    # Whether source and target must be valid IRIs before a query is built.
    requires_iris: bool = True

    @abstractmethod
    def evaluate(self, query: "PathQuery", sources: Sequence[str] = ()) -> List[BindingRow]:
        """
        Evaluate a path query and return duplicate-free binding rows ordered by ?depth.

        Rows bind ?depth plus ?p1..?pd and ?n1..?n(d-1) for their own hop count d.
        """
        raise NotImplementedError

# src/modules/knowledge_graph/kg_path_service.py

from typing import Dict, Iterator, List, Sequence, Tuple

import networkx as nx

from src.modules.knowledge_graph.kg_schema import BindingRow, BoundTerm, KGStep
from src.modules.knowledge_graph.kg_store import KGStore
from src.modules.knowledge_graph.pattern_evaluator import PatternEvaluator


class KGPathService(PatternEvaluator):
    """
    Evaluates path queries against the in-memory KGStore.

    Produces the same rows a SPARQL endpoint returns for the query text: for every hop
    count d in 1..max_depth, all directed walks of exactly d edges from source to target,
    tagged with ?depth. Walks may revisit nodes and edges unless the query asks to avoid
    backtracking.
    """

    # Local ids are matched as stored, so they need not be IRIs.
    requires_iris = False

    def __init__(self, kg: KGStore):
        self.kg = kg

    def evaluate(self, query, sources: Sequence[str] = ()) -> List[BindingRow]:
        source, target = query.source, query.target
        if source not in self.kg.g or target not in self.kg.g:
            return []

        dist = self._distances_to(target, query.max_depth)
        rows: List[BindingRow] = []
        for depth in range(1, query.max_depth + 1):
            for steps in self._walks(source, target, depth, dist, query.avoid_backtracking):
                rows.append(self._steps_to_row(steps))
        return rows

    def _distances_to(self, target: str, cutoff: int) -> Dict[str, int]:
        # Hops needed from each node to reach the target, following edge direction.
        reverse = self.kg.g.reverse(copy=False)
        return dict(nx.single_source_shortest_path_length(reverse, target, cutoff=cutoff))

    def _walks(
        self,
        source: str,
        target: str,
        depth: int,
        dist: Dict[str, int],
        avoid_backtracking: bool,
    ) -> Iterator[List[KGStep]]:
        if dist.get(source, depth + 1) > depth:
            return

        # Distinct (relation, object) pairs per node; parallel edges are already merged by key.
        stack: List[Tuple[str, List[KGStep]]] = [(source, [])]
        while stack:
            node, steps = stack.pop()
            remaining = depth - len(steps)
            if remaining == 0:
                if node == target:
                    yield steps
                continue

            children: List[Tuple[str, List[KGStep]]] = []
            for rel, obj in self.kg.out_edges(node):
                if dist.get(obj, remaining) > remaining - 1:
                    continue
                step = KGStep(subject=node, relation=rel, object=obj)
                if avoid_backtracking and step in steps:
                    continue
                children.append((obj, steps + [step]))

            # Reversed so the stack pops children in insertion order.
            stack.extend(reversed(children))

    @staticmethod
    def _steps_to_row(steps: List[KGStep]) -> BindingRow:
        depth = len(steps)
        row: BindingRow = {}
        for rank, step in enumerate(steps, start=1):
            row[f"p{rank}"] = BoundTerm(value=step.relation, kind="uri")
            if rank < depth:
                row[f"n{rank}"] = BoundTerm(value=step.object, kind="uri")
        row["depth"] = BoundTerm(value=str(depth), kind="literal")
        return row

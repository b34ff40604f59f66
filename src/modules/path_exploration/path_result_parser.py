from typing import Iterable, List, Optional

from src.modules.knowledge_graph.kg_schema import BindingRow, KGPath, KGStep


def _bound_value(row: BindingRow, var: str) -> Optional[str]:
    term = row.get(var)
    if term is None:
        return None
    value = (term.value or "").strip()
    return value or None


def _parse_depth(row: BindingRow) -> Optional[int]:
    raw = _bound_value(row, "depth")
    if raw is None:
        return None
    try:
        depth = int(raw)
    except ValueError:
        return None
    return depth if depth >= 1 else None


class PathResultParser:
    """
    Rebuilds paths from evaluator rows for one (source, target) pair.

    Row variables are plain names (depth, p1, n1, ...). The last hop always ends at the
    fixed target, so only ranks below the row's depth need an ?n binding. A row missing
    any binding its depth requires is skipped.
    """

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target

    def parse(self, rows: Iterable[BindingRow]) -> List[KGPath]:
        paths: List[KGPath] = []
        for row in rows:
            path = self.parse_row(row)
            if path is not None:
                paths.append(path)
        return paths

    def parse_row(self, row: BindingRow) -> Optional[KGPath]:
        depth = _parse_depth(row)
        if depth is None:
            return None

        steps: List[KGStep] = []
        current = self.source
        for rank in range(1, depth + 1):
            relation = _bound_value(row, f"p{rank}")
            nxt = _bound_value(row, f"n{rank}") if rank < depth else self.target
            if relation is None or nxt is None:
                return None
            steps.append(KGStep(subject=current, relation=relation, object=nxt))
            current = nxt

        return KGPath(depth=depth, steps=tuple(steps))

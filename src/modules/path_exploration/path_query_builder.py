from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple
from urllib.parse import quote

_IRI_FORBIDDEN = re.compile(r'[\s<>"{}|^`\\]')
_IRI_SAFE = ":/?#[]@!$&'()*+,;=%~"

SOURCE_VAR = "?source"
TARGET_VAR = "?target"
DEPTH_VAR = "?depth"


def relation_var(rank: int) -> str:
    return f"?p{rank}"


def node_var(rank: int) -> str:
    return f"?n{rank}"


def to_iri(uri: str, strict: bool = True) -> str:
    # Wrap an identifier as an IRI reference. Characters that would break out of <...> are
    # rejected in strict mode and percent-encoded otherwise.
    u = (uri or "").strip()
    if not u:
        raise ValueError(f"Not a valid IRI: {uri!r}")
    if _IRI_FORBIDDEN.search(u):
        if strict:
            raise ValueError(f"Not a valid IRI: {uri!r}")
        u = quote(u, safe=_IRI_SAFE)
    return f"<{u}>"


@dataclass(frozen=True)
class HopPattern:
    # Sub-pattern for exactly `depth` edges between ?source and ?target.
    depth: int
    triples: Tuple[Tuple[str, str, str], ...]
    filters: Tuple[str, ...]
    projection: Tuple[str, ...]

    @property
    def intermediate_vars(self) -> Tuple[str, ...]:
        return tuple(v for v in self.projection if v.startswith("?n"))

    def to_sparql(self, values_clause: str, indent: str = "  ") -> str:
        inner = indent * 3
        lines = [
            f"{indent}{{",
            f"{indent * 2}SELECT {' '.join(self.projection)} ({self.depth} AS {DEPTH_VAR}) WHERE {{",
            f"{inner}{values_clause}",
        ]
        lines.extend(f"{inner}{s} {p} {o} ." for s, p, o in self.triples)
        lines.extend(f"{inner}{f}" for f in self.filters)
        lines.append(f"{indent * 2}}}")
        lines.append(f"{indent}}}")
        return "\n".join(lines)


@dataclass(frozen=True)
class PathQuery:
    source: str
    target: str
    max_depth: int
    avoid_backtracking: bool
    patterns: Tuple[HopPattern, ...]
    text: str


class PathQueryBuilder:
    """
    Builds one SPARQL request that enumerates every relation chain of 1..max_depth hops
    from a source to a target entity.

    Each hop count gets its own sub-select tagged with (d AS ?depth); the sub-selects are
    combined with UNION, projected DISTINCT and ordered by ?depth. Chains may revisit
    entities and edges unless avoid_backtracking is set, in which case every hop must
    differ from all earlier hops of the same chain in at least one of subject, relation
    or object.

    With strict_iris disabled, identifiers that are not valid IRIs (local graph ids with
    spaces, for instance) are percent-encoded in the query text instead of rejected; the
    PathQuery keeps the raw identifiers.
    """

    def __init__(self, avoid_backtracking: bool = False, strict_iris: bool = True):
        self.avoid_backtracking = avoid_backtracking
        self.strict_iris = strict_iris

    def build(self, source: str, target: str, max_depth: int = 5) -> PathQuery:
        if int(max_depth) < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}")
        max_depth = int(max_depth)

        source_iri = to_iri(source, self.strict_iris)
        target_iri = to_iri(target, self.strict_iris)
        values_clause = f"VALUES ({SOURCE_VAR} {TARGET_VAR}) {{ ({source_iri} {target_iri}) }}"
        patterns = tuple(self._hop_pattern(d) for d in range(1, max_depth + 1))

        outer_vars: List[str] = []
        for i in range(1, max_depth + 1):
            outer_vars.append(relation_var(i))
            if i < max_depth:
                outer_vars.append(node_var(i))
        outer_vars.append(DEPTH_VAR)

        unions = "\n  UNION\n".join(p.to_sparql(values_clause) for p in patterns)
        text = f"SELECT DISTINCT {' '.join(outer_vars)}\nWHERE {{\n{unions}\n}}\nORDER BY {DEPTH_VAR}"

        return PathQuery(
            source=source.strip(),
            target=target.strip(),
            max_depth=max_depth,
            avoid_backtracking=self.avoid_backtracking,
            patterns=patterns,
            text=text,
        )

    def _hop_pattern(self, depth: int) -> HopPattern:
        # Chain nodes: ?source, ?n1 .. ?n(depth-1), ?target. Depth 1 has no intermediate node.
        nodes = [SOURCE_VAR] + [node_var(i) for i in range(1, depth)] + [TARGET_VAR]
        triples = tuple((nodes[i - 1], relation_var(i), nodes[i]) for i in range(1, depth + 1))

        projection: List[str] = []
        for i in range(1, depth + 1):
            projection.append(relation_var(i))
            if i < depth:
                projection.append(node_var(i))

        filters: List[str] = []
        if self.avoid_backtracking:
            for i in range(1, depth + 1):
                for j in range(i + 1, depth + 1):
                    si, pi, oi = triples[i - 1]
                    sj, pj, oj = triples[j - 1]
                    filters.append(f"FILTER({si} != {sj} || {pi} != {pj} || {oi} != {oj})")

        return HopPattern(
            depth=depth,
            triples=triples,
            filters=tuple(filters),
            projection=tuple(projection),
        )

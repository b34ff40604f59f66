import json
import re
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

import networkx as nx

from src.modules.knowledge_graph.kg_schema import KGTriple

_WS = re.compile(r"\s+")


def _norm_id(s: str) -> str:
    # Normalize whitespace and non-breaking spaces, preserving casing since identifiers are IRIs.
    s = (s or "").strip()
    s = s.replace("\u00a0", " ")
    s = _WS.sub(" ", s).strip()
    return s


def _dedup_preserve_order(xs: List[str]) -> List[str]:
    out: List[str] = []
    seen = set()
    for x in xs:
        if x in seen:
            continue
        seen.add(x)
        out.append(x)
    return out


class KGStore:
    def __init__(self):
        # MultiDiGraph supports multiple relations (keys) between the same node pair.
        self.g = nx.MultiDiGraph()

    def stats(self) -> Dict[str, int]:
        return {"nodes": self.g.number_of_nodes(), "edges": self.g.number_of_edges()}

    def out_edges(self, node: str) -> List[Tuple[str, str]]:
        # Outgoing (relation, object) pairs in insertion order.
        if node not in self.g:
            return []
        return [(str(key), str(v)) for _u, v, key in self.g.out_edges(node, keys=True)]

    def add_triples(self, triples: Iterable[KGTriple]) -> int:
        # Insert triples, merging repeated observations of the same edge under one relation key.
        added = 0
        for t in triples:
            u = _norm_id(t.subject)
            v = _norm_id(t.object)
            rel = _norm_id(t.relation)
            if not u or not v or not rel:
                continue

            src = _norm_id(t.source)
            meta = t.meta if isinstance(t.meta, dict) else {}

            if self.g.has_edge(u, v, key=rel):
                data = self.g[u][v][rel]
                sources = list(data.get("sources") or [])
                if src:
                    sources.append(src)
                data["sources"] = _dedup_preserve_order(sources)
                if meta:
                    metas = list(data.get("metas") or [])
                    metas.append(meta)
                    data["metas"] = metas
            else:
                self.g.add_edge(
                    u,
                    v,
                    key=rel,
                    relation=rel,
                    sources=[src] if src else [],
                    metas=[meta] if meta else [],
                )
                added += 1
        return added

    def save_jsonl(self, path: Path) -> None:
        # Write one record per edge.
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            for u, v, key, data in self.g.edges(keys=True, data=True):
                rec = {
                    "subject": u,
                    "relation": str(key),
                    "object": v,
                    "sources": list(data.get("sources") or []),
                    "metas": list(data.get("metas") or []),
                }
                f.write(json.dumps(rec, ensure_ascii=False) + "\n")

    def load_jsonl(self, path: Path, *, ignore_bad_lines: bool = True) -> None:
        # Replace the graph with the contents of a JSONL file, tolerating partial writes when configured.
        self.g.clear()

        if not path.exists():
            return

        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue

                try:
                    rec = json.loads(line)
                except json.JSONDecodeError:
                    if ignore_bad_lines:
                        continue
                    raise

                if not isinstance(rec, dict):
                    continue

                sources = [str(s) for s in (rec.get("sources") or []) if s]
                if rec.get("source"):
                    sources.append(str(rec["source"]))
                metas = [m for m in (rec.get("metas") or []) if isinstance(m, dict)]

                triples = [
                    KGTriple(
                        subject=str(rec.get("subject", "") or ""),
                        relation=str(rec.get("relation", "") or ""),
                        object=str(rec.get("object", "") or ""),
                        source=src,
                        meta=meta,
                    )
                    for src, meta in _zip_provenance(sources, metas)
                ]
                self.add_triples(triples)


def _zip_provenance(sources: List[str], metas: List[dict]) -> List[Tuple[str, dict]]:
    # Pair up provenance entries so every source and meta of a record survives the reload.
    n = max(1, len(sources), len(metas))
    out: List[Tuple[str, dict]] = []
    for i in range(n):
        src = sources[i] if i < len(sources) else ""
        meta = metas[i] if i < len(metas) else {}
        out.append((src, meta))
    return out

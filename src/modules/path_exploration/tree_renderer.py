import math
from typing import Dict, List, Optional, Tuple

from src.modules.knowledge_graph.kg_schema import PathTreeNode
from src.modules.knowledge_graph.prefix_manager import PrefixManager

TARGET_MARKER = " ★"
UNREACHABLE = math.inf

# Branches below the root line start one indentation step in.
ROOT_INDENT = "    "


def min_depth_to_target(node: PathTreeNode, cache: Optional[Dict[int, float]] = None) -> float:
    # 0 for a target node, 1 + best child otherwise, inf when no target is below.
    if cache is not None and id(node) in cache:
        return cache[id(node)]

    if node.is_target:
        depth = 0.0
    else:
        best = UNREACHABLE
        for child in node.children.values():
            best = min(best, min_depth_to_target(child, cache))
        depth = best + 1 if best != UNREACHABLE else UNREACHABLE

    if cache is not None:
        cache[id(node)] = depth
    return depth


class TreeRenderer:
    def __init__(self, prefix_manager: Optional[PrefixManager] = None):
        self.prefix_manager = prefix_manager

    def render(
        self,
        root: PathTreeNode,
        source: str,
        target: str,
        selected_count: int,
        total_count: int,
    ) -> str:
        output = f"# Path Tree: {source} → {target}\n\n"
        output += f"Showing top {selected_count} most relevant paths (from {total_count} found):\n\n"
        output += "```\n"
        output += self.render_tree(root)
        output += "```\n"

        if self.prefix_manager is None:
            return output
        return self.prefix_manager.compress_text_with_prefixes(output)

    def render_tree(self, root: PathTreeNode) -> str:
        marker = TARGET_MARKER if root.is_target else ""
        lines = [f"{root.uri}{marker}"]
        self._render_children(root, ROOT_INDENT, lines, {})
        return "\n".join(lines) + "\n"

    def _ordered_children(self, node: PathTreeNode, cache: Dict[int, float]) -> List[Tuple[str, PathTreeNode]]:
        # sorted() is stable, so equally close branches keep insertion order.
        return sorted(node.children.items(), key=lambda item: min_depth_to_target(item[1], cache))

    def _render_children(self, node: PathTreeNode, prefix: str, lines: List[str], cache: Dict[int, float]) -> None:
        children = self._ordered_children(node, cache)
        for i, (relation, child) in enumerate(children):
            is_last = i == len(children) - 1
            lines.append(f"{prefix}{'└── ' if is_last else '├── '}[{relation}]")

            edge_prefix = prefix + ("    " if is_last else "│   ")
            marker = TARGET_MARKER if child.is_target else ""
            lines.append(f"{edge_prefix}└── {child.uri}{marker}")

            self._render_children(child, edge_prefix + "    ", lines, cache)

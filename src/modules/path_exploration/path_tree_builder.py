from typing import Sequence

from src.modules.knowledge_graph.kg_schema import KGPath, PathTreeNode


class PathTreeBuilder:
    """
    Merges paths into a prefix tree rooted at the source entity.

    Children are keyed by relation, so paths sharing a relation-labeled prefix share a
    branch. A node's uri and is_target are fixed when it is first created: if a later
    path reaches the same relation key with a different entity, the first one is kept.
    Paths are inserted shortest first.
    """

    def build(self, paths: Sequence[KGPath], source: str, target: str) -> PathTreeNode:
        root = PathTreeNode(uri=source, is_target=source == target)

        for path in sorted(paths, key=lambda p: p.depth):
            node = root
            for step in path.steps:
                child = node.children.get(step.relation)
                if child is None:
                    child = PathTreeNode(uri=step.object, is_target=step.object == target)
                    node.children[step.relation] = child
                node = child

        return root

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from src.modules.knowledge_graph.kg_schema import KGPath, PathTreeNode
from src.modules.knowledge_graph.pattern_evaluator import PatternEvaluationError, PatternEvaluator
from src.modules.knowledge_graph.prefix_manager import PrefixManager
from src.modules.path_exploration.exploration_config import PathExplorationConfig
from src.modules.path_exploration.path_query_builder import PathQuery, PathQueryBuilder
from src.modules.path_exploration.path_ranker import PathRanker
from src.modules.path_exploration.path_result_parser import PathResultParser
from src.modules.path_exploration.path_tree_builder import PathTreeBuilder
from src.modules.path_exploration.tree_renderer import TreeRenderer


@dataclass
class PathExplorationRun:
    source: str
    target: str
    relevance_query: str

    query: PathQuery
    paths: List[KGPath]
    ranked: List[KGPath]
    tree: Optional[PathTreeNode]


class PathExplorationService:
    """
    Finds relation chains between two entities and renders the most relevant ones:
    - one UNION query for all hop counts up to max_depth
    - rows parsed into paths, ranked against the relevance phrase
    - top paths merged into a prefix tree and rendered as text
    """

    def __init__(
        self,
        evaluator: PatternEvaluator,
        embedder: Any,
        config: Optional[PathExplorationConfig] = None,
        prefix_manager: Optional[PrefixManager] = None,
    ):
        self.config = config or PathExplorationConfig()
        self.evaluator = evaluator

        self.query_builder = PathQueryBuilder(
            avoid_backtracking=self.config.avoid_backtracking,
            strict_iris=evaluator.requires_iris,
        )
        self.ranker = PathRanker(
            embedder,
            depth_bias_factor=self.config.depth_bias_factor,
            batch_across_paths=self.config.batch_across_paths,
            verbose=self.config.verbose,
        )
        self.tree_builder = PathTreeBuilder()
        self.renderer = TreeRenderer(prefix_manager=prefix_manager)

    def _validate(self, top_n: int, max_depth: int) -> None:
        if int(top_n) < 1:
            raise ValueError(f"top_n must be >= 1, got {top_n}")
        if int(max_depth) < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}")

    def explore_paths(
        self,
        source_uri: str,
        target_uri: str,
        relevance_query: str,
        top_n: Optional[int] = None,
        max_depth: Optional[int] = None,
        sources: Optional[Sequence[str]] = None,
    ) -> PathExplorationRun:
        """
        Structured variant of explore(). Raises PatternEvaluationError when the evaluator
        fails and ValueError for invalid arguments.
        """
        top_n = self.config.top_n if top_n is None else top_n
        max_depth = self.config.max_depth if max_depth is None else max_depth
        self._validate(top_n, max_depth)

        query = self.query_builder.build(source_uri, target_uri, max_depth)
        source, target = query.source, query.target

        if sources is None:
            sources = [self.config.sparql_endpoint] if self.config.sparql_endpoint else []
        rows = self.evaluator.evaluate(query, sources)

        paths = PathResultParser(source, target).parse(rows)
        if not paths:
            return PathExplorationRun(
                source=source,
                target=target,
                relevance_query=relevance_query,
                query=query,
                paths=[],
                ranked=[],
                tree=None,
            )

        ranked = self.ranker.rank(paths, relevance_query, top_n)
        tree = self.tree_builder.build(ranked, source, target)

        return PathExplorationRun(
            source=source,
            target=target,
            relevance_query=relevance_query,
            query=query,
            paths=paths,
            ranked=ranked,
            tree=tree,
        )

    def explore(
        self,
        source_uri: str,
        target_uri: str,
        relevance_query: str,
        top_n: int = 20,
        max_depth: int = 5,
        sources: Optional[Sequence[str]] = None,
    ) -> str:
        try:
            run = self.explore_paths(
                source_uri,
                target_uri,
                relevance_query,
                top_n=top_n,
                max_depth=max_depth,
                sources=sources,
            )
        except PatternEvaluationError as e:
            if self.config.verbose:
                print(f"❌ Error finding paths: {e}")
            return f"Error finding paths: {e}"

        if run.tree is None:
            return f"No paths found between:\n- {run.source}\n- {run.target}"

        return self.renderer.render(run.tree, run.source, run.target, len(run.ranked), len(run.paths))

import argparse
from pathlib import Path

from dotenv import load_dotenv

from src.modules.knowledge_graph.kg_path_service import KGPathService
from src.modules.knowledge_graph.kg_store import KGStore
from src.modules.knowledge_graph.prefix_manager import PrefixManager
from src.modules.knowledge_graph.sparql_client import SparqlClient
from src.modules.llm.embedding_client import EmbeddingClient
from src.modules.path_exploration.exploration_config import PathExplorationConfig
from src.modules.path_exploration.path_exploration_service import PathExplorationService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find and rank relation paths between two knowledge graph entities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py dbr:Steve_Jobs dbr:Apple_Inc. --query "business relationships"
  python main.py dbr:Barack_Obama dbr:United_States --query occupation --max-depth 2
  python main.py ex:A ex:D --query "supply chain" --kg-file data/kg.jsonl
        """,
    )
    parser.add_argument("source", help="Source entity IRI or prefixed name")
    parser.add_argument("target", help="Target entity IRI or prefixed name")
    parser.add_argument("--query", required=True, help="Free-text phrase the paths are ranked against")
    parser.add_argument("--top-n", type=int, default=None, help="Number of paths to keep (default: 20)")
    parser.add_argument("--max-depth", type=int, default=None, help="Maximum hop count (default: 5)")
    parser.add_argument("--endpoint", default=None, help="SPARQL endpoint URL (default: SPARQL_ENDPOINT or DBpedia)")
    parser.add_argument("--kg-file", type=Path, default=None, help="Explore a local JSONL graph instead of an endpoint")
    parser.add_argument(
        "--provider",
        choices=["sentence_transformers", "huggingface", "ollama"],
        default=None,
        help="Embedding provider (default: sentence_transformers)",
    )
    parser.add_argument("--model", default=None, help="Embedding model name")
    parser.add_argument("--avoid-backtracking", action="store_true", help="Drop chains that repeat an edge")
    parser.add_argument("--quiet", action="store_true", help="Only print the rendered tree")
    return parser


def main():
    """Main execution function"""

    load_dotenv()
    args = build_parser().parse_args()

    config = PathExplorationConfig.from_env()
    if args.endpoint:
        config.sparql_endpoint = args.endpoint
    if args.top_n is not None:
        config.top_n = args.top_n
    if args.max_depth is not None:
        config.max_depth = args.max_depth
    if args.provider:
        config.embedding_provider = args.provider
    if args.model:
        config.embedding_model = args.model
    if args.avoid_backtracking:
        config.avoid_backtracking = True
    if args.quiet:
        config.verbose = False

    prefixes = PrefixManager(custom_prefixes=config.custom_prefixes)
    source = prefixes.expand_uri(args.source)
    target = prefixes.expand_uri(args.target)

    if args.kg_file is not None:
        if not args.kg_file.exists():
            print(f"❌ Graph file not found: {args.kg_file}")
            return
        kg = KGStore()
        kg.load_jsonl(args.kg_file)
        if config.verbose:
            stats = kg.stats()
            print(f"✓ Loaded local graph ({stats['nodes']} nodes, {stats['edges']} edges)")
        evaluator = KGPathService(kg)
        sources = []
    else:
        evaluator = SparqlClient(
            endpoint=config.sparql_endpoint,
            timeout=config.sparql_timeout,
            rate_limit_delay=config.rate_limit_delay,
            verbose=config.verbose,
        )
        sources = [config.sparql_endpoint]

    embedder = EmbeddingClient(
        provider=config.embedding_provider,
        model_name=config.embedding_model,
        batch_size=config.embedding_batch_size,
        verbose=config.verbose,
    )

    service = PathExplorationService(evaluator, embedder, config=config, prefix_manager=prefixes)
    try:
        result = service.explore(
            source,
            target,
            args.query,
            top_n=config.top_n,
            max_depth=config.max_depth,
            sources=sources,
        )
    except ValueError as e:
        print(f"❌ {e}")
        return

    print(result)


if __name__ == "__main__":
    main()

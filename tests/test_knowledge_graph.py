"""
Tests for the knowledge graph collaborators: KGStore, KGPathService, PrefixManager
"""

from src.modules.knowledge_graph.kg_path_service import KGPathService
from src.modules.knowledge_graph.kg_schema import KGTriple
from src.modules.knowledge_graph.kg_store import KGStore
from src.modules.knowledge_graph.prefix_manager import PrefixManager, parse_custom_prefixes
from src.modules.path_exploration.path_query_builder import PathQueryBuilder
from src.modules.path_exploration.path_result_parser import PathResultParser

from conftest import A, B, C, D, EX, P1, P2, P3, P4


# =============================================================================
# KGStore
# =============================================================================

class TestKGStore:
    def test_add_triples_merges_repeated_edges(self):
        kg = KGStore()
        added = kg.add_triples(
            [
                KGTriple(subject=A, relation=P1, object=B, source="doc-1"),
                KGTriple(subject=A, relation=P1, object=B, source="doc-2"),
                KGTriple(subject=A, relation=P2, object=B),
            ]
        )
        assert added == 2
        assert kg.stats() == {"nodes": 2, "edges": 2}
        assert kg.g[A][B][P1]["sources"] == ["doc-1", "doc-2"]

    def test_incomplete_triples_skipped(self):
        kg = KGStore()
        assert kg.add_triples([KGTriple(subject=A, relation="", object=B), KGTriple(subject=" ", relation=P1, object=B)]) == 0
        assert kg.stats() == {"nodes": 0, "edges": 0}

    def test_identifiers_are_trimmed(self):
        kg = KGStore()
        kg.add_triples([KGTriple(subject=f"  {A} ", relation=P1, object=B)])
        assert A in kg.g
        assert kg.out_edges(A) == [(P1, B)]

    def test_out_edges_of_unknown_node(self, sample_kg):
        assert sample_kg.out_edges(EX + "nope") == []

    def test_jsonl_roundtrip(self, sample_kg, tmp_path):
        path = tmp_path / "kg" / "graph.jsonl"
        sample_kg.save_jsonl(path)

        loaded = KGStore()
        loaded.load_jsonl(path)
        assert loaded.stats() == sample_kg.stats()
        assert loaded.out_edges(B) == sample_kg.out_edges(B)

    def test_load_skips_bad_lines(self, tmp_path):
        path = tmp_path / "graph.jsonl"
        path.write_text(
            '{"subject": "%s", "relation": "%s", "object": "%s", "source": "doc"}\n'
            "{not json\n"
            "\n"
            "[1, 2]\n" % (A, P1, D),
            encoding="utf-8",
        )
        kg = KGStore()
        kg.load_jsonl(path)
        assert kg.stats() == {"nodes": 2, "edges": 1}
        assert kg.g[A][D][P1]["sources"] == ["doc"]

    def test_load_missing_file_gives_empty_graph(self, sample_kg, tmp_path):
        sample_kg.load_jsonl(tmp_path / "missing.jsonl")
        assert sample_kg.stats() == {"nodes": 0, "edges": 0}


# =============================================================================
# KGPathService (local pattern evaluator)
# =============================================================================

class TestKGPathService:
    def test_reference_scenario_rows(self, sample_kg):
        query = PathQueryBuilder().build(A, D, 3)
        rows = KGPathService(sample_kg).evaluate(query)
        paths = PathResultParser(A, D).parse(rows)
        chains = [[s.relation for s in p.steps] for p in paths]
        assert chains == [[P1], [P2, P3], [P2, P4, P3]]

    def test_rows_ordered_by_depth_and_shaped_like_sparql(self, sample_kg):
        rows = KGPathService(sample_kg).evaluate(PathQueryBuilder().build(A, D, 3))
        assert [int(r["depth"].value) for r in rows] == [1, 2, 3]
        assert set(rows[1]) == {"p1", "n1", "p2", "depth"}
        assert rows[1]["n1"].value == B
        assert rows[0]["depth"].kind == "literal"

    def test_depth_bound_respected(self, sample_kg):
        rows = KGPathService(sample_kg).evaluate(PathQueryBuilder().build(A, D, 2))
        assert [int(r["depth"].value) for r in rows] == [1, 2]

    def test_unknown_entities_give_no_rows(self, sample_kg):
        assert KGPathService(sample_kg).evaluate(PathQueryBuilder().build(A, EX + "Z", 3)) == []
        assert KGPathService(sample_kg).evaluate(PathQueryBuilder().build(EX + "Z", D, 3)) == []

    def test_edge_direction_is_followed(self, sample_kg):
        assert KGPathService(sample_kg).evaluate(PathQueryBuilder().build(D, A, 3)) == []

    def test_cycles_allowed_by_default(self):
        kg = KGStore()
        kg.add_triples([KGTriple(subject=A, relation=P1, object=D), KGTriple(subject=D, relation=P2, object=A)])
        rows = KGPathService(kg).evaluate(PathQueryBuilder().build(A, D, 3))
        assert [int(r["depth"].value) for r in rows] == [1, 3]

    def test_avoid_backtracking_drops_repeated_edges(self):
        kg = KGStore()
        kg.add_triples(
            [
                KGTriple(subject=A, relation=P1, object=D),
                KGTriple(subject=D, relation=P2, object=A),
                KGTriple(subject=A, relation=P3, object=D),
            ]
        )
        query = PathQueryBuilder(avoid_backtracking=True).build(A, D, 3)
        paths = PathResultParser(A, D).parse(KGPathService(kg).evaluate(query))
        chains = [[s.relation for s in p.steps] for p in paths]
        assert [P1, P2, P1] not in chains
        assert [P1, P2, P3] in chains
        assert [P3, P2, P1] in chains
        assert [P1] in chains and [P3] in chains

    def test_parallel_relations_yield_separate_rows(self):
        kg = KGStore()
        kg.add_triples([KGTriple(subject=A, relation=P1, object=D), KGTriple(subject=A, relation=P4, object=D)])
        rows = KGPathService(kg).evaluate(PathQueryBuilder().build(A, D, 1))
        assert [r["p1"].value for r in rows] == [P1, P4]

    def test_intermediate_nodes_pruned_by_distance(self):
        kg = KGStore()
        kg.add_triples(
            [
                KGTriple(subject=A, relation=P1, object=B),
                KGTriple(subject=B, relation=P2, object=C),
                KGTriple(subject=C, relation=P3, object=D),
                KGTriple(subject=A, relation=P4, object=EX + "deadend"),
            ]
        )
        rows = KGPathService(kg).evaluate(PathQueryBuilder().build(A, D, 2))
        assert rows == []


# =============================================================================
# PrefixManager
# =============================================================================

class TestPrefixManager:
    def test_compress_and_expand(self):
        pm = PrefixManager()
        assert pm.compress_uri("http://dbpedia.org/resource/Steve_Jobs") == "dbr:Steve_Jobs"
        assert pm.expand_uri("dbo:board") == "http://dbpedia.org/ontology/board"
        assert pm.compress_uri(EX + "A") == EX + "A"

    def test_expand_leaves_unknown_and_full_iris(self):
        pm = PrefixManager()
        assert pm.expand_uri("unknown:thing") == "unknown:thing"
        assert pm.expand_uri("http://dbpedia.org/resource/X") == "http://dbpedia.org/resource/X"
        assert pm.expand_uri("plain") == "plain"

    def test_custom_prefixes(self):
        parsed = parse_custom_prefixes(f"ex:<{EX}>, schema:<http://schema.org/>,broken, x:y")
        assert parsed == {"ex": EX, "schema": "http://schema.org/"}
        pm = PrefixManager(custom_prefixes=f"ex:<{EX}>")
        assert pm.compress_uri(C) == "ex:C"

    def test_compress_text_declares_used_prefixes_sorted(self):
        pm = PrefixManager()
        text = "http://dbpedia.org/resource/Steve_Jobs http://dbpedia.org/ontology/board http://dbpedia.org/resource/Apple_Inc."
        out = pm.compress_text_with_prefixes(text)
        assert out == (
            "PREFIX dbo: <http://dbpedia.org/ontology/>\n"
            "PREFIX dbr: <http://dbpedia.org/resource/>\n\n"
            "dbr:Steve_Jobs dbo:board dbr:Apple_Inc."
        )

    def test_compress_text_without_matches_unchanged(self):
        assert PrefixManager().compress_text_with_prefixes("nothing here") == "nothing here"

    def test_longest_namespace_wins(self):
        pm = PrefixManager(prefixes={"ex": EX, "exs": EX + "sub/"})
        assert pm.compress_uri(EX + "sub/thing") == "exs:thing"

    def test_instances_do_not_share_state(self):
        a = PrefixManager(custom_prefixes=f"ex:<{EX}>")
        b = PrefixManager()
        assert "ex" in a.prefix_map
        assert "ex" not in b.prefix_map

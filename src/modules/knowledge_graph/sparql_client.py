import time
from typing import Any, Dict, List, Optional, Sequence

import requests
from pydantic import ValidationError

from src.modules.knowledge_graph.kg_schema import BindingRow, BoundTerm, row_key
from src.modules.knowledge_graph.pattern_evaluator import PatternEvaluationError, PatternEvaluator

SPARQL_RESULTS_JSON = "application/sparql-results+json"


def _depth_of(row: BindingRow) -> int:
    term = row.get("depth")
    try:
        return int(term.value) if term is not None else 0
    except ValueError:
        return 0


class SparqlClient(PatternEvaluator):
    """
    Runs path queries against SPARQL 1.1 protocol endpoints.

    Every source endpoint gets the same query; rows are merged, de-duplicated and
    re-ordered by ?depth so the combined result keeps the single-endpoint contract.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: float = 60.0,
        rate_limit_delay: float = 0.1,
        session: Optional[requests.Session] = None,
        verbose: bool = True,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.rate_limit_delay = rate_limit_delay
        self.session = session or requests.Session()
        self.verbose = verbose

    def evaluate(self, query, sources: Sequence[str] = ()) -> List[BindingRow]:
        endpoints = [s for s in (sources or []) if s] or ([self.endpoint] if self.endpoint else [])
        if not endpoints:
            raise PatternEvaluationError("No SPARQL endpoint configured")

        rows: List[BindingRow] = []
        seen = set()
        for endpoint in endpoints:
            for row in self.select(query.text, endpoint):
                key = row_key(row)
                if key in seen:
                    continue
                seen.add(key)
                rows.append(row)

        rows.sort(key=_depth_of)
        return rows

    def select(self, query_text: str, endpoint: str) -> List[BindingRow]:
        if self.rate_limit_delay > 0:
            time.sleep(self.rate_limit_delay)

        if self.verbose:
            print(f"Querying SPARQL endpoint {endpoint}...")

        try:
            response = self.session.post(
                endpoint,
                data={"query": query_text},
                headers={"Accept": SPARQL_RESULTS_JSON},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise PatternEvaluationError(f"{endpoint}: {e}") from e
        except ValueError as e:
            raise PatternEvaluationError(f"{endpoint}: response is not valid JSON") from e

        return self._parse_bindings(payload, endpoint)

    @staticmethod
    def _parse_bindings(payload: Any, endpoint: str) -> List[BindingRow]:
        try:
            bindings = payload["results"]["bindings"]
        except (KeyError, TypeError) as e:
            raise PatternEvaluationError(f"{endpoint}: unexpected SPARQL results layout") from e

        rows: List[BindingRow] = []
        for binding in bindings or []:
            if not isinstance(binding, dict):
                continue
            try:
                row: Dict[str, BoundTerm] = {
                    var: BoundTerm.model_validate(term) for var, term in binding.items()
                }
            except ValidationError as e:
                raise PatternEvaluationError(f"{endpoint}: malformed binding: {e}") from e
            rows.append(row)
        return rows

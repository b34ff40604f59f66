import re
from typing import Dict, Optional

DEFAULT_PREFIXES: Dict[str, str] = {
    "dbo": "http://dbpedia.org/ontology/",
    "dbr": "http://dbpedia.org/resource/",
    "dbp": "http://dbpedia.org/property/",
    "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "owl": "http://www.w3.org/2002/07/owl#",
    "xsd": "http://www.w3.org/2001/XMLSchema#",
    "skos": "http://www.w3.org/2004/02/skos/core#",
    "foaf": "http://xmlns.com/foaf/0.1/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "dct": "http://purl.org/dc/terms/",
}

_CUSTOM_PREFIX = re.compile(r"^(\w+):<(.+)>$")


def parse_custom_prefixes(spec: str) -> Dict[str, str]:
    """
    Parses "foaf:<http://xmlns.com/foaf/0.1/>,schema:<http://schema.org/>".
    Entries that do not match the pattern are skipped.
    """
    out: Dict[str, str] = {}
    for pair in (spec or "").split(","):
        m = _CUSTOM_PREFIX.match(pair.strip())
        if m:
            out[m.group(1)] = m.group(2)
    return out


class PrefixManager:
    """
    Namespace table used to shorten IRIs for display.

    Instances are passed explicitly to whatever renders text; there is no shared
    global table.
    """

    def __init__(self, prefixes: Optional[Dict[str, str]] = None, custom_prefixes: str = ""):
        self.prefix_map: Dict[str, str] = dict(DEFAULT_PREFIXES if prefixes is None else prefixes)
        self.prefix_map.update(parse_custom_prefixes(custom_prefixes))

    def _by_namespace_length(self):
        # Longest namespace first, so nested namespaces get the most specific prefix.
        return sorted(self.prefix_map.items(), key=lambda kv: len(kv[1]), reverse=True)

    def compress_uri(self, uri: str) -> str:
        for prefix, namespace in self._by_namespace_length():
            if uri.startswith(namespace):
                return f"{prefix}:{uri[len(namespace):]}"
        return uri

    def expand_uri(self, prefixed: str) -> str:
        if "://" in prefixed:
            return prefixed
        prefix, sep, local = prefixed.partition(":")
        if not sep:
            return prefixed
        namespace = self.prefix_map.get(prefix)
        return namespace + local if namespace else prefixed

    def compress_text_with_prefixes(self, text: str) -> str:
        # Replace every namespace occurrence, then declare only the prefixes actually used.
        result = text
        used = set()
        for prefix, namespace in self._by_namespace_length():
            if namespace in result:
                result = result.replace(namespace, f"{prefix}:")
                used.add(prefix)

        if not used:
            return result

        declarations = "\n".join(f"PREFIX {p}: <{self.prefix_map[p]}>" for p in sorted(used))
        return f"{declarations}\n\n{result}"

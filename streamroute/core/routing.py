import json
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Tuple
from .errors import MalformedRoutingTable


class RoutingTable:
    """Read-only mapping from message type to the consumer that owns it.

    The serialized form is a flat JSON object, e.g.
    ``{"typeA": "consumerA", "typeB": "consumerB"}``. Keys and values must be
    non-empty strings; anything else is rejected as a whole.
    """

    __slots__ = ("_routes",)

    def __init__(self, routes: Optional[Mapping[str, str]] = None):
        if routes is not None and not isinstance(routes, Mapping):
            raise MalformedRoutingTable(
                f"Routing table must be a mapping, got {type(routes).__name__}"
            )
        routes = dict(routes or {})
        for type_name, consumer in routes.items():
            if not isinstance(type_name, str) or not type_name:
                raise MalformedRoutingTable(f"Invalid message type: {type_name!r}")
            if not isinstance(consumer, str) or not consumer:
                raise MalformedRoutingTable(
                    f"Invalid consumer for type {type_name!r}: {consumer!r}"
                )
        self._routes = MappingProxyType(routes)

    @classmethod
    def load(cls, blob: Any) -> "RoutingTable":
        if isinstance(blob, (bytes, bytearray)):
            try:
                blob = blob.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedRoutingTable(f"Routing table is not UTF-8: {e}")
        if not isinstance(blob, str):
            raise MalformedRoutingTable(
                f"Routing table must be text, got {type(blob).__name__}"
            )
        try:
            data = json.loads(blob)
        except json.JSONDecodeError as e:
            raise MalformedRoutingTable(f"Routing table is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise MalformedRoutingTable("Routing table must be a JSON object")
        return cls(data)

    def dump(self) -> str:
        return json.dumps(dict(self._routes), sort_keys=True)

    def lookup(self, type_name: Optional[str]) -> Optional[str]:
        if not type_name:
            return None
        return self._routes.get(type_name)

    @property
    def routes(self) -> Mapping[str, str]:
        return self._routes

    def consumers(self) -> Tuple[str, ...]:
        return tuple(sorted(set(self._routes.values())))

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._routes

    def __iter__(self) -> Iterator[str]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RoutingTable):
            return NotImplemented
        return dict(self._routes) == dict(other._routes)

    def __hash__(self) -> int:
        return hash(frozenset(self._routes.items()))

    def __repr__(self) -> str:
        return f"RoutingTable({dict(self._routes)!r})"

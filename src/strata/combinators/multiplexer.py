# src/strata/combinators/multiplexer.py
"""Route references to one of several stores.

The route key is taken from the reference according to RouteMatch:

- exact: the first non-empty path segment must equal a route key
- longest_prefix: the longest route key that prefixes the first segment
- scheme: the reference scheme must equal a route key

References are delegated unmodified; the chosen store sees exactly what
the caller passed.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from strata.contracts.enums import RouteMatch
from strata.contracts.errors import NoRouteError
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage, Storage, find_in

__all__ = ["Multiplexer", "first_segment"]


def first_segment(path: str) -> str:
    """First non-empty '/'-separated segment of path ('' if none)."""
    for segment in path.split("/"):
        if segment:
            return segment
    return ""


class Multiplexer(BaseStorage):
    """Decorator dispatching each call to the store its route key selects."""

    def __init__(self, routes: Mapping[str, Storage], *, match: RouteMatch = RouteMatch.EXACT) -> None:
        if not routes:
            raise ValueError("Multiplexer needs at least one route")
        self._routes = dict(routes)
        self._match = RouteMatch(match)
        # Longest first so the first hit is the longest prefix
        self._by_length = sorted(self._routes, key=len, reverse=True)

    @property
    def match(self) -> RouteMatch:
        return self._match

    def _lookup(self, key: str, reference: Reference | str) -> Storage:
        if self._match is RouteMatch.LONGEST_PREFIX:
            for candidate in self._by_length:
                if key.startswith(candidate):
                    return self._routes[candidate]
        elif key in self._routes:
            return self._routes[key]
        raise NoRouteError(key, reference)

    def route(self, reference: Reference) -> Storage:
        """Store for reference.

        Raises:
            NoRouteError: If no route matches
        """
        if self._match is RouteMatch.SCHEME:
            return self._lookup(reference.scheme, reference)
        return self._lookup(first_segment(reference.path), reference)

    def get(self, reference: Reference) -> Any:
        return self.route(reference).get(reference)

    def put(self, reference: Reference, payload: object) -> None:
        self.route(reference).put(reference, payload)

    def delete(self, reference: Reference) -> None:
        self.route(reference).delete(reference)

    def merge(self, reference: Reference, payload: object) -> None:
        self.route(reference).merge(reference, payload)

    def find(self, name: str) -> Reference:
        if self._match is RouteMatch.SCHEME:
            target = self.route(Reference.parse(name))
        else:
            target = self._lookup(first_segment(name), name)
        return find_in(target, name)

"""Query parameter helpers for CloudAPI list endpoints.

CloudAPI filters use FIQL (Feed Item Query Language): ``name==web01``,
``ownerRef.id==urn:...;name==gw`` (``;`` is AND, ``,`` is OR).

Example:
    >>> params = query_parameter_filter_and("name==gw", {"filter": "ownerRef.id==x"})
    >>> params["filter"]
    'ownerRef.id==x;name==gw'
    >>> str(FiqlFilter().eq("name", "gw").gt("priority", 3))
    'name==gw;priority=gt=3'
"""

from __future__ import annotations

from collections.abc import Mapping

import httpx

QueryParams = dict[str, str]

DEFAULT_PAGE_SIZE = "128"

# Characters FIQL treats as operators. A value holding any of them cannot be
# matched with a plain equality filter.
_SLOW_SEARCH_CHARS = (",", ";", " ", "+", "*")


def copy_or_new_url_values(params: Mapping[str, str] | None) -> QueryParams:
    """Return a copy of ``params`` so that callers' dicts are never mutated."""
    return dict(params) if params else {}


def query_parameter_filter_and(filter_expr: str, params: Mapping[str, str] | None) -> QueryParams:
    """Add ``filter_expr`` to the ``filter`` parameter with a FIQL AND."""
    new_params = copy_or_new_url_values(params)
    existing = new_params.get("filter", "")
    new_params["filter"] = f"{existing};{filter_expr}" if existing else filter_expr
    return new_params


def default_page_size(params: Mapping[str, str] | None, page_size: str = DEFAULT_PAGE_SIZE) -> QueryParams:
    """Set ``pageSize`` only when the caller did not choose one."""
    new_params = copy_or_new_url_values(params)
    if "pageSize" not in new_params:
        new_params["pageSize"] = page_size
    return new_params


def should_do_slow_search(filter_key: str, filter_value: str) -> tuple[bool, QueryParams]:
    """Decide whether a lookup by value can use a server-side filter.

    Returns:
        ``(True, {})`` when the value holds FIQL operator characters and the
        caller must fetch everything and filter locally; otherwise ``(False,
        params)`` with an equality filter ready to send.
    """
    if any(char in filter_value for char in _SLOW_SEARCH_CHARS):
        return True, {}
    return False, {
        "filter": f"{filter_key}=={filter_value}",
        "filterEncoded": "true",
    }


def find_rel_link(rel_name: str, response: httpx.Response) -> str | None:
    """Find the URL of a ``Link`` header entry with the given ``rel``.

    A rel attribute may list several space separated relation types.
    """
    for link in response.links.values():
        if rel_name in link.get("rel", "").split():
            return link.get("url") or None
    return None


class FiqlFilter:
    """Small builder for FIQL filter expressions.

    Terms added with the comparison methods are joined with AND (``;``).
    """

    def __init__(self) -> None:
        self._terms: list[str] = []

    def _add(self, key: str, op: str, value: object) -> FiqlFilter:
        self._terms.append(f"{key}{op}{value}")
        return self

    def eq(self, key: str, value: object) -> FiqlFilter:
        return self._add(key, "==", value)

    def ne(self, key: str, value: object) -> FiqlFilter:
        return self._add(key, "!=", value)

    def lt(self, key: str, value: object) -> FiqlFilter:
        return self._add(key, "=lt=", value)

    def le(self, key: str, value: object) -> FiqlFilter:
        return self._add(key, "=le=", value)

    def gt(self, key: str, value: object) -> FiqlFilter:
        return self._add(key, "=gt=", value)

    def ge(self, key: str, value: object) -> FiqlFilter:
        return self._add(key, "=ge=", value)

    def any_of(self, key: str, values: list[object]) -> FiqlFilter:
        """Add ``(key==a,key==b,...)``, matching any of the values."""
        self._terms.append("(" + ",".join(f"{key}=={v}" for v in values) + ")")
        return self

    def __str__(self) -> str:
        return ";".join(self._terms)

    def to_params(self, params: Mapping[str, str] | None = None) -> QueryParams:
        """Merge this filter into ``params`` with an AND."""
        if not self._terms:
            return copy_or_new_url_values(params)
        return query_parameter_filter_and(str(self), params)

"""Local filtering of query results.

A :class:`FilterDef` collects conditions (name and IP regular expressions,
date comparisons, latest/earliest selection, metadata regular expressions)
and :func:`search_by_filter` applies them to a list of query items. Every
condition must match for an item to be kept.

Example:
    >>> criteria = FilterDef()
    >>> criteria.add_filter(FILTER_NAME_REGEX, r"^web-\\d+$")
    >>> criteria.add_filter(FILTER_DATE, "> 2024-01-01")
    >>> matches, explanation = search_by_filter(items, criteria)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from dateutil import parser as date_parser
from dateutil.tz import tzutc

from .exceptions import ValidationError
from .logging_config import get_logger

logger = get_logger(__name__)

FILTER_NAME_REGEX = "name_regex"
FILTER_DATE = "date"
FILTER_IP = "ip"
FILTER_LATEST = "latest"
FILTER_EARLIEST = "earliest"
FILTER_PARENT = "parent"
FILTER_PARENT_ID = "parent_id"

SUPPORTED_FILTERS = (
    FILTER_NAME_REGEX,
    FILTER_DATE,
    FILTER_IP,
    FILTER_LATEST,
    FILTER_EARLIEST,
    FILTER_PARENT,
    FILTER_PARENT_ID,
)

_DATE_CONDITION_RE = re.compile(r"^\s*(==|=|>=|<=|>|<)\s*(.+?)\s*$")
_FRACTION_RE = re.compile(r"\d{1,2}:\d{2}:\d{2}[.,](\d+)")


@runtime_checkable
class QueryItem(Protocol):
    """A query record the filter engine can evaluate."""

    def get_name(self) -> str: ...

    def get_date(self) -> str: ...

    def get_ip(self) -> str: ...

    def get_type(self) -> str: ...

    def get_href(self) -> str: ...

    def get_parent_name(self) -> str: ...

    def get_parent_id(self) -> str: ...

    def get_metadata_value(self, key: str) -> str: ...


@dataclass
class MetadataDef:
    """A metadata condition: the value stored under ``key`` must match ``value_regex``."""

    key: str
    value_regex: str
    value_type: str = "STRING"
    is_system: bool = False


@dataclass
class FilterDef:
    """Set of conditions applied together by :func:`search_by_filter`."""

    filters: dict[str, str] = field(default_factory=dict)
    metadata: list[MetadataDef] = field(default_factory=list)

    def add_filter(self, key: str, value: str) -> None:
        """Add a condition.

        Raises:
            ValidationError: If the key is unknown, the value is not usable
                for it, or latest and earliest are both requested.
        """
        if key not in SUPPORTED_FILTERS:
            raise ValidationError(f"filter '{key}' not supported. Supported filters: {', '.join(SUPPORTED_FILTERS)}")
        if key in (FILTER_LATEST, FILTER_EARLIEST):
            if value not in ("true", "false"):
                raise ValidationError(f"filter '{key}' requires 'true' or 'false', got '{value}'")
            other = FILTER_EARLIEST if key == FILTER_LATEST else FILTER_LATEST
            if value == "true" and self.filters.get(other) == "true":
                raise ValidationError(f"only one of '{FILTER_LATEST}' and '{FILTER_EARLIEST}' can be used")
        elif key == FILTER_DATE:
            if not _DATE_CONDITION_RE.match(value):
                raise ValidationError(f"date filter '{value}' must start with an operator (==, >, >=, <, <=)")
        elif key in (FILTER_NAME_REGEX, FILTER_IP):
            _compile(key, value)
        self.filters[key] = value

    def add_metadata_filter(self, key: str, value_regex: str, value_type: str = "STRING", is_system: bool = False) -> None:
        if not key:
            raise ValidationError("metadata filter requires a key")
        _compile(f"metadata '{key}'", value_regex)
        self.metadata.append(MetadataDef(key, value_regex, value_type.upper(), is_system))

    @property
    def latest(self) -> bool:
        return self.filters.get(FILTER_LATEST) == "true"

    @property
    def earliest(self) -> bool:
        return self.filters.get(FILTER_EARLIEST) == "true"


@dataclass
class DateItem:
    """A named entity with its creation date, input of :func:`make_date_filter`."""

    name: str
    date: str
    entity: Any = None
    entity_type: str = ""


@dataclass
class FilterMatch:
    """A filter that selects one known entity."""

    criteria: FilterDef
    expected_name: str
    entity: Any = None
    entity_type: str = ""


def _compile(label: str, expression: str) -> re.Pattern[str]:
    try:
        return re.compile(expression)
    except re.error as e:
        raise ValidationError(f"invalid regular expression for {label} '{expression}': {e}") from e


def _date_key(text: str) -> tuple[datetime, int]:
    """Parse a date into a sortable key with nanosecond precision.

    Naive dates are taken as UTC.
    """
    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"cannot parse date '{text}': {e}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tzutc())

    nanoseconds = parsed.microsecond * 1000
    fraction = _FRACTION_RE.search(text)
    if fraction:
        nanoseconds = int(fraction.group(1).ljust(9, "0")[:9])
    return parsed.replace(microsecond=0), nanoseconds


def compare_date(wanted: str, got: str) -> bool:
    """Evaluate a date condition such as ``">= 2020-03-09"`` against ``got``.

    Args:
        wanted: Operator followed by a date in any format dateutil parses.
        got: Date of the item being evaluated.

    Raises:
        ValidationError: If the condition has no operator or a date cannot be
            parsed.
    """
    match = _DATE_CONDITION_RE.match(wanted)
    if not match:
        raise ValidationError(f"date condition '{wanted}' does not start with a valid operator")
    operator, wanted_date = match.groups()

    expected = _date_key(wanted_date)
    actual = _date_key(got)

    if operator in ("=", "=="):
        return actual == expected
    if operator == ">":
        return actual > expected
    if operator == ">=":
        return actual >= expected
    if operator == "<":
        return actual < expected
    return actual <= expected


def _matches_conditions(item: QueryItem, criteria: FilterDef, explanation: list[str]) -> bool:
    name_regex = criteria.filters.get(FILTER_NAME_REGEX)
    if name_regex and not re.search(name_regex, item.get_name()):
        return False

    ip_regex = criteria.filters.get(FILTER_IP)
    if ip_regex and not re.search(ip_regex, item.get_ip()):
        return False

    parent = criteria.filters.get(FILTER_PARENT)
    if parent and item.get_parent_name() != parent:
        return False

    parent_id = criteria.filters.get(FILTER_PARENT_ID)
    if parent_id and item.get_parent_id() != parent_id:
        return False

    date_condition = criteria.filters.get(FILTER_DATE)
    if date_condition:
        item_date = item.get_date()
        if not item_date or not compare_date(date_condition, item_date):
            return False

    for metadata in criteria.metadata:
        value = item.get_metadata_value(metadata.key)
        if not value or not re.search(metadata.value_regex, value):
            return False

    explanation.append(f"[{item.get_type()}] {item.get_name()} matched")
    return True


def search_by_filter(items: list[QueryItem], criteria: FilterDef) -> tuple[list[QueryItem], str]:
    """Return the items that satisfy every condition of ``criteria``.

    With ``latest`` or ``earliest`` set, only the newest or the oldest of the
    matching items is returned.

    Returns:
        The matching items in their original order, and a human readable
        explanation of the search.
    """
    if criteria is None:
        raise ValidationError("search_by_filter: no criteria provided")

    explanation = [
        f"filters: {criteria.filters}",
        f"metadata: {[(m.key, m.value_regex) for m in criteria.metadata]}",
    ]
    candidates = [item for item in items if _matches_conditions(item, criteria, explanation)]

    if candidates and (criteria.latest or criteria.earliest):
        dated = [item for item in candidates if item.get_date()]
        if dated:
            pick = max if criteria.latest else min
            selected = pick(dated, key=lambda item: _date_key(item.get_date()))
            explanation.append(
                f"{'latest' if criteria.latest else 'earliest'}: {selected.get_name()} ({selected.get_date()})"
            )
            candidates = [selected]
        else:
            candidates = []

    logger.debug(f"Filter search kept {len(candidates)} of {len(items)} items")
    return candidates, "\n".join(explanation)


def make_date_filter(items: list[DateItem]) -> list[FilterMatch]:
    """Build one equality filter per item, plus one for the latest and one for the earliest.

    The latest filter uses ``>`` on the oldest date and the earliest filter
    uses ``<`` on the newest date, so each of them is combined with the
    corresponding selection flag.
    """
    if not items:
        raise ValidationError("make_date_filter: empty list of items")

    result: list[FilterMatch] = []
    earliest = min(items, key=lambda item: _date_key(item.date))
    latest = max(items, key=lambda item: _date_key(item.date))

    for item in items:
        criteria = FilterDef()
        criteria.add_filter(FILTER_DATE, f"=={item.date}")
        result.append(FilterMatch(criteria, item.name, item.entity, item.entity_type))

    latest_criteria = FilterDef()
    latest_criteria.add_filter(FILTER_DATE, f">{earliest.date}")
    latest_criteria.add_filter(FILTER_LATEST, "true")
    result.append(FilterMatch(latest_criteria, latest.name, latest.entity, latest.entity_type))

    earliest_criteria = FilterDef()
    earliest_criteria.add_filter(FILTER_DATE, f"<{latest.date}")
    earliest_criteria.add_filter(FILTER_EARLIEST, "true")
    result.append(FilterMatch(earliest_criteria, earliest.name, earliest.entity, earliest.entity_type))

    return result

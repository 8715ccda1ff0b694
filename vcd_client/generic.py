"""Result disambiguation and local filtering helpers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from .exceptions import EntityNotFoundError, ValidationError, VcdError

T = TypeVar("T")


def one_or_error(key: str, name: str, entities: Sequence[T]) -> T:
    """Return the single element of ``entities``.

    Args:
        key: Field the lookup used (for the message).
        name: Value the lookup used (for the message).
        entities: Lookup results.

    Raises:
        EntityNotFoundError: If there are no results.
        VcdError: If there is more than one result.
    """
    if len(entities) > 1:
        raise VcdError(f"got more than one entity by {key} '{name}' {len(entities)}")
    if not entities:
        raise EntityNotFoundError(f"got zero entities by {key} '{name}'")
    return entities[0]


def generic_local_filter(
    entities: Sequence[T],
    field_name: str,
    expected_value: str,
    entity_name: str,
) -> list[T]:
    """Keep the entities whose string attribute ``field_name`` equals ``expected_value``."""
    if not entities:
        raise ValidationError("zero entities provided for filtering")

    filtered = []
    for entity in entities:
        if entity is None:
            raise ValidationError(f"given entity for {entity_name} is None")
        if not hasattr(entity, field_name):
            raise ValidationError(f"the type for {entity_name} does not have the field '{field_name}'")
        value = getattr(entity, field_name)
        if not isinstance(value, str):
            raise ValidationError(
                f"field '{field_name}' is not string type, it has type '{type(value).__name__}'"
            )
        if value == expected_value:
            filtered.append(entity)
    return filtered


def generic_local_filter_one_or_error(
    entities: Sequence[T],
    field_name: str,
    expected_value: str,
    entity_name: str,
) -> T:
    if not field_name or not expected_value:
        raise ValidationError(f"expected field name and value must be specified to filter {entity_name}")
    filtered = generic_local_filter(entities, field_name, expected_value, entity_name)
    return one_or_error(field_name, expected_value, filtered)

"""Generic create/read/update/delete over CloudAPI endpoints.

A :class:`CrudConfig` describes one call: endpoint template, path
parameters, query parameters, extra headers and a human readable label.
The *inner* functions work on pydantic models. The *outer* functions wrap
those models into resource classes through their ``wrap`` method.

Example:
    >>> c = CrudConfig(
    ...     entity_label="Organization",
    ...     endpoint=endpoints.OPENAPI_PATH_V1 + endpoints.ORGS,
    ...     endpoint_params=[org_id],
    ... )
    >>> org = await get_inner_entity(client, c, TmOrg)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from pydantic import BaseModel

from .exceptions import APIResponseError, ValidationError, VcdError
from .logging_config import get_logger

if TYPE_CHECKING:
    from .api_client import VcdAPIClient

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)
W = TypeVar("W", bound="OuterEntity")


class OuterEntity(Protocol):
    """A resource wrapper that can be rebuilt around a new inner model."""

    inner_type: type[BaseModel]

    def wrap(self: W, inner: Any) -> W: ...


def url_from_endpoint(endpoint: str, endpoint_params: Sequence[str]) -> str:
    """Fill ``%s`` placeholders in order; extra params are appended as suffixes.

    Raises:
        ValidationError: If there are fewer params than placeholders.
    """
    if len(endpoint_params) < endpoint.count("%s"):
        raise ValidationError(f"endpoint '{endpoint}' has unpopulated placeholders")
    for param in endpoint_params:
        if "%s" in endpoint:
            endpoint = endpoint.replace("%s", param, 1)
        else:
            endpoint += param
    return endpoint


@dataclass
class CrudConfig:
    """Descriptor of a single generic CRUD call.

    Attributes:
        entity_label: Name used in error messages.
        endpoint: Endpoint template including the path version prefix.
        endpoint_params: Values for the placeholders, then suffixes.
        query_parameters: Query parameters for the request.
        additional_header: Extra request headers.
        requires_tm: Only valid on Tenant Manager instances.
    """

    entity_label: str
    endpoint: str
    endpoint_params: Sequence[str] = ()
    query_parameters: Mapping[str, str] | None = None
    additional_header: Mapping[str, str] | None = None
    requires_tm: bool = False

    def validate(self) -> None:
        if not self.entity_label:
            raise ValidationError("CrudConfig.entity_label must be specified")
        if not self.endpoint:
            raise ValidationError(f"CrudConfig.endpoint must be specified for {self.entity_label}")
        for param in self.endpoint_params:
            if param == "":
                raise ValidationError(
                    f'endpoint_params were specified but they contain empty value "" '
                    f"for {self.entity_label}. {list(self.endpoint_params)}"
                )


async def _prepare(client: VcdAPIClient, c: CrudConfig, action: str) -> tuple[str, str]:
    """Validate the config and return (api_version, url)."""
    c.validate()
    if c.requires_tm and not await client.is_tm():
        raise VcdError(f"{c.entity_label} requires TM")

    try:
        api_version = await client.get_openapi_highest_elevated_version(c.endpoint)
    except VcdError as e:
        raise VcdError(f"error getting API version for {action} '{c.entity_label}': {e}") from e

    try:
        exact_endpoint = url_from_endpoint(c.endpoint, c.endpoint_params)
    except ValidationError as e:
        raise VcdError(
            f"error building endpoint '{c.endpoint}' with given params '{list(c.endpoint_params)}' "
            f"for entity '{c.entity_label}': {e}"
        ) from e

    return api_version, client.openapi_build_endpoint(exact_endpoint)


async def create_inner_entity(client: VcdAPIClient, c: CrudConfig, model: type[M], entity_config: Any) -> M:
    """POST ``entity_config`` and return the created entity."""
    api_version, url = await _prepare(client, c, "creating entity")
    try:
        data = await client.openapi_post_item(api_version, url, c.query_parameters, entity_config, c.additional_header)
    except (VcdError, APIResponseError) as e:
        raise VcdError(f"error creating entity of type '{c.entity_label}': {e}") from e
    return model.model_validate(data)


async def update_inner_entity(client: VcdAPIClient, c: CrudConfig, model: type[M], entity_config: Any) -> M:
    """PUT ``entity_config`` and return the updated entity."""
    api_version, url = await _prepare(client, c, "updating entity")
    try:
        data = await client.openapi_put_item(api_version, url, c.query_parameters, entity_config, c.additional_header)
    except (VcdError, APIResponseError) as e:
        raise VcdError(f"error updating entity of type '{c.entity_label}': {e}") from e
    return model.model_validate(data)


async def get_inner_entity(client: VcdAPIClient, c: CrudConfig, model: type[M]) -> M:
    api_version, url = await _prepare(client, c, "entity")
    try:
        data = await client.openapi_get_item(api_version, url, c.query_parameters, c.additional_header)
    except (VcdError, APIResponseError) as e:
        raise VcdError(f"error retrieving entity of type '{c.entity_label}': {e}") from e
    return model.model_validate(data)


async def get_all_inner_entities(client: VcdAPIClient, c: CrudConfig, model: type[M]) -> list[M]:
    api_version, url = await _prepare(client, c, "entity")
    try:
        values = await client.openapi_get_all_items(api_version, url, c.query_parameters, c.additional_header)
    except (VcdError, APIResponseError) as e:
        raise VcdError(f"error retrieving all entities of type '{c.entity_label}': {e}") from e
    return [model.model_validate(value) for value in values]


async def delete_entity_by_id(client: VcdAPIClient, c: CrudConfig) -> None:
    api_version, url = await _prepare(client, c, "deleting entity")
    try:
        await client.openapi_delete_item(api_version, url, c.query_parameters, c.additional_header)
    except (VcdError, APIResponseError) as e:
        raise VcdError(f"error deleting {c.entity_label}: {e}") from e


async def create_outer_entity(client: VcdAPIClient, outer: W, c: CrudConfig, entity_config: Any) -> W:
    if entity_config is None:
        raise ValidationError(f"entity config '{c.entity_label}' cannot be empty for create operation")
    inner = await create_inner_entity(client, c, outer.inner_type, entity_config)
    return outer.wrap(inner)


async def update_outer_entity(client: VcdAPIClient, outer: W, c: CrudConfig, entity_config: Any) -> W:
    if entity_config is None:
        raise ValidationError(f"entity config '{c.entity_label}' cannot be empty for update operation")
    inner = await update_inner_entity(client, c, outer.inner_type, entity_config)
    return outer.wrap(inner)


async def get_outer_entity(client: VcdAPIClient, outer: W, c: CrudConfig) -> W:
    inner = await get_inner_entity(client, c, outer.inner_type)
    return outer.wrap(inner)


async def get_all_outer_entities(client: VcdAPIClient, outer: W, c: CrudConfig) -> list[W]:
    inners = await get_all_inner_entities(client, c, outer.inner_type)
    return [outer.wrap(inner) for inner in inners]

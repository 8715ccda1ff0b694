"""API Filters route matching CloudAPI requests to an external extension endpoint."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from .. import endpoints
from ..crud import (
    CrudConfig,
    create_outer_entity,
    delete_entity_by_id,
    get_all_outer_entities,
    get_outer_entity,
    update_inner_entity,
)
from ..exceptions import ValidationError
from ..models import ApiFilter as ApiFilterModel

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

LABEL_API_FILTER = "API Filter"

API_FILTERS_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.API_FILTERS


def _crud_config(*endpoint_params: str, query_parameters: Mapping[str, str] | None = None) -> CrudConfig:
    return CrudConfig(
        entity_label=LABEL_API_FILTER,
        endpoint=API_FILTERS_ENDPOINT,
        endpoint_params=endpoint_params,
        query_parameters=query_parameters,
    )


class ApiFilter:
    inner_type = ApiFilterModel

    def __init__(self, client: VcdAPIClient, api_filter: ApiFilterModel | None = None) -> None:
        self.client = client
        self.api_filter = api_filter if api_filter is not None else ApiFilterModel()

    def wrap(self, inner: ApiFilterModel) -> ApiFilter:
        return ApiFilter(self.client, inner)

    def __repr__(self) -> str:
        return f"ApiFilter(id={self.api_filter.id!r})"

    @classmethod
    async def create(cls, client: VcdAPIClient, config: ApiFilterModel) -> ApiFilter:
        return await create_outer_entity(client, cls(client), _crud_config(), config)

    @classmethod
    async def get_all(cls, client: VcdAPIClient, query_parameters: Mapping[str, str] | None = None) -> list[ApiFilter]:
        return await get_all_outer_entities(client, cls(client), _crud_config(query_parameters=query_parameters))

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, filter_id: str) -> ApiFilter:
        return await get_outer_entity(client, cls(client), _crud_config(filter_id))

    async def update(self, config: ApiFilterModel) -> None:
        """Update the filter in place with ``config``.

        Raises:
            ValidationError: If the receiver has no ID or ``config`` has a different one.
        """
        if not self.api_filter.id:
            raise ValidationError("ID of the receiver API Filter is empty")
        if config.id and config.id != self.api_filter.id:
            raise ValidationError("ID of the receiver API Filter and the input ID don't match")
        self.api_filter = await update_inner_entity(
            self.client, _crud_config(self.api_filter.id), ApiFilterModel, config
        )

    async def delete(self) -> None:
        await delete_entity_by_id(self.client, _crud_config(self.api_filter.id or ""))
        self.api_filter = ApiFilterModel()

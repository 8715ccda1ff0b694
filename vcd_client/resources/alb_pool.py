"""NSX-T ALB (Advanced Load Balancer) pools."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from .. import endpoints
from ..exceptions import APIResponseError, EntityNotFoundError, ValidationError, VcdError
from ..models import NsxtAlbPool as NsxtAlbPoolModel
from ..query import copy_or_new_url_values

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

ALB_POOLS_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.ALB_POOLS
ALB_POOL_SUMMARIES_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.ALB_POOL_SUMMARIES


class NsxtAlbPool:
    """A load balancer pool attached to an Edge Gateway.

    Attributes:
        alb_pool: The pool as returned by the API. Summaries only carry a
            subset of the fields.
    """

    inner_type = NsxtAlbPoolModel

    def __init__(self, client: VcdAPIClient, alb_pool: NsxtAlbPoolModel | None = None) -> None:
        self.client = client
        self.alb_pool = alb_pool if alb_pool is not None else NsxtAlbPoolModel()

    def wrap(self, inner: NsxtAlbPoolModel) -> NsxtAlbPool:
        return NsxtAlbPool(self.client, inner)

    def __repr__(self) -> str:
        return f"NsxtAlbPool(id={self.alb_pool.id!r}, name={self.alb_pool.name!r})"

    @classmethod
    async def get_all_summaries(
        cls,
        client: VcdAPIClient,
        edge_gateway_id: str,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[NsxtAlbPool]:
        """List the pools of a gateway with summary fields only."""
        api_version = await client.check_openapi_endpoint_compatibility(ALB_POOL_SUMMARIES_ENDPOINT)
        url = client.openapi_build_endpoint(endpoints.OPENAPI_PATH_V1, endpoints.ALB_POOL_SUMMARIES % edge_gateway_id)
        values = await client.openapi_get_all_items(api_version, url, query_parameters)
        return [cls(client, NsxtAlbPoolModel.model_validate(value)) for value in values]

    @classmethod
    async def get_all(
        cls,
        client: VcdAPIClient,
        edge_gateway_id: str,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[NsxtAlbPool]:
        """List the pools of a gateway with every field.

        The summaries endpoint is read first, then each pool is retrieved by ID.
        """
        try:
            summaries = await cls.get_all_summaries(client, edge_gateway_id, query_parameters)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error retrieving all ALB Pool summaries: {e}") from e

        pools = []
        for summary in summaries:
            try:
                pools.append(await cls.get_by_id(client, summary.alb_pool.id or ""))
            except (VcdError, ValidationError, APIResponseError) as e:
                raise VcdError(f"error retrieving complete ALB Pool: {e}") from e
        return pools

    @classmethod
    async def get_by_name(cls, client: VcdAPIClient, edge_gateway_id: str, name: str) -> NsxtAlbPool:
        params = copy_or_new_url_values(None)
        params["filter"] = f"name=={name}"

        try:
            pools = await cls.get_all(client, edge_gateway_id, params)
        except VcdError as e:
            raise VcdError(f"error retrieving ALB Pool with Name '{name}': {e}") from e

        if not pools:
            raise EntityNotFoundError(f"could not find ALB Pool with Name '{name}'")
        if len(pools) > 1:
            raise VcdError(f"found more than 1 ALB Pool with Name '{name}'")
        return pools[0]

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, pool_id: str) -> NsxtAlbPool:
        if not pool_id:
            raise ValidationError("ID is required to lookup NSX-T ALB Pool by ID")
        api_version = await client.check_openapi_endpoint_compatibility(ALB_POOLS_ENDPOINT)
        url = client.openapi_build_endpoint(ALB_POOLS_ENDPOINT, pool_id)
        data = await client.openapi_get_item(api_version, url)
        return cls(client, NsxtAlbPoolModel.model_validate(data))

    @classmethod
    async def create(cls, client: VcdAPIClient, config: NsxtAlbPoolModel) -> NsxtAlbPool:
        api_version = await client.check_openapi_endpoint_compatibility(ALB_POOLS_ENDPOINT)
        url = client.openapi_build_endpoint(ALB_POOLS_ENDPOINT)
        try:
            data = await client.openapi_post_item(api_version, url, None, config)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error creating NSX-T ALB Pool: {e}") from e
        return cls(client, NsxtAlbPoolModel.model_validate(data))

    async def update(self, config: NsxtAlbPoolModel) -> NsxtAlbPool:
        api_version = await self.client.check_openapi_endpoint_compatibility(ALB_POOLS_ENDPOINT)
        if not config.id:
            raise ValidationError("cannot update NSX-T ALB Pool without ID")
        url = self.client.openapi_build_endpoint(ALB_POOLS_ENDPOINT, config.id)
        try:
            data = await self.client.openapi_put_item(api_version, url, None, config)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error updating NSX-T ALB Pool: {e}") from e
        return self.wrap(NsxtAlbPoolModel.model_validate(data or {}))

    async def delete(self) -> None:
        api_version = await self.client.check_openapi_endpoint_compatibility(ALB_POOLS_ENDPOINT)
        if not self.alb_pool.id:
            raise ValidationError("cannot delete NSX-T ALB Pool without ID")
        url = self.client.openapi_build_endpoint(ALB_POOLS_ENDPOINT, self.alb_pool.id)
        try:
            await self.client.openapi_delete_item(api_version, url)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error deleting NSX-T ALB Pool: {e}") from e

"""IP Spaces: public, shared and private address pools (VCD 10.4.1+)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from .. import endpoints
from ..exceptions import APIResponseError, ValidationError, VcdError
from ..generic import one_or_error
from ..models import IpSpace as IpSpaceModel
from ..query import query_parameter_filter_and

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

IP_SPACES_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.IP_SPACES
IP_SPACE_SUMMARIES_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.IP_SPACE_SUMMARIES


class IpSpace:
    inner_type = IpSpaceModel

    def __init__(self, client: VcdAPIClient, ip_space: IpSpaceModel | None = None) -> None:
        self.client = client
        self.ip_space = ip_space if ip_space is not None else IpSpaceModel()

    def wrap(self, inner: IpSpaceModel) -> IpSpace:
        return IpSpace(self.client, inner)

    def __repr__(self) -> str:
        return f"IpSpace(id={self.ip_space.id!r}, name={self.ip_space.name!r})"

    @classmethod
    async def create(cls, client: VcdAPIClient, config: IpSpaceModel) -> IpSpace:
        api_version = await client.get_openapi_highest_elevated_version(IP_SPACES_ENDPOINT)
        url = client.openapi_build_endpoint(IP_SPACES_ENDPOINT)
        data = await client.openapi_post_item(api_version, url, None, config)
        return cls(client, IpSpaceModel.model_validate(data))

    @classmethod
    async def get_all_summaries(
        cls,
        client: VcdAPIClient,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[IpSpace]:
        """List IP Spaces with summary fields only. Use :meth:`get_by_id` for the rest."""
        api_version = await client.get_openapi_highest_elevated_version(IP_SPACE_SUMMARIES_ENDPOINT)
        url = client.openapi_build_endpoint(IP_SPACE_SUMMARIES_ENDPOINT)
        values = await client.openapi_get_all_items(api_version, url, query_parameters)
        return [cls(client, IpSpaceModel.model_validate(value)) for value in values]

    @classmethod
    async def get_all(cls, client: VcdAPIClient, query_parameters: Mapping[str, str] | None = None) -> list[IpSpace]:
        """List IP Spaces with every field, one extra request per IP Space."""
        summaries = await cls.get_all_summaries(client, query_parameters)
        return [await cls.get_by_id(client, summary.ip_space.id or "") for summary in summaries]

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, ip_space_id: str) -> IpSpace:
        if not ip_space_id:
            raise ValidationError("IP Space lookup requires ID")
        api_version = await client.get_openapi_highest_elevated_version(IP_SPACES_ENDPOINT)
        url = client.openapi_build_endpoint(IP_SPACES_ENDPOINT, ip_space_id)
        data = await client.openapi_get_item(api_version, url)
        return cls(client, IpSpaceModel.model_validate(data))

    @classmethod
    async def _get_single_by_name(cls, client: VcdAPIClient, name: str, params: Mapping[str, str]) -> IpSpace:
        try:
            summaries = await cls.get_all_summaries(client, params)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error getting IP Spaces: {e}") from e
        single = one_or_error("name", name, summaries)
        return await cls.get_by_id(client, single.ip_space.id or "")

    @classmethod
    async def get_by_name(cls, client: VcdAPIClient, name: str) -> IpSpace:
        if not name:
            raise ValidationError("IP Space lookup requires name")
        return await cls._get_single_by_name(client, name, {"filter": f"name=={name}"})

    @classmethod
    async def get_by_name_and_org_id(cls, client: VcdAPIClient, name: str, org_id: str) -> IpSpace:
        """Look up a private IP Space by name within an Organization."""
        if not name or not org_id:
            raise ValidationError("IP Space lookup requires name and Org ID")
        params = query_parameter_filter_and(f"orgRef.id=={org_id}", {"filter": f"name=={name}"})
        return await cls._get_single_by_name(client, name, params)

    async def update(self, config: IpSpaceModel) -> IpSpace:
        api_version = await self.client.get_openapi_highest_elevated_version(IP_SPACES_ENDPOINT)
        config.id = self.ip_space.id
        url = self.client.openapi_build_endpoint(IP_SPACES_ENDPOINT, config.id or "")
        try:
            data = await self.client.openapi_put_item(api_version, url, None, config)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error updating IP Space: {e}") from e
        return self.wrap(IpSpaceModel.model_validate(data or {}))

    async def delete(self) -> None:
        if not self.ip_space.id:
            raise ValidationError("IP Space must have ID")
        api_version = await self.client.get_openapi_highest_elevated_version(IP_SPACES_ENDPOINT)
        url = self.client.openapi_build_endpoint(IP_SPACES_ENDPOINT, self.ip_space.id)
        try:
            await self.client.openapi_delete_item(api_version, url)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error deleting IP space: {e}") from e

"""Region Storage Policies (read only)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from .. import endpoints
from ..crud import CrudConfig, get_all_outer_entities, get_outer_entity
from ..exceptions import EntityNotFoundError, ValidationError
from ..models import RegionStoragePolicy as RegionStoragePolicyModel

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

LABEL_REGION_STORAGE_POLICY = "Region Storage Policy"

REGION_STORAGE_POLICIES_ENDPOINT = endpoints.OPENAPI_PATH_VCF + endpoints.REGION_STORAGE_POLICIES


class RegionStoragePolicy:
    inner_type = RegionStoragePolicyModel

    def __init__(self, client: VcdAPIClient, storage_policy: RegionStoragePolicyModel | None = None) -> None:
        self.client = client
        self.storage_policy = storage_policy if storage_policy is not None else RegionStoragePolicyModel()

    def wrap(self, inner: RegionStoragePolicyModel) -> RegionStoragePolicy:
        return RegionStoragePolicy(self.client, inner)

    def __repr__(self) -> str:
        return f"RegionStoragePolicy(id={self.storage_policy.id!r}, name={self.storage_policy.name!r})"

    @classmethod
    async def get_all(
        cls,
        client: VcdAPIClient,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[RegionStoragePolicy]:
        c = CrudConfig(
            entity_label=LABEL_REGION_STORAGE_POLICY,
            endpoint=REGION_STORAGE_POLICIES_ENDPOINT,
            query_parameters=query_parameters,
        )
        return await get_all_outer_entities(client, cls(client), c)

    @classmethod
    async def get_by_name(cls, client: VcdAPIClient, name: str) -> RegionStoragePolicy:
        """Return the first policy with this name.

        The same policy name can exist in several Regions; the first match wins.
        """
        if not name:
            raise ValidationError(f"{LABEL_REGION_STORAGE_POLICY} lookup requires name")
        filtered = await cls.get_all(client, {"filter": f"name=={name}"})
        if not filtered:
            raise EntityNotFoundError(f"found 0 storage policies with name '{name}'")
        return await cls.get_by_id(client, filtered[0].storage_policy.id or "")

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, policy_id: str) -> RegionStoragePolicy:
        c = CrudConfig(
            entity_label=LABEL_REGION_STORAGE_POLICY,
            endpoint=REGION_STORAGE_POLICIES_ENDPOINT,
            endpoint_params=[policy_id],
        )
        return await get_outer_entity(client, cls(client), c)

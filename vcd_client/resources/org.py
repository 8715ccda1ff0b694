"""Tenant Manager Organizations and their settings.

Every call here requires a Tenant Manager instance.

Example:
    >>> org = await TmOrg.create(client, TmOrgModel(name="acme", display_name="ACME"))
    >>> settings = await org.get_networking_settings()
    >>> await org.disable()
    >>> await org.delete()
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from .. import endpoints
from ..api_client import get_tenant_context_headers
from ..crud import (
    CrudConfig,
    create_outer_entity,
    delete_entity_by_id,
    get_all_outer_entities,
    get_inner_entity,
    get_outer_entity,
    update_inner_entity,
    update_outer_entity,
)
from ..exceptions import ValidationError
from ..generic import one_or_error
from ..models import TmOrg as TmOrgModel
from ..models import TmOrgNetworkingSettings, TmOrgSettings

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

LABEL_ORGANIZATION = "Organization"
LABEL_ORGANIZATION_NETWORKING_SETTINGS = "Organization Networking Settings"
LABEL_ORGANIZATION_SETTINGS = "Organization Settings"

ORGS_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.ORGS


class TmOrg:
    inner_type = TmOrgModel

    def __init__(self, client: VcdAPIClient, org: TmOrgModel | None = None) -> None:
        self.client = client
        self.org = org if org is not None else TmOrgModel()

    def wrap(self, inner: TmOrgModel) -> TmOrg:
        return TmOrg(self.client, inner)

    def __repr__(self) -> str:
        return f"TmOrg(id={self.org.id!r}, name={self.org.name!r})"

    def _crud_config(self, *endpoint_params: str) -> CrudConfig:
        return CrudConfig(
            entity_label=LABEL_ORGANIZATION,
            endpoint=ORGS_ENDPOINT,
            endpoint_params=endpoint_params,
            requires_tm=True,
        )

    @classmethod
    async def create(cls, client: VcdAPIClient, config: TmOrgModel) -> TmOrg:
        outer = cls(client)
        return await create_outer_entity(client, outer, outer._crud_config(), config)

    @classmethod
    async def get_all(cls, client: VcdAPIClient, query_parameters: Mapping[str, str] | None = None) -> list[TmOrg]:
        outer = cls(client)
        c = outer._crud_config()
        c.query_parameters = query_parameters
        return await get_all_outer_entities(client, outer, c)

    @classmethod
    async def get_by_name(cls, client: VcdAPIClient, name: str) -> TmOrg:
        if not name:
            raise ValidationError(f"{LABEL_ORGANIZATION} lookup requires name")
        filtered = await cls.get_all(client, {"filter": f"name=={name}"})
        single = one_or_error("name", name, filtered)
        return await cls.get_by_id(client, single.org.id or "")

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, org_id: str) -> TmOrg:
        outer = cls(client)
        return await get_outer_entity(client, outer, outer._crud_config(org_id))

    async def update(self, config: TmOrgModel) -> TmOrg:
        return await update_outer_entity(self.client, self, self._crud_config(self.org.id or ""), config)

    async def delete(self) -> None:
        await delete_entity_by_id(self.client, self._crud_config(self.org.id or ""))

    async def disable(self) -> None:
        """Disable the Organization. Enabled Organizations cannot be deleted."""
        self.org.is_enabled = False
        await self.update(self.org)

    def _networking_settings_config(self) -> CrudConfig:
        return CrudConfig(
            entity_label=LABEL_ORGANIZATION_NETWORKING_SETTINGS,
            endpoint=endpoints.OPENAPI_PATH_V1 + endpoints.TM_ORG_NETWORKING_SETTINGS,
            endpoint_params=[self.org.id or ""],
            requires_tm=True,
        )

    async def get_networking_settings(self) -> TmOrgNetworkingSettings:
        return await get_inner_entity(self.client, self._networking_settings_config(), TmOrgNetworkingSettings)

    async def update_networking_settings(self, config: TmOrgNetworkingSettings) -> TmOrgNetworkingSettings:
        return await update_inner_entity(
            self.client, self._networking_settings_config(), TmOrgNetworkingSettings, config
        )

    def _settings_config(self) -> CrudConfig:
        # The settings endpoint has no Org in its path, it is selected by tenant context
        return CrudConfig(
            entity_label=LABEL_ORGANIZATION_SETTINGS,
            endpoint=endpoints.OPENAPI_PATH_VCF + endpoints.TM_ORG_SETTINGS,
            additional_header=get_tenant_context_headers(self.org.id or "", self.org.name),
            requires_tm=True,
        )

    async def get_settings(self) -> TmOrgSettings:
        return await get_inner_entity(self.client, self._settings_config(), TmOrgSettings)

    async def update_settings(self, config: TmOrgSettings) -> TmOrgSettings:
        return await update_inner_entity(self.client, self._settings_config(), TmOrgSettings, config)

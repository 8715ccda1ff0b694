"""Tenant Manager Organization VDCs (``vcf/virtualDatacenters``)."""

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
    update_outer_entity,
)
from ..exceptions import ValidationError
from ..generic import one_or_error
from ..models import TmVdc as TmVdcModel

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

LABEL_TM_ORG_VDC = "TM Org Vdc"

TM_VDCS_ENDPOINT = endpoints.OPENAPI_PATH_VCF + endpoints.TM_VDCS


def _crud_config(*endpoint_params: str, query_parameters: Mapping[str, str] | None = None) -> CrudConfig:
    return CrudConfig(
        entity_label=LABEL_TM_ORG_VDC,
        endpoint=TM_VDCS_ENDPOINT,
        endpoint_params=endpoint_params,
        query_parameters=query_parameters,
        requires_tm=True,
    )


class TmVdc:
    inner_type = TmVdcModel

    def __init__(self, client: VcdAPIClient, vdc: TmVdcModel | None = None) -> None:
        self.client = client
        self.vdc = vdc if vdc is not None else TmVdcModel()

    def wrap(self, inner: TmVdcModel) -> TmVdc:
        return TmVdc(self.client, inner)

    def __repr__(self) -> str:
        return f"TmVdc(id={self.vdc.id!r}, name={self.vdc.name!r})"

    @classmethod
    async def create(cls, client: VcdAPIClient, config: TmVdcModel) -> TmVdc:
        return await create_outer_entity(client, cls(client), _crud_config(), config)

    @classmethod
    async def get_all(cls, client: VcdAPIClient, query_parameters: Mapping[str, str] | None = None) -> list[TmVdc]:
        return await get_all_outer_entities(client, cls(client), _crud_config(query_parameters=query_parameters))

    @classmethod
    async def get_by_name(cls, client: VcdAPIClient, name: str) -> TmVdc:
        if not name:
            raise ValidationError(f"{LABEL_TM_ORG_VDC} lookup requires name")
        filtered = await cls.get_all(client, {"filter": f"name=={name}"})
        return one_or_error("name", name, filtered)

    @classmethod
    async def get_by_name_and_org_id(cls, client: VcdAPIClient, name: str, org_id: str) -> TmVdc:
        """VDC names are unique per Organization only."""
        if not name or not org_id:
            raise ValidationError(f"{LABEL_TM_ORG_VDC} lookup requires name and Org ID to be present")
        filtered = await cls.get_all(client, {"filter": f"org.id=={org_id};name=={name}"})
        return one_or_error("name", name, filtered)

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, vdc_id: str) -> TmVdc:
        return await get_outer_entity(client, cls(client), _crud_config(vdc_id))

    async def update(self, config: TmVdcModel) -> TmVdc:
        return await update_outer_entity(self.client, self, _crud_config(self.vdc.id or ""), config)

    async def delete(self) -> None:
        await delete_entity_by_id(self.client, _crud_config(self.vdc.id or ""))

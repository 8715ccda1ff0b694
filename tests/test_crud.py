"""Tests for generic CRUD helpers."""

import json

import pytest

from conftest import pages
from vcd_client import endpoints
from vcd_client.crud import (
    CrudConfig,
    create_inner_entity,
    create_outer_entity,
    delete_entity_by_id,
    get_all_outer_entities,
    get_inner_entity,
    update_outer_entity,
    url_from_endpoint,
)
from vcd_client.exceptions import ValidationError, VcdError, contains_not_found
from vcd_client.models import EdgeGateway
from vcd_client.resources import NsxtEdgeGateway

EDGE_GATEWAYS = endpoints.OPENAPI_PATH_V1 + endpoints.EDGE_GATEWAYS
GATEWAYS_PATH = "/cloudapi/1.0.0/edgeGateways/"


def gateway_config(*params, **kwargs):
    return CrudConfig(entity_label="Edge Gateway", endpoint=EDGE_GATEWAYS, endpoint_params=params, **kwargs)


class TestUrlFromEndpoint:
    """Tests for endpoint template filling."""

    def test_placeholders_in_order(self):
        """Test that placeholders are filled in order."""
        assert url_from_endpoint("entities/%s/behaviors/%s/invocations", ["a", "b"]) == (
            "entities/a/behaviors/b/invocations"
        )

    def test_extra_params_are_suffixes(self):
        """Test that params without placeholder are appended."""
        assert url_from_endpoint("edgeGateways/", ["gw-1"]) == "edgeGateways/gw-1"
        assert url_from_endpoint("edgeGateways/%s/nat/rules/", ["gw-1", "rule-1"]) == (
            "edgeGateways/gw-1/nat/rules/rule-1"
        )

    def test_missing_params(self):
        """Test that unfilled placeholders are rejected."""
        with pytest.raises(ValidationError):
            url_from_endpoint("entities/%s/behaviors/%s/invocations", ["a"])


class TestCrudConfig:
    """Tests for CrudConfig validation."""

    def test_valid(self):
        """Test a complete config."""
        gateway_config("gw-1").validate()

    def test_missing_label(self):
        """Test that the label is mandatory."""
        with pytest.raises(ValidationError):
            CrudConfig(entity_label="", endpoint=EDGE_GATEWAYS).validate()

    def test_missing_endpoint(self):
        """Test that the endpoint is mandatory."""
        with pytest.raises(ValidationError):
            CrudConfig(entity_label="Edge Gateway", endpoint="").validate()

    def test_empty_param(self):
        """Test that empty endpoint params are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            gateway_config("").validate()
        assert "Edge Gateway" in str(exc_info.value)


class TestInnerEntities:
    """Tests for the model level CRUD functions."""

    @pytest.mark.asyncio
    async def test_get_uses_elevated_version(self, vcd_client, fake_vcd):
        """Test that reads use the highest elevated version available."""
        fake_vcd.add_json("GET", GATEWAYS_PATH + "gw-1", {"id": "gw-1", "name": "edge"})

        gateway = await get_inner_entity(vcd_client, gateway_config("gw-1"), EdgeGateway)

        assert isinstance(gateway, EdgeGateway)
        assert gateway.name == "edge"
        request = fake_vcd.calls("GET", GATEWAYS_PATH + "gw-1")[0]
        assert request.headers["Accept"] == "application/json;version=37.1"

    @pytest.mark.asyncio
    async def test_get_not_found_keeps_sentinel(self, vcd_client, fake_vcd):
        """Test that wrapped not found errors can still be recognized."""
        fake_vcd.add_json("GET", GATEWAYS_PATH + "gw-1", {"message": "no access"}, status=403)

        with pytest.raises(VcdError) as exc_info:
            await get_inner_entity(vcd_client, gateway_config("gw-1"), EdgeGateway)
        assert contains_not_found(exc_info.value)
        assert "error retrieving entity of type 'Edge Gateway'" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_create(self, vcd_client, fake_vcd):
        """Test creating an entity."""
        fake_vcd.add_json("POST", GATEWAYS_PATH, {"id": "gw-1", "name": "edge"}, status=201)

        gateway = await create_inner_entity(vcd_client, gateway_config(), EdgeGateway, EdgeGateway(name="edge"))

        assert gateway.id == "gw-1"
        assert json.loads(fake_vcd.calls("POST", GATEWAYS_PATH)[0].content)["name"] == "edge"

    @pytest.mark.asyncio
    async def test_create_error_is_labelled(self, vcd_client, fake_vcd):
        """Test that creation errors name the entity type."""
        fake_vcd.add_json("POST", GATEWAYS_PATH, {"message": "invalid"}, status=400)

        with pytest.raises(VcdError) as exc_info:
            await create_inner_entity(vcd_client, gateway_config(), EdgeGateway, {"name": "edge"})
        assert "error creating entity of type 'Edge Gateway'" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_delete(self, vcd_client, fake_vcd):
        """Test deleting an entity."""
        fake_vcd.add_json("DELETE", GATEWAYS_PATH + "gw-1", None, status=204)

        await delete_entity_by_id(vcd_client, gateway_config("gw-1"))

        assert len(fake_vcd.calls("DELETE", GATEWAYS_PATH + "gw-1")) == 1

    @pytest.mark.asyncio
    async def test_invalid_config_sends_nothing(self, vcd_client, fake_vcd):
        """Test that validation happens before any request."""
        with pytest.raises(ValidationError):
            await get_inner_entity(vcd_client, gateway_config(""), EdgeGateway)
        assert fake_vcd.requests == []

    @pytest.mark.asyncio
    async def test_requires_tm(self, vcd_client, fake_vcd):
        """Test that TM-only entities are rejected on VCD."""
        with pytest.raises(VcdError) as exc_info:
            await get_inner_entity(vcd_client, gateway_config("gw-1", requires_tm=True), EdgeGateway)
        assert "requires TM" in str(exc_info.value)
        assert fake_vcd.calls("GET", GATEWAYS_PATH + "gw-1") == []


class TestOuterEntities:
    """Tests for the wrapper level CRUD functions."""

    @pytest.mark.asyncio
    async def test_get_all_wraps(self, vcd_client, fake_vcd):
        """Test that every item is wrapped in the resource class."""
        fake_vcd.add_json("GET", GATEWAYS_PATH, pages([{"id": "a", "name": "one"}, {"id": "b", "name": "two"}]))

        gateways = await get_all_outer_entities(vcd_client, NsxtEdgeGateway(vcd_client), gateway_config())

        assert [type(g) for g in gateways] == [NsxtEdgeGateway, NsxtEdgeGateway]
        assert [g.edge_gateway.name for g in gateways] == ["one", "two"]
        assert gateways[0].client is vcd_client

    @pytest.mark.asyncio
    async def test_create_requires_config(self, vcd_client):
        """Test that an empty config is rejected."""
        with pytest.raises(ValidationError):
            await create_outer_entity(vcd_client, NsxtEdgeGateway(vcd_client), gateway_config(), None)

    @pytest.mark.asyncio
    async def test_update_requires_config(self, vcd_client):
        """Test that an empty config is rejected on update."""
        with pytest.raises(ValidationError):
            await update_outer_entity(vcd_client, NsxtEdgeGateway(vcd_client), gateway_config("gw-1"), None)

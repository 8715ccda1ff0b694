"""Tests for API version negotiation."""

import pytest
from packaging.specifiers import InvalidSpecifier

from conftest import xml_response
from vcd_client import endpoints
from vcd_client.exceptions import VcdError
from vcd_client.versions import int_list_to_version, parse_constraint, version_matches

NAT_RULES = endpoints.OPENAPI_PATH_V1 + endpoints.NSXT_NAT_RULES
EDGE_GATEWAYS = endpoints.OPENAPI_PATH_V1 + endpoints.EDGE_GATEWAYS
IP_SPACES = endpoints.OPENAPI_PATH_V1 + endpoints.IP_SPACES

ADMIN_XML = (
    '<VCloud xmlns="http://www.vmware.com/vcloud/v1.5" name="vCloud">'
    "<Description>10.5.1.22833860 Fri Nov 10 2023 09:31:34 GMT</Description></VCloud>"
)


class TestConstraints:
    """Tests for version constraint parsing."""

    @pytest.mark.parametrize(
        "version, constraint, expected",
        [
            ("37.0", ">= 37.0", True),
            ("37.0", "> 37.0", False),
            ("36.3", "<= 37.0", True),
            ("37.0", "= 37.0", True),
            ("37.0", "37.0", True),
            ("37.1", "== 37.0", False),
            ("37.1", ">= 37.0, < 38", True),
            ("38.0", ">= 37.0, < 38", False),
            ("37.2", "!= 37.1", True),
        ],
    )
    def test_version_matches(self, version, constraint, expected):
        """Test matching of versions against constraints."""
        assert version_matches(version, constraint) is expected

    def test_parse_constraint_rejects_empty(self):
        """Test that an empty constraint is rejected."""
        with pytest.raises(InvalidSpecifier):
            parse_constraint(" , ")

    def test_int_list_to_version(self):
        """Test zeroing of insignificant digits."""
        assert int_list_to_version([10, 4, 1, 2000], 2) == "10.4.0.0"
        assert int_list_to_version([10, 4, 1, 2000], 4) == "10.4.1.2000"


class TestServerVersions:
    """Tests for checks against the versions advertised by the server."""

    @pytest.mark.asyncio
    async def test_max_supported_version(self, vcd_client):
        """Test finding the highest advertised version."""
        assert await vcd_client.max_supported_version() == "38.1"

    @pytest.mark.asyncio
    async def test_versions_are_cached(self, vcd_client, fake_vcd):
        """Test that /api/versions is read once per session."""
        await vcd_client.api_vcd_max_version_is(">= 37.0")
        await vcd_client.api_vcd_max_version_is("< 40.0")
        assert len(fake_vcd.calls("GET", "/api/versions")) == 1

    @pytest.mark.asyncio
    async def test_api_vcd_max_version_is(self, vcd_client):
        """Test constraint checks on the server maximum."""
        assert await vcd_client.api_vcd_max_version_is(">= 38.0") is True
        assert await vcd_client.api_vcd_max_version_is("< 38.0") is False
        assert await vcd_client.api_vcd_max_version_is("nonsense >") is False

    def test_api_client_version_is(self, vcd_client):
        """Test constraint checks on the client version."""
        assert vcd_client.api_client_version_is("= 37.0") is True
        assert vcd_client.api_client_version_is("> 37.0") is False

    @pytest.mark.asyncio
    async def test_validate_api_version(self, vcd_client):
        """Test that a client version unknown to the server is rejected."""
        await vcd_client.validate_api_version()

        vcd_client.api_version = "39.0"
        with pytest.raises(VcdError) as exc_info:
            await vcd_client.validate_api_version()
        assert "39.0" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_is_tm(self, vcd_client, fake_vcd):
        """Test Tenant Manager detection."""
        assert await vcd_client.is_tm() is False

        fake_vcd.set_versions(["39.0", "40.0"])
        vcd_client.supported_versions = None
        assert await vcd_client.is_tm() is True

    @pytest.mark.asyncio
    async def test_get_specific_api_version_on_condition(self, vcd_client):
        """Test choosing a version depending on the server."""
        assert await vcd_client.get_specific_api_version_on_condition(">= 38.0", "38.0") == "38.0"
        assert await vcd_client.get_specific_api_version_on_condition(">= 39.0", "39.0") == "37.0"

    @pytest.mark.asyncio
    async def test_get_vcd_version(self, vcd_client, fake_vcd):
        """Test reading the product version from /api/admin."""
        fake_vcd.add("GET", "/api/admin", xml_response(ADMIN_XML))

        version = await vcd_client.get_vcd_version()
        assert version.version == "10.5.1.22833860"
        assert version.time.year == 2023

        assert await vcd_client.get_vcd_short_version() == "10.5.1"
        assert await vcd_client.version_equal_or_greater("10.5.0", 3) is True
        assert await vcd_client.version_equal_or_greater("10.6", 2) is False


class TestEndpointVersions:
    """Tests for per-endpoint version selection."""

    @pytest.mark.asyncio
    async def test_endpoint_compatibility_uses_client_version(self, vcd_client):
        """Test that the client version wins when above the endpoint minimum."""
        assert await vcd_client.check_openapi_endpoint_compatibility(EDGE_GATEWAYS) == "37.0"

    @pytest.mark.asyncio
    async def test_endpoint_compatibility_uses_minimum(self, vcd_client):
        """Test that the endpoint minimum wins when above the client version."""
        assert await vcd_client.check_openapi_endpoint_compatibility(IP_SPACES) == "37.1"

    @pytest.mark.asyncio
    async def test_endpoint_compatibility_unknown_endpoint(self, vcd_client):
        """Test that endpoints without a known minimum are rejected."""
        with pytest.raises(VcdError) as exc_info:
            await vcd_client.check_openapi_endpoint_compatibility("1.0.0/unknown/")
        assert "is not defined" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_endpoint_compatibility_server_too_old(self, vcd_client, fake_vcd):
        """Test that endpoints newer than the server are rejected."""
        fake_vcd.set_versions(["36.0", "37.0"])
        with pytest.raises(VcdError) as exc_info:
            await vcd_client.check_openapi_endpoint_compatibility(IP_SPACES)
        assert "37.1" in str(exc_info.value)
        assert "'37.0'" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_elevated_version_picked(self, vcd_client):
        """Test that the highest elevated version the server supports is used."""
        # 39.0 is not supported by the server, 37.1 is
        assert await vcd_client.get_openapi_highest_elevated_version(EDGE_GATEWAYS) == "37.1"

    @pytest.mark.asyncio
    async def test_elevated_version_below_client_version(self, vcd_client):
        """Test that elevated versions below the client version are skipped."""
        # NAT rules elevate to 35.2 and 36.0, both lower than the client 37.0
        assert await vcd_client.get_openapi_highest_elevated_version(NAT_RULES) == "37.0"

    @pytest.mark.asyncio
    async def test_elevated_version_for_older_client(self, vcd_client):
        """Test elevation when the client asks for an older version."""
        vcd_client.api_version = "35.0"
        assert await vcd_client.get_openapi_highest_elevated_version(NAT_RULES) == "36.0"

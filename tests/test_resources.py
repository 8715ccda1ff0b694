"""Tests for the NSX-T, IP Space, RDE, extension and Tenant Manager wrappers."""

import json

import httpx
import pytest

from conftest import BASE_URL, DEFAULT_VERSIONS, pages, task_xml
from vcd_client.api_client import AUTH_CONTEXT_HEADER, TENANT_CONTEXT_HEADER
from vcd_client.exceptions import EntityNotFoundError, ValidationError, VcdError, contains_not_found
from vcd_client.models import ApiFilter as ApiFilterModel
from vcd_client.models import (
    BehaviorInvocation,
    EdgeGateway,
    NsxtFirewallRule,
    NsxtFirewallRuleContainer,
)
from vcd_client.models import DefinedEntity as DefinedEntityModel
from vcd_client.models import NsxtAlbPool as NsxtAlbPoolModel
from vcd_client.models import NsxtNatRule as NsxtNatRuleModel
from vcd_client.models import TmOrg as TmOrgModel
from vcd_client.models import TmOrgNetworkingSettings
from vcd_client.resources import (
    ApiFilter,
    DefinedEntity,
    DefinedEntityType,
    IpSpace,
    NsxtAlbPool,
    NsxtEdgeGateway,
    NsxtFirewall,
    NsxtNatRule,
    RegionStoragePolicy,
    TmOrg,
    TmVdc,
)
from vcd_client.resources import defined_entity as defined_entity_module

GATEWAY_ID = "urn:vcloud:gateway:1"
NAT_PATH = f"/cloudapi/1.0.0/edgeGateways/{GATEWAY_ID}/nat/rules/"
FIREWALL_PATH = f"/cloudapi/1.0.0/edgeGateways/{GATEWAY_ID}/firewall/rules"
ORG_ID = "urn:vcloud:org:11111111-2222-3333-4444-555555555555"
TM_VERSIONS = DEFAULT_VERSIONS + ("39.0", "40.0")


def task_location(task_id):
    return lambda request: httpx.Response(202, headers={"Location": f"{BASE_URL}/api/task/{task_id}"})


@pytest.fixture
def gateway(vcd_client):
    return NsxtEdgeGateway(vcd_client, EdgeGateway(id=GATEWAY_ID, name="edge"))


@pytest.fixture
def tm_vcd(fake_vcd):
    """Make the fake server advertise Tenant Manager API versions."""
    fake_vcd.set_versions(TM_VERSIONS)
    return fake_vcd


def nat_rule_json(rule_id, name, **kwargs):
    return {
        "id": rule_id,
        "name": name,
        "enabled": True,
        "type": "DNAT",
        "externalAddresses": "1.1.1.1",
        "internalAddresses": "192.168.1.10",
        **kwargs,
    }


class TestNatRules:
    """Tests for NSX-T NAT rules."""

    @pytest.mark.asyncio
    async def test_get_by_name(self, gateway, fake_vcd):
        """Test finding a rule among all rules of a gateway."""
        fake_vcd.add_json("GET", NAT_PATH, pages([nat_rule_json("r1", "web"), nat_rule_json("r2", "ssh")]))

        rule = await NsxtNatRule.get_by_name(gateway, "ssh")

        assert rule.nat_rule.id == "r2"
        assert rule.edge_gateway_id == GATEWAY_ID

    @pytest.mark.asyncio
    async def test_get_by_name_not_found(self, gateway, fake_vcd):
        """Test that a missing rule raises the not found sentinel."""
        fake_vcd.add_json("GET", NAT_PATH, pages([nat_rule_json("r1", "web")]))

        with pytest.raises(EntityNotFoundError):
            await NsxtNatRule.get_by_name(gateway, "ssh")

    @pytest.mark.asyncio
    async def test_get_by_name_duplicate(self, gateway, fake_vcd):
        """Test that duplicate names are an error."""
        fake_vcd.add_json("GET", NAT_PATH, pages([nat_rule_json("r1", "web"), nat_rule_json("r2", "web")]))

        with pytest.raises(VcdError) as exc_info:
            await NsxtNatRule.get_by_name(gateway, "web")
        assert "found 2 NSX-T NAT rules" in str(exc_info.value)
        assert not contains_not_found(exc_info.value)

    @pytest.mark.asyncio
    async def test_create_finds_rule_by_fields(self, gateway, fake_vcd):
        """Test that the created rule is matched on its settable fields."""
        fake_vcd.add("POST", NAT_PATH, task_location("t1"))
        fake_vcd.add_task("t1", task_xml("t1"))
        fake_vcd.add_json(
            "GET",
            NAT_PATH,
            pages([
                nat_rule_json("r1", "web", internalAddresses="192.168.1.99"),
                nat_rule_json("r2", "web"),
            ]),
        )
        config = NsxtNatRuleModel(
            name="web", type="DNAT", external_addresses="1.1.1.1", internal_addresses="192.168.1.10"
        )

        rule = await NsxtNatRule.create(gateway, config)

        assert rule.nat_rule.id == "r2"
        body = json.loads(fake_vcd.calls("POST", NAT_PATH)[0].content)
        assert body["externalAddresses"] == "1.1.1.1"
        assert "id" not in body

    @pytest.mark.asyncio
    async def test_create_failed_task(self, gateway, fake_vcd):
        """Test that a failed creation task is reported."""
        fake_vcd.add("POST", NAT_PATH, task_location("t1"))
        fake_vcd.add_task("t1", task_xml("t1", status="error", error_message="overlapping rule"))

        with pytest.raises(VcdError) as exc_info:
            await NsxtNatRule.create(gateway, NsxtNatRuleModel(name="web"))
        assert "overlapping rule" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_update_and_delete(self, gateway, fake_vcd):
        """Test updating and deleting a rule by its ID."""
        fake_vcd.add_json("PUT", NAT_PATH + "r1", nat_rule_json("r1", "web-2"))
        fake_vcd.add("DELETE", NAT_PATH + "r1", lambda request: httpx.Response(204))
        rule = NsxtNatRule(gateway.client, GATEWAY_ID, NsxtNatRuleModel.model_validate(nat_rule_json("r1", "web")))

        updated = await rule.update(NsxtNatRuleModel(id="r1", name="web-2"))
        await rule.delete()

        assert updated.nat_rule.name == "web-2"
        assert len(fake_vcd.calls("DELETE", NAT_PATH + "r1")) == 1

    @pytest.mark.asyncio
    async def test_delete_requires_id(self, gateway, fake_vcd):
        """Test that a rule without ID cannot be deleted."""
        with pytest.raises(ValidationError):
            await NsxtNatRule(gateway.client, GATEWAY_ID).delete()
        assert fake_vcd.calls("DELETE", NAT_PATH) == []


class TestFirewall:
    """Tests for NSX-T firewall rules."""

    @pytest.mark.asyncio
    async def test_get(self, gateway, fake_vcd):
        """Test reading the three rule lists."""
        fake_vcd.add_json(
            "GET",
            FIREWALL_PATH,
            {
                "systemRules": [{"id": "s1", "name": "system"}],
                "defaultRules": [{"id": "d1", "name": "default", "actionValue": "DROP"}],
                "userDefinedRules": [{"id": "u1", "name": "allow-web", "actionValue": "ALLOW"}],
            },
        )

        firewall = await NsxtFirewall.get(gateway)

        assert firewall.edge_gateway_id == GATEWAY_ID
        assert [r.name for r in firewall.rules.user_defined_rules] == ["allow-web"]
        assert firewall.rules.default_rules[0].action_value == "DROP"

    @pytest.mark.asyncio
    async def test_update_puts_container(self, gateway, fake_vcd):
        """Test that updates PUT the whole user defined list."""
        fake_vcd.add_json("PUT", FIREWALL_PATH, {"userDefinedRules": [{"id": "u1", "name": "allow-web"}]})
        rules = NsxtFirewallRuleContainer(
            user_defined_rules=[NsxtFirewallRule(name="allow-web", action_value="ALLOW", direction="IN_OUT")]
        )

        firewall = await NsxtFirewall.update(gateway, rules)

        body = json.loads(fake_vcd.calls("PUT", FIREWALL_PATH)[0].content)
        assert body == {
            "userDefinedRules": [
                {"name": "allow-web", "actionValue": "ALLOW", "enabled": True, "direction": "IN_OUT"}
            ]
        }
        assert firewall.rules.user_defined_rules[0].id == "u1"

    @pytest.mark.asyncio
    async def test_delete_rule_by_id(self, gateway, fake_vcd):
        """Test deleting one rule."""
        fake_vcd.add("DELETE", FIREWALL_PATH + "/u1", lambda request: httpx.Response(204))
        firewall = NsxtFirewall(gateway.client, GATEWAY_ID)

        await firewall.delete_rule_by_id("u1")

        assert len(fake_vcd.calls("DELETE", FIREWALL_PATH + "/u1")) == 1
        with pytest.raises(ValidationError):
            await firewall.delete_rule_by_id("")

    @pytest.mark.asyncio
    async def test_delete_all_requires_gateway(self, vcd_client):
        """Test that deleting all rules needs a gateway ID."""
        with pytest.raises(ValidationError):
            await NsxtFirewall(vcd_client, "").delete_all_rules()


class TestIpSpaces:
    """Tests for IP Spaces."""

    SUMMARIES = "/cloudapi/1.0.0/ipSpaces/summaries"

    @pytest.mark.asyncio
    async def test_get_all_reads_each_space(self, vcd_client, fake_vcd):
        """Test that full IP Spaces are read after the summaries."""
        fake_vcd.add_json("GET", self.SUMMARIES, pages([{"id": "ips-1", "name": "a"}, {"id": "ips-2", "name": "b"}]))
        fake_vcd.add_json("GET", "/cloudapi/1.0.0/ipSpaces/ips-1", {"id": "ips-1", "name": "a", "type": "PUBLIC"})
        fake_vcd.add_json("GET", "/cloudapi/1.0.0/ipSpaces/ips-2", {"id": "ips-2", "name": "b", "type": "PRIVATE"})

        spaces = await IpSpace.get_all(vcd_client)

        assert [s.ip_space.type for s in spaces] == ["PUBLIC", "PRIVATE"]

    @pytest.mark.asyncio
    async def test_get_by_name_and_org_id(self, vcd_client, fake_vcd):
        """Test that private lookups add the Org filter."""
        fake_vcd.add_json("GET", self.SUMMARIES, pages([{"id": "ips-1", "name": "a"}]))
        fake_vcd.add_json("GET", "/cloudapi/1.0.0/ipSpaces/ips-1", {"id": "ips-1", "name": "a", "type": "PRIVATE"})

        space = await IpSpace.get_by_name_and_org_id(vcd_client, "a", ORG_ID)

        assert space.ip_space.id == "ips-1"
        params = fake_vcd.calls("GET", self.SUMMARIES)[0].url.params
        assert params["filter"] == f"name==a;orgRef.id=={ORG_ID}"

    @pytest.mark.asyncio
    async def test_get_by_name_not_found(self, vcd_client, fake_vcd):
        """Test that an unknown name raises the not found sentinel."""
        fake_vcd.add_json("GET", self.SUMMARIES, pages([]))

        with pytest.raises(EntityNotFoundError):
            await IpSpace.get_by_name(vcd_client, "a")

    @pytest.mark.asyncio
    async def test_lookups_require_arguments(self, vcd_client, fake_vcd):
        """Test that empty names and IDs are rejected locally."""
        with pytest.raises(ValidationError):
            await IpSpace.get_by_name(vcd_client, "")
        with pytest.raises(ValidationError):
            await IpSpace.get_by_name_and_org_id(vcd_client, "a", "")
        with pytest.raises(ValidationError):
            await IpSpace.get_by_id(vcd_client, "")
        assert fake_vcd.requests == []


class TestAlbPools:
    """Tests for NSX-T ALB pools."""

    SUMMARIES = f"/cloudapi/1.0.0/edgeGateways/{GATEWAY_ID}/loadBalancer/poolSummaries"

    @pytest.mark.asyncio
    async def test_get_by_name(self, vcd_client, fake_vcd):
        """Test reading the complete pool after a summary match."""
        fake_vcd.add_json("GET", self.SUMMARIES, pages([{"id": "pool-1", "name": "web"}]))
        fake_vcd.add_json(
            "GET",
            "/cloudapi/1.0.0/loadBalancer/pools/pool-1",
            {"id": "pool-1", "name": "web", "members": [{"ipAddress": "10.0.0.5", "port": 80}]},
        )

        pool = await NsxtAlbPool.get_by_name(vcd_client, GATEWAY_ID, "web")

        assert pool.alb_pool.members[0].ip_address == "10.0.0.5"
        assert fake_vcd.calls("GET", self.SUMMARIES)[0].url.params["filter"] == "name==web"

    @pytest.mark.asyncio
    async def test_get_by_name_not_found(self, vcd_client, fake_vcd):
        """Test that no summaries means not found."""
        fake_vcd.add_json("GET", self.SUMMARIES, pages([]))

        with pytest.raises(EntityNotFoundError) as exc_info:
            await NsxtAlbPool.get_by_name(vcd_client, GATEWAY_ID, "web")
        assert "could not find ALB Pool with Name 'web'" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_update_requires_id(self, vcd_client):
        """Test that updates need the pool ID in the config."""
        with pytest.raises(ValidationError):
            await NsxtAlbPool(vcd_client).update(NsxtAlbPoolModel(name="web"))


class TestDefinedEntities:
    """Tests for Runtime Defined Entities and their types."""

    TYPES_PATH = "/cloudapi/1.0.0/entityTypes/"
    TYPE_URN = "urn:vcloud:type:vmware:app:1.0.0"
    ENTITIES_PATH = "/cloudapi/1.0.0/entities/types/vmware/app/1.0.0"

    @pytest.mark.asyncio
    async def test_get_type(self, vcd_client, fake_vcd):
        """Test looking up a type by vendor, namespace and version."""
        fake_vcd.add_json(
            "GET", self.TYPES_PATH, pages([{"id": self.TYPE_URN, "vendor": "vmware", "nss": "app", "version": "1.0.0"}])
        )

        rde_type = await DefinedEntityType.get(vcd_client, "vmware", "app", "1.0.0")

        assert rde_type.entity_type.id == self.TYPE_URN
        params = fake_vcd.calls("GET", self.TYPES_PATH)[0].url.params
        assert params["filter"] == "vendor==vmware;nss==app;version==1.0.0"

    @pytest.mark.asyncio
    async def test_get_type_not_found(self, vcd_client, fake_vcd):
        """Test that an unknown type raises the not found sentinel."""
        fake_vcd.add_json("GET", self.TYPES_PATH, pages([]))

        with pytest.raises(EntityNotFoundError):
            await DefinedEntityType.get(vcd_client, "vmware", "app", "1.0.0")

    @pytest.mark.asyncio
    async def test_types_require_sys_admin(self, vcd_client, fake_vcd):
        """Test that tenants cannot manage types."""
        vcd_client.is_sys_admin = False

        with pytest.raises(VcdError) as exc_info:
            await DefinedEntityType.get_all(vcd_client)
        assert "requires System user" in str(exc_info.value)
        assert fake_vcd.requests == []

    @pytest.mark.asyncio
    async def test_create_waits_for_pre_created(self, vcd_client, fake_vcd, monkeypatch):
        """Test that creation polls until the new entity shows up as PRE_CREATED."""
        monkeypatch.setattr(defined_entity_module, "PRE_CREATED_POLL_DELAY", 0)
        fake_vcd.add("POST", self.TYPES_PATH + self.TYPE_URN, task_location("t1"))
        fake_vcd.add(
            "GET",
            self.ENTITIES_PATH,
            lambda request: httpx.Response(200, json=pages([])),
            lambda request: httpx.Response(
                200,
                json=pages([
                    {"id": "urn:vcloud:entity:vmware:app:1", "name": "one", "state": "RESOLVED"},
                    {"id": "urn:vcloud:entity:vmware:app:2", "name": "one", "state": "PRE_CREATED"},
                ]),
            ),
        )

        rde = await DefinedEntity.create(
            vcd_client, "vmware", "app", "1.0.0", DefinedEntityModel(name="one", entity={"size": 1})
        )

        assert rde.defined_entity.id == "urn:vcloud:entity:vmware:app:2"
        assert len(fake_vcd.calls("GET", self.ENTITIES_PATH)) == 2
        body = json.loads(fake_vcd.calls("POST", self.TYPES_PATH + self.TYPE_URN)[0].content)
        assert body == {"name": "one", "entity": {"size": 1}}

    @pytest.mark.asyncio
    async def test_create_validation(self, vcd_client, fake_vcd):
        """Test local checks before creating an entity."""
        with pytest.raises(ValidationError):
            await DefinedEntity.create(vcd_client, "vmware", "app", "1.0.0", DefinedEntityModel(name="one"))
        with pytest.raises(ValidationError):
            await DefinedEntity.create(
                vcd_client,
                "vmware",
                "app",
                "1.0.0",
                DefinedEntityModel(name="one", entity_type="urn:vcloud:type:vmware:other:1.0.0", entity={"a": 1}),
            )
        assert fake_vcd.requests == []

    @pytest.mark.asyncio
    async def test_invoke_behavior(self, vcd_client, fake_vcd):
        """Test that the behavior result comes from the task."""
        entity_id = "urn:vcloud:entity:vmware:app:1"
        path = f"/cloudapi/1.0.0/entities/{entity_id}/behaviors/urn:vcloud:behavior:x/invocations"
        fake_vcd.add("POST", path, task_location("t1"))
        fake_vcd.add_task("t1", task_xml("t1", result="42"))
        rde = DefinedEntity(vcd_client, DefinedEntityModel(id=entity_id, name="one"))

        result = await rde.invoke_behavior("urn:vcloud:behavior:x", BehaviorInvocation(arguments={"n": 6}))

        assert result == "42"
        assert json.loads(fake_vcd.calls("POST", path)[0].content) == {"arguments": {"n": 6}}

    @pytest.mark.asyncio
    async def test_invoke_behavior_failure(self, vcd_client, fake_vcd):
        """Test that a failed behavior task is reported."""
        entity_id = "urn:vcloud:entity:vmware:app:1"
        path = f"/cloudapi/1.0.0/entities/{entity_id}/behaviors/urn:vcloud:behavior:x/invocations"
        fake_vcd.add("POST", path, task_location("t1"))
        fake_vcd.add_task("t1", task_xml("t1", status="error", error_message="hook failed"))
        rde = DefinedEntity(vcd_client, DefinedEntityModel(id=entity_id, name="one"))

        with pytest.raises(VcdError) as exc_info:
            await rde.invoke_behavior("urn:vcloud:behavior:x", BehaviorInvocation())
        assert "error invoking behavior" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invoke_behavior_requires_ids(self, vcd_client):
        """Test that entity and behavior IDs are required."""
        with pytest.raises(ValidationError):
            await DefinedEntity(vcd_client).invoke_behavior("b", BehaviorInvocation())
        with pytest.raises(ValidationError):
            await DefinedEntity(vcd_client, DefinedEntityModel(id="e")).invoke_behavior("", BehaviorInvocation())


class TestApiFilters:
    """Tests for API Filters."""

    PATH = "/cloudapi/1.0.0/extensions/api/filters/"

    @pytest.mark.asyncio
    async def test_create_and_get(self, vcd_client, fake_vcd):
        """Test creating a filter and reading it by ID."""
        created = {"id": "urn:vcloud:apiFilter:1", "urlMatcher": {"urlPattern": "/ext-api/.*", "urlScope": "EXT_API"}}
        fake_vcd.add_json("POST", self.PATH, created, status=201)
        fake_vcd.add_json("GET", self.PATH + "urn:vcloud:apiFilter:1", created)

        api_filter = await ApiFilter.create(vcd_client, ApiFilterModel.model_validate(created))
        fetched = await ApiFilter.get_by_id(vcd_client, "urn:vcloud:apiFilter:1")

        assert api_filter.api_filter.url_matcher.url_pattern == "/ext-api/.*"
        assert fetched.api_filter.id == api_filter.api_filter.id
        assert "version=38.1" in fake_vcd.calls("POST", self.PATH)[0].headers["Accept"]

    @pytest.mark.asyncio
    async def test_update_id_mismatch(self, vcd_client, fake_vcd):
        """Test that updating with a different ID is rejected."""
        api_filter = ApiFilter(vcd_client, ApiFilterModel(id="urn:vcloud:apiFilter:1"))

        with pytest.raises(ValidationError):
            await api_filter.update(ApiFilterModel(id="urn:vcloud:apiFilter:2"))
        with pytest.raises(ValidationError):
            await ApiFilter(vcd_client).update(ApiFilterModel())
        assert fake_vcd.requests == []


class TestTenantManager:
    """Tests for Tenant Manager only entities."""

    ORGS_PATH = "/cloudapi/1.0.0/orgs/"
    VDCS_PATH = "/cloudapi/vcf/virtualDatacenters/"
    POLICIES_PATH = "/cloudapi/vcf/regionStoragePolicies/"

    @pytest.mark.asyncio
    async def test_requires_tm(self, vcd_client, fake_vcd):
        """Test that TM entities are rejected on a classic VCD."""
        with pytest.raises(VcdError) as exc_info:
            await TmOrg.get_all(vcd_client)
        assert "requires TM" in str(exc_info.value)
        assert fake_vcd.calls("GET", self.ORGS_PATH) == []

    @pytest.mark.asyncio
    async def test_org_get_by_name(self, vcd_client, tm_vcd):
        """Test finding an Organization with the elevated API version."""
        tm_vcd.add_json("GET", self.ORGS_PATH, pages([{"id": ORG_ID, "name": "acme"}]))
        tm_vcd.add_json("GET", self.ORGS_PATH + ORG_ID, {"id": ORG_ID, "name": "acme", "isEnabled": True})

        org = await TmOrg.get_by_name(vcd_client, "acme")

        assert org.org.is_enabled is True
        assert "version=40.0" in tm_vcd.calls("GET", self.ORGS_PATH + ORG_ID)[0].headers["Accept"]

    @pytest.mark.asyncio
    async def test_org_disable(self, vcd_client, tm_vcd):
        """Test that disabling sends an update with isEnabled false."""
        tm_vcd.add_json("PUT", self.ORGS_PATH + ORG_ID, {"id": ORG_ID, "name": "acme", "isEnabled": False})
        org = TmOrg(vcd_client, TmOrgModel(id=ORG_ID, name="acme", display_name="ACME", is_enabled=True))

        await org.disable()

        body = json.loads(tm_vcd.calls("PUT", self.ORGS_PATH + ORG_ID)[0].content)
        assert body["isEnabled"] is False
        assert body["displayName"] == "ACME"

    @pytest.mark.asyncio
    async def test_org_settings_use_tenant_context(self, vcd_client, tm_vcd):
        """Test that Org settings are read in the tenant context of the Org."""
        tm_vcd.add_json("GET", "/cloudapi/vcf/settings/org", {"canCreateSubscribedLibraries": True})
        org = TmOrg(vcd_client, TmOrgModel(id=ORG_ID, name="acme"))

        await org.get_settings()

        headers = tm_vcd.calls("GET", "/cloudapi/vcf/settings/org")[0].headers
        assert headers[TENANT_CONTEXT_HEADER] == "11111111-2222-3333-4444-555555555555"
        assert headers[AUTH_CONTEXT_HEADER] == "acme"

    @pytest.mark.asyncio
    async def test_org_networking_settings_update(self, vcd_client, tm_vcd):
        """Test that networking settings are PUT under the Org path."""
        path = f"/cloudapi/1.0.0/orgs/{ORG_ID}/networkingSettings"
        tm_vcd.add_json("PUT", path, {"networkingTenancyEnabled": True, "orgNameForLogs": "acme"})
        org = TmOrg(vcd_client, TmOrgModel(id=ORG_ID, name="acme"))

        settings = await org.update_networking_settings(
            TmOrgNetworkingSettings(networking_tenancy_enabled=True, org_name_for_logs="acme")
        )

        assert settings.networking_tenancy_enabled is True
        body = json.loads(tm_vcd.calls("PUT", path)[0].content)
        assert body == {"networkingTenancyEnabled": True, "orgNameForLogs": "acme"}

    @pytest.mark.asyncio
    async def test_vdc_get_by_name_and_org_id(self, vcd_client, tm_vcd):
        """Test that VDC lookups filter by Org and name."""
        tm_vcd.add_json("GET", self.VDCS_PATH, pages([{"id": "vdc-1", "name": "vdc", "org": {"id": ORG_ID}}]))

        vdc = await TmVdc.get_by_name_and_org_id(vcd_client, "vdc", ORG_ID)

        assert vdc.vdc.id == "vdc-1"
        assert tm_vcd.calls("GET", self.VDCS_PATH)[0].url.params["filter"] == f"org.id=={ORG_ID};name==vdc"
        with pytest.raises(ValidationError):
            await TmVdc.get_by_name_and_org_id(vcd_client, "vdc", "")

    @pytest.mark.asyncio
    async def test_region_storage_policy_first_match(self, vcd_client, tm_vcd):
        """Test that the first policy with a name is returned."""
        tm_vcd.add_json(
            "GET", self.POLICIES_PATH, pages([{"id": "rsp-1", "name": "gold"}, {"id": "rsp-2", "name": "gold"}])
        )
        tm_vcd.add_json("GET", self.POLICIES_PATH + "rsp-1", {"id": "rsp-1", "name": "gold", "storageCapacityMB": 1024})

        policy = await RegionStoragePolicy.get_by_name(vcd_client, "gold")

        assert policy.storage_policy.storage_capacity_mb == 1024

    @pytest.mark.asyncio
    async def test_region_storage_policy_not_found(self, vcd_client, tm_vcd):
        """Test that an unknown policy raises the not found sentinel."""
        tm_vcd.add_json("GET", self.POLICIES_PATH, pages([]))

        with pytest.raises(EntityNotFoundError):
            await RegionStoragePolicy.get_by_name(vcd_client, "gold")

"""CloudAPI endpoint templates and their API version requirements.

Each template is relative to ``/cloudapi/``. Placeholders use ``%s`` and are
filled in the order given by the caller.
"""

from __future__ import annotations

OPENAPI_PATH_V1 = "1.0.0/"
OPENAPI_PATH_V2 = "2.0.0/"
OPENAPI_PATH_VCF = "vcf/"

SESSIONS_CURRENT = "sessions/current"
TOKENS = "tokens/"

EDGE_GATEWAYS = "edgeGateways/"
EDGE_GATEWAY_USED_IP_ADDRESSES = "edgeGateways/%s/usedIpAddresses"
NSXT_FIREWALL_RULES = "edgeGateways/%s/firewall/rules"
NSXT_NAT_RULES = "edgeGateways/%s/nat/rules/"
FIREWALL_GROUPS = "firewallGroups/"
APP_PORT_PROFILES = "applicationPortProfiles/"

ALB_POOLS = "loadBalancer/pools/"
ALB_POOL_SUMMARIES = "edgeGateways/%s/loadBalancer/poolSummaries"
ALB_CLOUDS = "loadBalancer/clouds/"

IP_SPACES = "ipSpaces/"
IP_SPACE_SUMMARIES = "ipSpaces/summaries"
IP_SPACE_UPLINKS = "ipSpaceUplinks/"

RDE_ENTITIES = "entities/"
RDE_ENTITIES_TYPES = "entities/types/"
RDE_ENTITIES_RESOLVE = "entities/%s/resolve"
RDE_ENTITY_TYPES = "entityTypes/"
RDE_BEHAVIOR_INVOCATIONS = "entities/%s/behaviors/%s/invocations"

API_FILTERS = "extensions/api/filters/"

ORGS = "orgs/"
TM_ORG_NETWORKING_SETTINGS = "orgs/%s/networkingSettings"
TM_ORG_SETTINGS = "settings/org"
TM_VDCS = "virtualDatacenters/"
REGION_STORAGE_POLICIES = "regionStoragePolicies/"
REGIONS = "regions/"

MIN_VERSION_OPENAPI = "31.0"
MIN_VERSION_TM = "40.0"

# Minimum API version for each endpoint. Lookups use the same
# path prefix + template strings as the callers.
ENDPOINT_MIN_VERSIONS: dict[str, str] = {
    OPENAPI_PATH_V1 + SESSIONS_CURRENT: "34.0",
    OPENAPI_PATH_V1 + TOKENS: "36.1",
    OPENAPI_PATH_V1 + EDGE_GATEWAYS: "34.0",
    OPENAPI_PATH_V1 + EDGE_GATEWAY_USED_IP_ADDRESSES: "34.0",
    OPENAPI_PATH_V1 + NSXT_FIREWALL_RULES: "34.0",
    OPENAPI_PATH_V1 + NSXT_NAT_RULES: "34.0",
    OPENAPI_PATH_V1 + FIREWALL_GROUPS: "34.0",
    OPENAPI_PATH_V1 + APP_PORT_PROFILES: "34.0",
    OPENAPI_PATH_V1 + ALB_POOLS: "35.0",
    OPENAPI_PATH_V1 + ALB_POOL_SUMMARIES: "35.0",
    OPENAPI_PATH_V1 + ALB_CLOUDS: "35.0",
    OPENAPI_PATH_V1 + IP_SPACES: "37.1",
    OPENAPI_PATH_V1 + IP_SPACE_SUMMARIES: "37.1",
    OPENAPI_PATH_V1 + IP_SPACE_UPLINKS: "37.1",
    OPENAPI_PATH_V1 + RDE_ENTITIES: "35.0",
    OPENAPI_PATH_V1 + RDE_ENTITIES_TYPES: "35.0",
    OPENAPI_PATH_V1 + RDE_ENTITIES_RESOLVE: "35.0",
    OPENAPI_PATH_V1 + RDE_ENTITY_TYPES: "35.0",
    OPENAPI_PATH_V1 + RDE_BEHAVIOR_INVOCATIONS: "35.0",
    OPENAPI_PATH_V1 + API_FILTERS: "38.1",
    OPENAPI_PATH_V1 + ORGS: "37.0",
    OPENAPI_PATH_V1 + TM_ORG_NETWORKING_SETTINGS: MIN_VERSION_TM,
    OPENAPI_PATH_VCF + TM_ORG_SETTINGS: MIN_VERSION_TM,
    OPENAPI_PATH_VCF + TM_VDCS: MIN_VERSION_TM,
    OPENAPI_PATH_VCF + REGION_STORAGE_POLICIES: MIN_VERSION_TM,
    OPENAPI_PATH_VCF + REGIONS: MIN_VERSION_TM,
}

# Higher versions that unlock extra fields on an endpoint.
ENDPOINT_ELEVATED_VERSIONS: dict[str, list[str]] = {
    OPENAPI_PATH_V1 + NSXT_NAT_RULES: ["35.2", "36.0"],
    OPENAPI_PATH_V1 + FIREWALL_GROUPS: ["36.0"],
    OPENAPI_PATH_V1 + EDGE_GATEWAYS: ["37.1", "39.0"],
    OPENAPI_PATH_V1 + IP_SPACES: ["38.0"],
    OPENAPI_PATH_V1 + IP_SPACE_UPLINKS: ["38.0"],
    OPENAPI_PATH_V1 + RDE_ENTITIES: ["37.0"],
    OPENAPI_PATH_V1 + RDE_ENTITY_TYPES: ["37.1"],
    OPENAPI_PATH_V1 + ORGS: ["40.0"],
}

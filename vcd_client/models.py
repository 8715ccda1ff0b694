"""Pydantic models mirroring VCD wire formats.

CloudAPI payloads use camelCase keys. Models accept both the wire name and
the Python attribute name, keep unknown fields, and serialize back to the
wire with :func:`to_payload`.

Example:
    >>> gw = EdgeGateway.model_validate({"id": "urn:vcloud:gateway:1", "name": "gw"})
    >>> to_payload(gw)
    {'id': 'urn:vcloud:gateway:1', 'name': 'gw'}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class VcdModel(BaseModel):
    """Base for every CloudAPI model."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "allow",
    }


def to_payload(model: BaseModel | dict[str, Any] | None) -> Any:
    """Convert a model to the JSON-ready dict sent on the wire."""
    if model is None or isinstance(model, dict):
        return model
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


class OpenApiReference(VcdModel):
    id: str | None = None
    name: str | None = None


class OpenApiPages(VcdModel):
    """One page of a paginated CloudAPI response."""

    result_total: int = 0
    page_count: int = 0
    page: int = 0
    page_size: int = 0
    associations: Any = None
    values: list[Any] = Field(default_factory=list)


class OpenApiErrorBody(VcdModel):
    minor_error_code: str = ""
    message: str = ""
    stack_trace: str = ""


class XmlReference(VcdModel):
    """Reference element from the XML API (``href``, ``id``, ``type``, ``name``)."""

    href: str = ""
    id: str = ""
    type: str = ""
    name: str = ""


class TaskModel(VcdModel):
    """Server-side asynchronous task."""

    href: str = ""
    type: str = ""
    id: str = ""
    operation_key: str = ""
    name: str = ""
    status: str = ""
    operation: str = ""
    operation_name: str = ""
    service_namespace: str = ""
    start_time: str = ""
    end_time: str = ""
    expiry_time: str = ""
    cancel_requested: bool = False
    description: str = ""
    owner: XmlReference | None = None
    error: dict[str, Any] | None = None
    user: XmlReference | None = None
    organization: XmlReference | None = None
    progress: int = 0
    details: str = ""
    result: str = ""


# NSX-T Edge Gateway


class OpenApiIpRange(VcdModel):
    start_address: str
    end_address: str | None = None


class OpenApiIpRanges(VcdModel):
    values: list[OpenApiIpRange] = Field(default_factory=list)


class EdgeGatewaySubnet(VcdModel):
    gateway: str | None = None
    prefix_length: int | None = None
    dns_suffix: str | None = None
    ip_ranges: OpenApiIpRanges | None = None
    enabled: bool | None = None
    total_ip_count: int | None = None
    used_ip_count: int | None = None
    primary_ip: str | None = None
    auto_allocate_ip_ranges: bool | None = None


class EdgeGatewaySubnets(VcdModel):
    values: list[EdgeGatewaySubnet] = Field(default_factory=list)


class EdgeGatewayUplink(VcdModel):
    uplink_id: str | None = None
    uplink_name: str | None = None
    subnets: EdgeGatewaySubnets = Field(default_factory=EdgeGatewaySubnets)
    connected: bool | None = None
    quick_add_allocated_ip_count: int | None = None
    dedicated: bool | None = None
    backing_type: str | None = None


class GatewayBacking(VcdModel):
    backing_id: str | None = None
    gateway_type: str | None = None


class EdgeGateway(VcdModel):
    status: str | None = None
    id: str | None = None
    name: str = ""
    description: str | None = None
    org_vdc: OpenApiReference | None = None
    org_ref: OpenApiReference | None = None
    owner_ref: OpenApiReference | None = None
    edge_gateway_uplinks: list[EdgeGatewayUplink] = Field(default_factory=list)
    distributed_routing_enabled: bool | None = None
    edge_cluster_config: dict[str, Any] | None = None
    org_vdc_network_count: int | None = None
    gateway_backing: GatewayBacking | None = None
    service_network_definition: str | None = None


class EdgeGatewayUsedIpAddress(VcdModel):
    network_ref: OpenApiReference | None = None
    ip_address: str = ""
    category: str | None = None


# NSX-T firewall, NAT and ALB


class NsxtFirewallRule(VcdModel):
    id: str | None = None
    name: str = ""
    action_value: str | None = None
    enabled: bool = True
    source_firewall_groups: list[OpenApiReference] | None = None
    destination_firewall_groups: list[OpenApiReference] | None = None
    application_port_profiles: list[OpenApiReference] | None = None
    ip_protocol: str | None = None
    logging: bool | None = None
    direction: str | None = None
    version: dict[str, Any] | None = None


class NsxtFirewallRuleContainer(VcdModel):
    system_rules: list[NsxtFirewallRule] | None = None
    default_rules: list[NsxtFirewallRule] | None = None
    user_defined_rules: list[NsxtFirewallRule] | None = None


class NsxtNatRule(VcdModel):
    id: str | None = None
    name: str = ""
    description: str = ""
    enabled: bool = True
    rule_type: str | None = None
    type: str | None = None
    external_addresses: str = ""
    internal_addresses: str = ""
    application_port_profile: OpenApiReference | None = None
    dnat_external_port: str = ""
    snat_destination_addresses: str = ""
    logging: bool | None = None
    firewall_match: str | None = None
    priority: int | None = None
    version: dict[str, Any] | None = None

    def is_equal_to(self, other: NsxtNatRule) -> bool:
        """Compare the user-settable fields of two NAT rules."""
        same_profile = self.application_port_profile == other.application_port_profile or (
            self.application_port_profile is not None
            and other.application_port_profile is not None
            and self.application_port_profile.id == other.application_port_profile.id
        )
        return (
            self.name == other.name
            and self.enabled == other.enabled
            and self.description == other.description
            and self.dnat_external_port == other.dnat_external_port
            and self.snat_destination_addresses == other.snat_destination_addresses
            and self.external_addresses == other.external_addresses
            and self.internal_addresses == other.internal_addresses
            and same_profile
        )


class NsxtAlbPoolMember(VcdModel):
    enabled: bool = True
    ip_address: str = ""
    port: int | None = None
    ratio: int | None = None


class NsxtAlbPool(VcdModel):
    id: str | None = None
    name: str = ""
    description: str | None = None
    enabled: bool | None = None
    gateway_ref: OpenApiReference | None = None
    algorithm: str | None = None
    default_port: int | None = None
    graceful_timeout_period: int | None = None
    passive_monitoring_enabled: bool | None = None
    health_monitors: list[dict[str, Any]] | None = None
    members: list[NsxtAlbPoolMember] | None = None
    member_count: int | None = None
    enabled_member_count: int | None = None
    up_member_count: int | None = None
    health_message: str | None = None
    virtual_service_refs: list[OpenApiReference] | None = None


# IP Spaces


class IpSpace(VcdModel):
    id: str | None = None
    name: str = ""
    description: str | None = None
    type: str | None = None
    org_ref: OpenApiReference | None = None
    utilization: dict[str, Any] | None = None
    ip_space_prefixes: list[dict[str, Any]] | None = None
    ip_space_ranges: dict[str, Any] | None = None
    ip_space_internal_scope: list[str] | None = None
    ip_space_external_scope: str | None = None
    route_advertisement_enabled: bool | None = None
    default_gateway_service_config: dict[str, Any] | None = None
    status: str | None = None


# Tenant Manager


class TmOrg(VcdModel):
    id: str | None = None
    name: str = ""
    display_name: str = ""
    description: str | None = None
    can_manage_orgs: bool | None = None
    can_publish: bool | None = None
    catalog_count: int | None = None
    directly_managed_org_count: int | None = None
    disk_count: int | None = None
    is_classic_tenant: bool | None = None
    is_enabled: bool | None = None
    managed_by: OpenApiReference | None = None
    masked_event_task_username: str | None = None
    org_vdc_count: int | None = None
    running_vm_count: int | None = Field(default=None, alias="runningVMCount")
    user_count: int | None = None
    vapp_count: int | None = None


class TmOrgNetworkingSettings(VcdModel):
    networking_tenancy_enabled: bool | None = None
    org_name_for_logs: str | None = None


class TmOrgSettings(VcdModel):
    can_create_subscribed_libraries: bool | None = None
    quarantine_content_libraries: bool | None = None


class TmVdc(VcdModel):
    id: str | None = None
    name: str = ""
    description: str | None = None
    is_enabled: bool | None = None
    org: OpenApiReference | None = None
    region: OpenApiReference | None = None
    status: str | None = None
    supervisors: list[OpenApiReference] | None = None
    zone_resource_allocation: list[dict[str, Any]] | None = None


class RegionStoragePolicy(VcdModel):
    id: str | None = None
    name: str = ""
    region: OpenApiReference | None = None
    description: str | None = None
    status: str | None = None
    storage_capacity_mb: int | None = Field(default=None, alias="storageCapacityMB")
    storage_consumed_mb: int | None = Field(default=None, alias="storageConsumedMB")


# Extensibility


class UrlMatcher(VcdModel):
    url_pattern: str | None = None
    url_scope: str | None = None


class ApiFilter(VcdModel):
    id: str | None = None
    external_system: OpenApiReference | None = None
    url_matcher: UrlMatcher | None = None
    response_content_type: str | None = None


class DefinedEntityType(VcdModel):
    id: str | None = None
    nss: str = ""
    version: str = ""
    name: str = ""
    description: str | None = None
    external_id: str | None = None
    hooks: dict[str, str] | None = None
    inherited_version: str | None = None
    interfaces: list[str] | None = None
    is_read_only: bool | None = None
    readonly: bool | None = None
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    vendor: str = ""


class DefinedEntity(VcdModel):
    id: str | None = None
    entity_type: str | None = None
    name: str = ""
    external_id: str | None = None
    entity: dict[str, Any] | None = None
    state: str | None = None
    owner: OpenApiReference | None = None
    org: OpenApiReference | None = None


class BehaviorInvocation(VcdModel):
    arguments: Any = None
    metadata: Any = None


# Solution Add-Ons


class SolutionAddOnInputField(VcdModel):
    """One input declared in a Solution Add-On manifest."""

    name: str = ""
    title: str = ""
    type: str = ""
    description: str = ""
    required: bool = False
    default: Any = None
    delete: bool = False
    values: dict[str, Any] | None = None


class SolutionAddOnEntity(VcdModel):
    """The ``entity`` body of a Solution Add-On RDE."""

    eula: str | None = None
    manifest: dict[str, Any] = Field(default_factory=dict)
    origin: dict[str, Any] | None = None
    status: str | None = None


class SolutionAddOnInstanceEntity(VcdModel):
    """The ``entity`` body of a Solution Add-On Instance RDE."""

    name: str = ""
    add_on_instance_id: str | None = None
    prototype: str = ""
    status: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)


# vApp (XML API)


class VApp(VcdModel):
    href: str = ""
    id: str = ""
    name: str = ""
    type: str = ""
    description: str = ""
    status: int | None = None
    deployed: bool = False
    vms: list[XmlReference] = Field(default_factory=list)


class VmCreateItem(VcdModel):
    """A VM defined from scratch in a recompose request.

    ``sections`` holds pre-rendered OVF/VCD section elements (for example a
    ``VmSpecSection``) appended as they are.
    """

    name: str
    description: str = ""
    storage_profile: XmlReference | None = None
    sections: list[str] = Field(default_factory=list)


class VmSourcedItem(VcdModel):
    """A VM copied from a template or another vApp in a recompose request."""

    source: XmlReference
    vm_name: str = ""
    source_delete: bool = False
    storage_profile: XmlReference | None = None


class RecomposeVAppParams(VcdModel):
    name: str = ""
    description: str = ""
    deploy: bool = False
    power_on: bool = False
    all_eulas_accepted: bool = True
    create_items: list[VmCreateItem] = Field(default_factory=list)
    sourced_items: list[VmSourcedItem] = Field(default_factory=list)

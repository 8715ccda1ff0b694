"""NSX-T Edge Gateways.

Besides CRUD, an Edge Gateway knows which external addresses are allocated
to its uplinks and which of them are in use, so it can hand out unused
addresses and shrink its allocations.

Example:
    >>> egw = await NsxtEdgeGateway.get_by_name(client, "edge-01", owner_id=vdc_id)
    >>> free = await egw.get_unused_external_ip_addresses(2, optional_subnet="10.0.0.0/24")
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from .. import endpoints
from ..exceptions import APIResponseError, EntityNotFoundError, ValidationError, VcdError
from ..ip_utils import (
    IPAddress,
    filter_ip_slices_by_subnet,
    flatten_edge_gateway_uplink_ips,
    flatten_used_ip_addresses,
    ip_slice_difference,
)
from ..logging_config import get_logger
from ..models import EdgeGateway, EdgeGatewayUplink, EdgeGatewayUsedIpAddress, OpenApiReference
from ..query import copy_or_new_url_values, query_parameter_filter_and

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

logger = get_logger(__name__)

EDGE_GATEWAYS_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.EDGE_GATEWAYS
USED_IP_ADDRESSES_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.EDGE_GATEWAY_USED_IP_ADDRESSES

NSXT_BACKED = "NSXT_BACKED"
TIER0_BACKING_TYPES = ("NSXT_TIER0", "NSXT_VRF_TIER0")
UPLINK_TYPES = ("NSXT_TIER0", "IMPORTED_T_LOGICAL_SWITCH", "NSXT_VRF_TIER0")


def reorder_edge_gateway_uplinks(uplinks: list[EdgeGatewayUplink]) -> list[EdgeGatewayUplink]:
    """Move the first Tier-0 (or VRF) backed uplink to index 0.

    The API does not guarantee uplink order but callers rely on the
    mandatory Tier-0 uplink being first.
    """
    if len(uplinks) <= 1 or uplinks[0].backing_type in TIER0_BACKING_TYPES:
        return uplinks
    for index, uplink in enumerate(uplinks):
        if uplink.backing_type in TIER0_BACKING_TYPES:
            uplinks[0], uplinks[index] = uplinks[index], uplinks[0]
            break
    return uplinks


def _is_nsxt(edge: EdgeGateway) -> bool:
    return edge.gateway_backing is not None and edge.gateway_backing.gateway_type == NSXT_BACKED


def _single_edge_gateway(name: str, edges: list[NsxtEdgeGateway]) -> NsxtEdgeGateway:
    if len(edges) > 1:
        raise VcdError(f"got more than 1 Edge Gateway by name '{name}' {len(edges)}")
    if not edges:
        raise EntityNotFoundError(f"got 0 Edge Gateways by name '{name}'")
    return edges[0]


def get_all_unused_external_ip_addresses(
    uplinks: list[EdgeGatewayUplink],
    used: list[EdgeGatewayUsedIpAddress],
    optional_subnet: str | None = None,
    limit_to: int = 0,
) -> list[IPAddress]:
    """Subtract the used addresses from every address allocated to ``uplinks``.

    Raises:
        VcdError: If the uplinks hold no addresses.
    """
    try:
        assigned = flatten_edge_gateway_uplink_ips(uplinks, limit_to)
    except ValidationError as e:
        raise VcdError(f"error listing all IPs in Edge Gateway: {e}") from e
    if not assigned:
        raise VcdError("no IPs found in Edge Gateway configuration")

    if optional_subnet:
        try:
            assigned = filter_ip_slices_by_subnet(assigned, optional_subnet)
        except (ValidationError, ValueError) as e:
            raise VcdError(f"error filtering ranges for given subnet '{optional_subnet}': {e}") from e

    return ip_slice_difference(assigned, flatten_used_ip_addresses(used))


def get_unused_external_ip_addresses(
    uplinks: list[EdgeGatewayUplink],
    used: list[EdgeGatewayUsedIpAddress],
    required_ip_count: int,
    optional_subnet: str | None = None,
) -> list[IPAddress]:
    """Return the first ``required_ip_count`` unused addresses.

    Raises:
        VcdError: If fewer unused addresses are available.
    """
    try:
        unused = get_all_unused_external_ip_addresses(uplinks, used, optional_subnet)
    except VcdError as e:
        raise VcdError(f"error getting all unused IPs: {e}") from e
    if len(unused) < required_ip_count:
        raise VcdError(f"not enough unused IPs found. Expected {required_ip_count}, got {len(unused)}")
    return unused[:required_ip_count]


class NsxtEdgeGateway:
    """An NSX-T backed Edge Gateway.

    Attributes:
        edge_gateway: The gateway as returned by the API, with the Tier-0
            uplink first.
        client: Client used for further calls.
    """

    inner_type = EdgeGateway

    def __init__(self, client: VcdAPIClient, edge_gateway: EdgeGateway | None = None) -> None:
        self.client = client
        self.edge_gateway = edge_gateway if edge_gateway is not None else EdgeGateway()

    def wrap(self, inner: EdgeGateway) -> NsxtEdgeGateway:
        return NsxtEdgeGateway(self.client, inner)

    def __repr__(self) -> str:
        return f"NsxtEdgeGateway(id={self.edge_gateway.id!r}, name={self.edge_gateway.name!r})"

    def _reorder_uplinks(self) -> None:
        if not self.edge_gateway.edge_gateway_uplinks:
            raise VcdError("no uplinks present in Edge Gateway")
        self.edge_gateway.edge_gateway_uplinks = reorder_edge_gateway_uplinks(self.edge_gateway.edge_gateway_uplinks)

    @classmethod
    async def get_all(
        cls,
        client: VcdAPIClient,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[NsxtEdgeGateway]:
        """Retrieve every NSX-T Edge Gateway visible to the session.

        NSX-V gateways returned by the same endpoint are left out.
        """
        api_version = await client.get_openapi_highest_elevated_version(EDGE_GATEWAYS_ENDPOINT)
        url = client.openapi_build_endpoint(EDGE_GATEWAYS_ENDPOINT)
        values = await client.openapi_get_all_items(api_version, url, query_parameters)

        result = []
        for value in values:
            edge = EdgeGateway.model_validate(value)
            if not _is_nsxt(edge):
                continue
            wrapped = cls(client, edge)
            try:
                wrapped._reorder_uplinks()
            except VcdError as e:
                raise VcdError(
                    f"error reordering NSX-T Edge Gateway Uplinks for gateway '{edge.name}' ('{edge.id}'): {e}"
                ) from e
            result.append(wrapped)
        return result

    @classmethod
    async def get_all_in_owner(
        cls,
        client: VcdAPIClient,
        owner_id: str,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[NsxtEdgeGateway]:
        """Retrieve the gateways owned by a VDC or a VDC Group."""
        params = query_parameter_filter_and(f"ownerRef.id=={owner_id}", query_parameters)
        return await cls.get_all(client, params)

    @classmethod
    async def get_by_id(
        cls,
        client: VcdAPIClient,
        edge_gateway_id: str,
        query_parameters: Mapping[str, str] | None = None,
    ) -> NsxtEdgeGateway:
        """Retrieve a gateway by ID.

        Raises:
            ValidationError: If the ID is empty.
            EntityNotFoundError: If the gateway does not exist or is not NSX-T backed.
        """
        api_version = await client.get_openapi_highest_elevated_version(EDGE_GATEWAYS_ENDPOINT)
        if not edge_gateway_id:
            raise ValidationError("empty Edge Gateway ID")

        url = client.openapi_build_endpoint(EDGE_GATEWAYS_ENDPOINT, edge_gateway_id)
        data = await client.openapi_get_item(api_version, url, query_parameters)
        edge = EdgeGateway.model_validate(data)

        if not _is_nsxt(edge):
            gateway_type = edge.gateway_backing.gateway_type if edge.gateway_backing else ""
            raise EntityNotFoundError(f"this is not NSX-T Edge Gateway ({gateway_type})")

        wrapped = cls(client, edge)
        try:
            wrapped._reorder_uplinks()
        except VcdError as e:
            raise VcdError("error reordering Edge Gateway Uplink after API retrieval") from e
        return wrapped

    @classmethod
    async def get_by_id_in_owner(cls, client: VcdAPIClient, edge_gateway_id: str, owner_id: str) -> NsxtEdgeGateway:
        """Retrieve a gateway by ID, making sure it belongs to ``owner_id``."""
        params = query_parameter_filter_and(f"ownerRef.id=={owner_id}", None)
        egw = await cls.get_by_id(client, edge_gateway_id, params)
        owner = egw.edge_gateway.owner_ref
        if owner is None or owner.id != owner_id:
            raise EntityNotFoundError(
                f"no NSX-T Edge Gateway with ID '{edge_gateway_id}' found in VDC '{owner_id}'"
            )
        return egw

    @classmethod
    async def get_by_name(cls, client: VcdAPIClient, name: str, owner_id: str | None = None) -> NsxtEdgeGateway:
        """Retrieve a gateway by name, optionally within a VDC or VDC Group.

        Raises:
            EntityNotFoundError: If no gateway has this name.
            VcdError: If more than one gateway has this name.
        """
        if not name:
            raise ValidationError("'name' must be specified")

        params = copy_or_new_url_values(None)
        if owner_id:
            params["filter"] = f"ownerRef.id=={owner_id};name=={name}"
        else:
            params["filter"] = f"name=={name}"

        try:
            edges = await cls.get_all(client, params)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"unable to retrieve Edge Gateway by name '{name}': {e}") from e
        return _single_edge_gateway(name, edges)

    @classmethod
    async def get_by_name_and_owner_id(cls, client: VcdAPIClient, name: str, owner_id: str) -> NsxtEdgeGateway:
        """Like :meth:`get_by_name` but both the name and the VDC (or VDC Group) are mandatory."""
        if not name or not owner_id:
            raise ValidationError("'edgeGatewayName' and 'ownerId' must both be specified")
        return await cls.get_by_name(client, name, owner_id)

    @classmethod
    async def create(cls, client: VcdAPIClient, config: EdgeGateway) -> NsxtEdgeGateway:
        """Create a gateway. Only System administrators can do this."""
        if not client.is_sys_admin:
            raise VcdError("only System Administrator can create Edge Gateway")

        api_version = await client.get_openapi_highest_elevated_version(EDGE_GATEWAYS_ENDPOINT)
        url = client.openapi_build_endpoint(EDGE_GATEWAYS_ENDPOINT)
        try:
            data = await client.openapi_post_item(api_version, url, None, config)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error creating Edge Gateway: {e}") from e

        created = cls(client, EdgeGateway.model_validate(data))
        try:
            created._reorder_uplinks()
        except VcdError as e:
            raise VcdError(f"error reordering Edge Gateway Uplinks after update operation: {e}") from e
        return created

    async def refresh(self) -> None:
        if not self.edge_gateway.id:
            raise ValidationError("cannot refresh Edge Gateway without ID")
        try:
            refreshed = await NsxtEdgeGateway.get_by_id(self.client, self.edge_gateway.id)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error refreshing NSX-T Edge Gateway: {e}") from e
        self.edge_gateway = refreshed.edge_gateway

    async def update(self, config: EdgeGateway) -> NsxtEdgeGateway:
        """Replace the gateway definition. Only System administrators can do this.

        Returns:
            A new wrapper holding the updated gateway.
        """
        if not self.client.is_sys_admin:
            raise VcdError("only System Administrator can update Edge Gateway")

        api_version = await self.client.get_openapi_highest_elevated_version(EDGE_GATEWAYS_ENDPOINT)
        if not config.id:
            raise ValidationError("cannot update Edge Gateway without ID")

        url = self.client.openapi_build_endpoint(EDGE_GATEWAYS_ENDPOINT, config.id)
        try:
            data = await self.client.openapi_put_item(api_version, url, None, config)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error updating Edge Gateway: {e}") from e

        updated = NsxtEdgeGateway(self.client, EdgeGateway.model_validate(data))
        try:
            updated._reorder_uplinks()
        except VcdError as e:
            raise VcdError(f"error reordering Edge Gateway Uplinks after update operation: {e}") from e
        return updated

    async def delete(self) -> None:
        if not self.client.is_sys_admin:
            raise VcdError("only Provider can delete Edge Gateway")

        api_version = await self.client.get_openapi_highest_elevated_version(EDGE_GATEWAYS_ENDPOINT)
        if not self.edge_gateway.id:
            raise ValidationError("cannot delete Edge Gateway without ID")

        url = self.client.openapi_build_endpoint(EDGE_GATEWAYS_ENDPOINT, self.edge_gateway.id)
        try:
            await self.client.openapi_delete_item(api_version, url)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error deleting Edge Gateway: {e}") from e

    async def move_to_vdc_or_vdc_group(self, vdc_or_vdc_group_id: str) -> NsxtEdgeGateway:
        """Change the gateway owner between a VDC and a VDC Group containing it.

        A gateway cannot move directly from one VDC to another.
        """
        config = self.edge_gateway.model_copy(deep=True)
        config.owner_ref = OpenApiReference(id=vdc_or_vdc_group_id)
        # The API rejects updates that still carry orgVdc
        config.org_vdc = None
        return await self.update(config)

    # IP address management

    async def get_used_ip_addresses(
        self,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[EdgeGatewayUsedIpAddress]:
        if not self.edge_gateway.id:
            raise ValidationError("edge gateway ID must be set to retrieve used IP addresses")

        api_version = await self.client.get_openapi_highest_elevated_version(USED_IP_ADDRESSES_ENDPOINT)
        url = self.client.openapi_build_endpoint(endpoints.OPENAPI_PATH_V1, endpoints.EDGE_GATEWAY_USED_IP_ADDRESSES % self.edge_gateway.id)
        values = await self.client.openapi_get_all_items(api_version, url, query_parameters)
        return [EdgeGatewayUsedIpAddress.model_validate(value) for value in values]

    async def _refresh_if(self, refresh: bool) -> None:
        if refresh:
            try:
                await self.refresh()
            except (VcdError, ValidationError) as e:
                raise VcdError(f"error refreshing Edge Gateway: {e}") from e

    async def _used_ip_addresses(self) -> list[EdgeGatewayUsedIpAddress]:
        try:
            return await self.get_used_ip_addresses()
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error getting used IP addresses for Edge Gateway: {e}") from e

    async def get_unused_external_ip_addresses(
        self,
        required_ip_count: int,
        optional_subnet: str | None = None,
        refresh: bool = False,
    ) -> list[IPAddress]:
        """Find ``required_ip_count`` allocated but unused external addresses.

        Args:
            required_ip_count: How many addresses to return.
            optional_subnet: Only consider addresses in this CIDR.
            refresh: Re-read the gateway first.

        Raises:
            VcdError: If not enough unused addresses are available.
        """
        await self._refresh_if(refresh)
        used = await self._used_ip_addresses()
        return get_unused_external_ip_addresses(
            self.edge_gateway.edge_gateway_uplinks, used, required_ip_count, optional_subnet
        )

    async def get_all_unused_external_ip_addresses(self, refresh: bool = False) -> list[IPAddress]:
        """Every allocated but unused external address.

        Large IPv6 allocations can produce huge lists; see
        :meth:`get_used_and_unused_external_ip_address_count_with_limit`.
        """
        await self._refresh_if(refresh)
        used = await self._used_ip_addresses()
        return get_all_unused_external_ip_addresses(self.edge_gateway.edge_gateway_uplinks, used)

    async def get_used_and_unused_external_ip_address_count_with_limit(
        self,
        refresh: bool = False,
        limit_to: int = 0,
    ) -> tuple[int, int]:
        """Count used and unused addresses, expanding at most ``limit_to`` allocated addresses.

        Returns:
            (used count, unused count).
        """
        await self._refresh_if(refresh)
        used = await self._used_ip_addresses()
        try:
            assigned = flatten_edge_gateway_uplink_ips(self.edge_gateway.edge_gateway_uplinks, limit_to)
        except ValidationError as e:
            raise VcdError(f"error listing all IPs in Edge Gateway: {e}") from e
        return len(used), len(assigned) - len(used)

    async def get_used_ip_address_slice(self, refresh: bool = False) -> list[IPAddress]:
        await self._refresh_if(refresh)
        used = await self._used_ip_addresses()
        return flatten_used_ip_addresses(used)

    async def get_allocated_ip_count(self, refresh: bool = False) -> int:
        """Sum of ``totalIpCount`` over every subnet of every uplink."""
        await self._refresh_if(refresh)
        return sum(
            subnet.total_ip_count or 0
            for uplink in self.edge_gateway.edge_gateway_uplinks
            for subnet in uplink.subnets.values
        )

    async def get_primary_network_allocated_ip_count(self, refresh: bool = False) -> int:
        await self._refresh_if(refresh)
        if not self.edge_gateway.edge_gateway_uplinks:
            raise VcdError("no uplinks present in Edge Gateway")
        primary = self.edge_gateway.edge_gateway_uplinks[0]
        return sum(subnet.total_ip_count or 0 for subnet in primary.subnets.values)

    async def get_allocated_ip_count_by_uplink_type(self, uplink_type: str, refresh: bool = False) -> int:
        """Sum of allocated addresses for one uplink backing type.

        Requires VCD 10.4.1 (API 37.1), where ``backingType`` was introduced.
        """
        if await self.client.api_vcd_max_version_is("< 37.1"):
            raise VcdError("this function requires at least VCD 10.4.1 to work")
        if uplink_type not in UPLINK_TYPES:
            raise ValidationError(
                "invalid 'uplinkType', expected 'NSXT_TIER0', 'IMPORTED_T_LOGICAL_SWITCH' "
                f"or 'NSXT_VRF_TIER0', got: {uplink_type}"
            )
        await self._refresh_if(refresh)
        return sum(
            subnet.total_ip_count or 0
            for uplink in self.edge_gateway.edge_gateway_uplinks
            if uplink.backing_type is None or uplink.backing_type == uplink_type
            for subnet in uplink.subnets.values
        )

    def deallocate_ip_count(self, deallocate_ip_count: int) -> None:
        """Lower the subnets' ``totalIpCount`` by ``deallocate_ip_count`` in place.

        Subnets are drained in order. Touched subnets get
        ``autoAllocateIpRanges`` set, which the API needs to deallocate. This
        only changes the local structure; see :meth:`quick_deallocate_ip_count`.

        Raises:
            ValidationError: If the count is negative or exceeds the allocation.
        """
        if deallocate_ip_count < 0:
            raise ValidationError("deallocate_ip_count must be greater than 0")

        remaining = deallocate_ip_count
        for uplink in self.edge_gateway.edge_gateway_uplinks:
            for subnet in uplink.subnets.values:
                total = subnet.total_ip_count or 0
                if total > 0 and remaining > 0:
                    logger.debug(
                        f"Edge Gateway deallocating IPs from subnet '{subnet.gateway}', "
                        f"TotalIPCount '{total}', deallocate IP count '{remaining}'"
                    )
                    taken = min(total, remaining)
                    subnet.total_ip_count = total - taken
                    subnet.auto_allocate_ip_ranges = True
                    remaining -= taken
                if remaining == 0:
                    break

        if remaining > 0:
            raise ValidationError(f"not enough IPs allocated to deallocate requested '{remaining}' IPs")

    async def quick_deallocate_ip_count(self, ip_count: int) -> NsxtEdgeGateway:
        """Refresh, deallocate ``ip_count`` addresses and push the update."""
        await self._refresh_if(True)
        try:
            self.deallocate_ip_count(ip_count)
        except ValidationError as e:
            raise VcdError(f"error deallocating IP count: {e}") from e
        return await self.update(self.edge_gateway)

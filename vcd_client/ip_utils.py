"""IP address arithmetic for Edge Gateway allocations.

Edge Gateway uplinks describe their allocated addresses as ranges
(``startAddress`` / ``endAddress``) inside subnets. These helpers expand the
ranges into address lists and compare them with the addresses in use.

Example:
    >>> flatten_ip_range(ip_address("10.0.0.1"), ip_address("10.0.0.3"))
    [IPv4Address('10.0.0.1'), IPv4Address('10.0.0.2'), IPv4Address('10.0.0.3')]
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from ipaddress import IPv4Address, IPv6Address, ip_address, ip_network
from typing import Union

from .exceptions import ValidationError
from .models import EdgeGatewayUplink, EdgeGatewayUsedIpAddress

IPAddress = Union[IPv4Address, IPv6Address]


def flatten_ip_range(start: IPAddress, end: IPAddress | None, limit_to: int = 0) -> list[IPAddress]:
    """Expand a range into every address it holds, both ends included.

    Args:
        start: First address.
        end: Last address. None means a single address range.
        limit_to: Stop after this many addresses. 0 means no limit.

    Raises:
        ValidationError: If ``end`` is lower than ``start``.
    """
    if end is None:
        return [start]
    if end < start:
        raise ValidationError(f"end IP is lower that start IP ({end} < {start})")

    result: list[IPAddress] = []
    current = start
    while current <= end:
        result.append(current)
        if limit_to and len(result) >= limit_to:
            break
        current = current + 1
    return result


def flatten_edge_gateway_uplink_ips(uplinks: Iterable[EdgeGatewayUplink], limit_to: int = 0) -> list[IPAddress]:
    """List every address assigned to the uplinks' subnets, in range order."""
    result: list[IPAddress] = []
    for uplink in uplinks:
        for subnet in uplink.subnets.values:
            if subnet.ip_ranges is None:
                continue
            for ip_range in subnet.ip_ranges.values:
                remaining = limit_to - len(result) if limit_to else 0
                start = ip_address(ip_range.start_address)
                end = ip_address(ip_range.end_address) if ip_range.end_address else None
                result.extend(flatten_ip_range(start, end, remaining))
                if limit_to and len(result) >= limit_to:
                    return result
    return result


def ip_slice_difference(minuend: Sequence[IPAddress], subtrahend: Sequence[IPAddress]) -> list[IPAddress]:
    """Return the addresses of ``minuend`` missing from ``subtrahend``, keeping order."""
    if not minuend:
        return []
    if not subtrahend:
        return list(minuend)
    excluded = set(subtrahend)
    return [ip for ip in minuend if ip not in excluded]


def filter_ip_slices_by_subnet(ips: Sequence[IPAddress], subnet: str | None) -> list[IPAddress]:
    """Keep only the addresses that belong to ``subnet`` (CIDR notation).

    Raises:
        ValidationError: If the subnet or the address list is empty.
    """
    if not subnet:
        raise ValidationError("empty subnet specified")
    if not ips:
        raise ValidationError("empty IP Range specified")
    network = ip_network(subnet, strict=False)
    return [ip for ip in ips if ip in network]


def ip_is_in_range(ip: str, start: str, end: str) -> bool:
    address = ip_address(ip)
    return ip_address(start) <= address <= ip_address(end)


def prefix_length_to_netmask(prefix_length: int) -> str:
    """Convert a prefix length such as 24 into a dotted netmask."""
    return str(ip_network(f"0.0.0.0/{prefix_length}").netmask)


def netmask_to_prefix_length(netmask: str) -> int:
    return ip_network(f"0.0.0.0/{netmask}").prefixlen


def flatten_used_ip_addresses(used: Iterable[EdgeGatewayUsedIpAddress]) -> list[IPAddress]:
    """Parse the addresses reported by the used IP addresses endpoint.

    Raises:
        ValidationError: If an address cannot be parsed.
    """
    result: list[IPAddress] = []
    for entry in used:
        try:
            result.append(ip_address(entry.ip_address))
        except ValueError as e:
            raise ValidationError(
                f"error parsing IP '{entry.ip_address}' in Edge Gateway used IP address list: {e}"
            ) from e
    return result

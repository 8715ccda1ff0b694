"""API version discovery and negotiation.

VCD advertises the API versions it speaks at ``/api/versions``. The client
fetches this list once per session and uses it to:

- validate the version the client was configured with,
- answer constraint checks such as ``>= 37.1`` against the server maximum,
- pick the version sent with each CloudAPI request, from the endpoint's
  minimum and its optional elevated versions.

Example:
    >>> if await client.api_vcd_max_version_is(">= 37.1"):
    ...     print("IP Spaces are available")
    >>> version = await client.get_openapi_highest_elevated_version(
    ...     endpoints.OPENAPI_PATH_V1 + endpoints.EDGE_GATEWAYS
    ... )
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dateutil import parser as date_parser
from lxml import etree
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from . import endpoints
from .exceptions import VcdError
from .logging_config import get_logger

logger = get_logger(__name__)

API_VERSION_TO_VCD_VERSION: dict[str, str] = {
    "29.0": "9.0",
    "30.0": "9.1",
    "31.0": "9.5",
    "32.0": "9.7",
    "33.0": "10.0",
    "34.0": "10.1",
    "35.0": "10.2",
    "36.0": "10.3",
    "37.0": "10.4",
    "38.0": "10.5",
    "39.0": "10.6",
    "40.0": "10.6.1",
}

VCD_VERSION_TO_API_VERSION: dict[str, str] = {
    vcd: api for api, vcd in API_VERSION_TO_VCD_VERSION.items()
}

_CONSTRAINT_RE = re.compile(r"^(==|!=|>=|<=|>|<|=)?(.+)$")
_DESCRIPTION_RE = re.compile(r"^\s*(\S+)\s+(.*)")


@dataclass
class VersionInfo:
    """One entry of the ``SupportedVersions`` document."""

    version: str
    login_url: str = ""
    deprecated: bool = False


@dataclass
class SupportedVersions:
    version_infos: list[VersionInfo] = field(default_factory=list)

    @classmethod
    def from_xml(cls, root: Any) -> SupportedVersions:
        """Build from the parsed ``/api/versions`` XML root element."""
        infos = []
        for node in root.iter("{*}VersionInfo"):
            version = node.findtext("{*}Version") or ""
            login_url = node.findtext("{*}LoginUrl") or ""
            deprecated = (node.get("deprecated") or "false").lower() == "true"
            infos.append(VersionInfo(version=version.strip(), login_url=login_url.strip(), deprecated=deprecated))
        return cls(version_infos=infos)


@dataclass
class VcdVersion:
    """Product version of a VCD installation, as read from ``/api/admin``."""

    version: str
    time: datetime | None = None

    @property
    def segments(self) -> list[int]:
        return [int(part) for part in self.version.split(".") if part.isdigit()]


def parse_constraint(constraint: str) -> SpecifierSet:
    """Turn a constraint such as ``>= 37.0, < 38`` into a specifier set.

    A bare version or a single ``=`` means equality. Commas mean AND.

    Raises:
        InvalidSpecifier: If any part cannot be parsed.
    """
    parts = []
    for raw in constraint.split(","):
        item = raw.replace(" ", "")
        if not item:
            continue
        match = _CONSTRAINT_RE.match(item)
        if match is None:
            raise InvalidSpecifier(constraint)
        operator, version = match.groups()
        if operator in (None, "="):
            operator = "=="
        parts.append(operator + version)
    if not parts:
        raise InvalidSpecifier(constraint)
    return SpecifierSet(",".join(parts))


def version_matches(version: str, constraint: str) -> bool:
    """Check a version against a constraint. Raises on unparsable input."""
    return parse_constraint(constraint).contains(Version(version), prereleases=True)


def int_list_to_version(digits: list[int], at_most: int) -> str:
    """Join version digits, replacing every digit from ``at_most`` on with 0.

    Example:
        >>> int_list_to_version([10, 4, 1, 2000], 2)
        '10.4.0.0'
    """
    return ".".join(str(d) if index < at_most else "0" for index, d in enumerate(digits))


class VersionsMixin:
    """Version negotiation methods for :class:`~vcd_client.api_client.VcdAPIClient`."""

    api_version: str
    href: str
    supported_versions: SupportedVersions | None

    async def fetch_supported_versions(self) -> SupportedVersions:
        """Retrieve ``/api/versions`` once and cache it for the session."""
        if self.supported_versions is not None and self.supported_versions.version_infos:
            return self.supported_versions

        response = await self.request("GET", f"{self.href}/versions")
        self.check_response(response)
        root = etree.fromstring(response.content)
        self.supported_versions = SupportedVersions.from_xml(root)
        logger.debug(
            "Fetched supported API versions",
            extra={"count": len(self.supported_versions.version_infos)},
        )
        return self.supported_versions

    async def max_supported_version(self) -> str:
        """Return the highest API version the server advertises.

        Raises:
            VcdError: If the server advertised no versions.
        """
        supported = await self.fetch_supported_versions()
        versions = []
        for info in supported.version_infos:
            try:
                versions.append(Version(info.version))
            except InvalidVersion:
                continue
        if not versions:
            raise VcdError("could not identify supported versions")
        return str(max(versions))

    async def api_vcd_max_version_is(self, constraint: str) -> bool:
        """Check the server's maximum API version against a constraint.

        Returns False on any retrieval or parse error.
        """
        try:
            max_version = await self.max_supported_version()
            return version_matches(max_version, constraint)
        except (VcdError, InvalidSpecifier, InvalidVersion) as e:
            logger.debug(f"Could not check max version constraint '{constraint}': {e}")
            return False

    def api_client_version_is(self, constraint: str) -> bool:
        """Check the client's configured API version against a constraint."""
        try:
            return version_matches(self.api_version, constraint)
        except (InvalidSpecifier, InvalidVersion) as e:
            logger.debug(f"Could not check client version constraint '{constraint}': {e}")
            return False

    async def check_supported_version_constraint(self, constraint: str) -> None:
        """Require at least one advertised version to satisfy ``constraint``.

        Raises:
            VcdError: If no advertised version matches.
        """
        supported = await self.fetch_supported_versions()
        for info in supported.version_infos:
            try:
                if version_matches(info.version, constraint):
                    return
            except (InvalidSpecifier, InvalidVersion) as e:
                raise VcdError(f"version {constraint} is not supported: {e}") from e
        raise VcdError(f"version {constraint} is not supported")

    async def vcd_check_supported_version(self, version: str) -> None:
        await self.check_supported_version_constraint(f"= {version}")

    async def validate_api_version(self) -> None:
        """Require the configured API version to be advertised by the server."""
        try:
            await self.vcd_check_supported_version(self.api_version)
        except VcdError as e:
            raise VcdError(f"API version {self.api_version} is not supported: {e}") from e

    async def get_specific_api_version_on_condition(self, condition: str, wanted: str) -> str:
        """Return ``wanted`` when the server max satisfies ``condition``, else the client version."""
        if await self.api_vcd_max_version_is(condition):
            return wanted
        return self.api_version

    async def get_vcd_version(self) -> VcdVersion:
        """Read the product version and build date from ``/api/admin``.

        Raises:
            VcdError: If the description holds no version or the date is unreadable.
        """
        root = await self.execute_xml_request(f"{self.href}/admin", "GET")
        description = root.findtext("{*}Description") or ""
        match = _DESCRIPTION_RE.match(description)
        if not match:
            raise VcdError("no version information found")
        version, date_text = match.group(1), match.group(2).strip()
        try:
            built = date_parser.parse(date_text, fuzzy=True)
        except (ValueError, OverflowError) as e:
            raise VcdError(f"[version {version}] could not convert date {date_text} to formal date") from e
        return VcdVersion(version=version, time=built)

    async def get_vcd_short_version(self) -> str:
        """Return the first three segments of the product version (e.g. ``10.4.1``)."""
        vcd_version = await self.get_vcd_full_version()
        return ".".join(str(d) for d in vcd_version.segments[:3])

    async def get_vcd_full_version(self) -> VcdVersion:
        vcd_version = await self.get_vcd_version()
        if len(vcd_version.segments) < 4:
            raise VcdError(f"error getting version digits from version {vcd_version.version}")
        return vcd_version

    async def version_equal_or_greater(self, compare_to: str, how_many_digits: int) -> bool:
        """Compare the product version with ``compare_to`` on the first N digits.

        Args:
            compare_to: Version to compare with (e.g. ``10.4.1``).
            how_many_digits: Significant digits of the product version (1-4).
        """
        full = await self.get_vcd_full_version()
        current = full.version
        if how_many_digits < 4:
            current = int_list_to_version(full.segments, how_many_digits)
        return Version(current) >= Version(compare_to)

    async def openapi_is_supported(self) -> bool:
        return await self.api_vcd_max_version_is(f">= {endpoints.MIN_VERSION_OPENAPI}")

    async def is_tm(self) -> bool:
        """Tell whether the server is a Tenant Manager (VCF) instance."""
        return await self.api_vcd_max_version_is(f">= {endpoints.MIN_VERSION_TM}")

    async def check_openapi_endpoint_compatibility(self, endpoint: str) -> str:
        """Pick the API version to use for a CloudAPI endpoint.

        Returns the client version when it is higher than the endpoint's
        minimum, otherwise the minimum.

        Raises:
            VcdError: If the endpoint is unknown or the server is too old.
        """
        minimum = endpoints.ENDPOINT_MIN_VERSIONS.get(endpoint)
        if minimum is None:
            raise VcdError(f"minimum API version for endpoint '{endpoint}' is not defined")

        if not await self.api_vcd_max_version_is(f">= {minimum}"):
            max_version = ""
            try:
                max_version = await self.max_supported_version()
            except VcdError:
                pass
            raise VcdError(
                f"endpoint '{endpoint}' requires API version to support at least '{minimum}'. "
                f"Maximum supported version in this instance: '{max_version}'"
            )

        if self.api_client_version_is(f"> {minimum}"):
            return self.api_version
        return minimum

    async def get_openapi_highest_elevated_version(self, endpoint: str) -> str:
        """Pick the highest elevated version the server supports for an endpoint.

        Elevated versions lower than the client version are skipped. Falls
        back to :meth:`check_openapi_endpoint_compatibility`.
        """
        try:
            minimum = await self.check_openapi_endpoint_compatibility(endpoint)
        except VcdError as e:
            raise VcdError(f"error getting minimum required API version: {e}") from e

        elevated = endpoints.ENDPOINT_ELEVATED_VERSIONS.get(endpoint, [])
        for candidate in sorted(elevated, key=Version, reverse=True):
            if not await self.api_vcd_max_version_is(f">= {candidate}"):
                continue
            if self.api_client_version_is(f"> {candidate}"):
                continue
            logger.debug(f"Elevating API version for endpoint '{endpoint}' to {candidate}")
            return candidate
        return minimum

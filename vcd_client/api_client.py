"""VMware Cloud Director API client.

This module provides an async HTTP client speaking both VCD API styles:

- Legacy XML API under ``/api/...``, versioned with
  ``Accept: application/*+xml;version=X``.
- CloudAPI (OpenAPI) JSON endpoints under ``/cloudapi/...``, versioned with
  ``Accept: application/json;version=X``.

Example:
    >>> async with VcdAPIClient("https://vcd.example.com/api", insecure=True) as client:
    ...     await client.authenticate("admin", "password123", "System")
    ...     print(await client.max_supported_version())
    38.0

Note:
    Authentication yields a bearer token which is sent with every
    subsequent request. API tokens are exchanged for a bearer token first.

    URL structure:
    - XML API: https://{host}/api/{resource}
    - CloudAPI: https://{host}/cloudapi/{1.0.0|2.0.0|vcf}/{resource}
"""

from __future__ import annotations

import asyncio
import base64
import itertools
import json
import os
import re
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx
from lxml import etree
from packaging.version import InvalidVersion, Version

from .config import DEFAULT_API_VERSION
from .exceptions import (
    APIResponseError,
    AuthenticationError,
    AuthorizationError,
    ConnectionError,
    OpenApiError,
    RateLimitError,
    ResourceNotFoundError,
    ValidationError,
    VcdApiError,
    VcdError,
)
from .logging_config import LoggerAdapter, get_logger, log_request, log_response
from .models import OpenApiErrorBody
from .openapi import OpenApiMixin
from .task import Task, task_from_xml
from .versions import SupportedVersions, VersionsMixin

if TYPE_CHECKING:
    from .config import Config, VcdConfig

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "X-Vcloud-Authorization"
BEARER_TOKEN_HEADER = "X-Vmware-Vcloud-Access-Token"
API_TOKEN_HEADER = "API-token"
REQUEST_ID_HEADER = "X-Vmware-Vcloud-Client-Request-Id"
TENANT_CONTEXT_HEADER = "X-VMWARE-VCLOUD-TENANT-CONTEXT"
AUTH_CONTEXT_HEADER = "X-VMWARE-VCLOUD-AUTH-CONTEXT"

# Status codes for which the XML API sends a decodable Error body.
XML_ERROR_STATUSES = frozenset({400, 401, 403, 404, 405, 406, 409, 415, 500, 503, 504})

_UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)

_request_counter = itertools.count(1)


def vcloud_request_id() -> str:
    """Build a client request id such as ``1-2024-04-13-01-58-25-733-``."""
    now = datetime.now()
    stamp = now.strftime("%Y-%m-%d-%H-%M-%S") + f"-{now.microsecond // 1000:03d}"
    return f"{next(_request_counter)}-{stamp}-"


def extract_uuid(value: str) -> str:
    """Return the last UUID found in an ID or URN, or an empty string."""
    matches = _UUID_RE.findall(value or "")
    return matches[-1] if matches else ""


def get_tenant_context_headers(org_id: str, org_name: str) -> dict[str, str] | None:
    """Headers that run a provider request in the context of a tenant org.

    Returns None for the System org or when no org name is given.
    """
    if not org_name or org_name.lower() == "system":
        return None
    return {
        TENANT_CONTEXT_HEADER: extract_uuid(org_id),
        AUTH_CONTEXT_HEADER: org_name,
    }


def status_error(
    status_code: int,
    message: str,
    url: str = "",
    response_body: str | None = None,
    retry_after: int | None = None,
) -> APIResponseError:
    """Map an HTTP status code to the matching exception type."""
    if status_code == 401:
        return AuthenticationError(message, status_code=401, response_body=response_body)
    if status_code == 403:
        return AuthorizationError(message, status_code=403, response_body=response_body)
    if status_code == 404:
        return ResourceNotFoundError(url, message=message, response_body=response_body)
    if status_code == 429:
        return RateLimitError(retry_after=retry_after, response_body=response_body)
    return APIResponseError(message, status_code=status_code, response_body=response_body)


class VcdAPIClient(VersionsMixin, OpenApiMixin):
    """VMware Cloud Director API client.

    Attributes:
        href: API root URL, ending in ``/api``.
        host: VCD host name.
        base_url: Scheme and host, without any path.
        api_version: API version sent with requests.
        is_sys_admin: True after logging into the System org.

    Example:
        >>> client = VcdAPIClient("https://vcd.example.com", insecure=True)
        >>> try:
        ...     await client.authenticate("admin", "secret", "System")
        ...     gw = await NsxtEdgeGateway.get_by_name(client, "edge-01")
        ... finally:
        ...     await client.close()
    """

    def __init__(
        self,
        url: str,
        insecure: bool = False,
        api_version: str | None = None,
        user_agent: str = "vcd-client",
        http_timeout: int = 600,
        max_retry_timeout: int = 60,
        max_retries: int = 3,
        custom_headers: Mapping[str, str] | None = None,
        request_id_func: Callable[[], str] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            url: VCD URL, with or without the trailing ``/api``.
            insecure: Skip TLS certificate verification.
            api_version: API version to request. Defaults to
                ``GOVCD_API_VERSION`` or 37.0.
            user_agent: User-Agent header value.
            http_timeout: Seconds for a single request and response.
            max_retry_timeout: Seconds to wait for tasks and retried calls.
            max_retries: Retry attempts for transient transport errors.
            custom_headers: Headers added to every request.
            request_id_func: Builds the client request id header. Disabled
                when ``GOVCD_SKIP_LOG_TRACING`` is set.

        Raises:
            ValueError: If the URL or API version is invalid.
        """
        if not url:
            raise ValueError("url is required")
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"url must start with http:// or https://: {url}")

        href = url.rstrip("/")
        if not href.endswith("/api"):
            href += "/api"

        api_version = api_version or os.getenv("GOVCD_API_VERSION") or DEFAULT_API_VERSION
        try:
            Version(api_version)
        except InvalidVersion as e:
            raise ValueError(f"API version '{api_version}' is not valid: {e}") from e

        parsed = httpx.URL(href)
        self.href = href
        self.host = parsed.host
        self.base_url = f"{parsed.scheme}://{parsed.netloc.decode()}"
        self.api_version = api_version
        self.insecure = insecure
        self.user_agent = user_agent
        self.http_timeout = http_timeout
        self.max_retry_timeout = max_retry_timeout
        self.max_retries = max_retries
        self.custom_headers = dict(custom_headers or {})

        if request_id_func is None and not os.getenv("GOVCD_SKIP_LOG_TRACING"):
            request_id_func = vcloud_request_id
        self.request_id_func = request_id_func

        self.auth_header = ""
        self.token = ""
        self.is_sys_admin = False
        self.using_bearer_token = False
        self.using_access_token = False
        self.session_href = ""
        self.supported_versions: SupportedVersions | None = None

        self._logger = LoggerAdapter(logger, {"host": self.host})

        # HTTP client (created lazily)
        self.client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: Config | VcdConfig) -> VcdAPIClient:
        """Create an unauthenticated client from configuration."""
        vcd = getattr(config, "vcd", config)
        return cls(
            url=vcd.url,
            insecure=vcd.insecure,
            api_version=vcd.api_version,
            user_agent=vcd.user_agent,
            http_timeout=vcd.http_timeout,
            max_retry_timeout=vcd.max_retry_timeout,
        )

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized.

        Returns:
            The initialized HTTP client.
        """
        if self.client is None:
            self.client = httpx.AsyncClient(
                verify=not self.insecure,
                timeout=self.http_timeout,
                follow_redirects=True,
            )
        return self.client

    def _common_headers(self) -> httpx.Headers:
        headers = httpx.Headers({"User-Agent": self.user_agent})
        headers.update(self.custom_headers)
        if self.request_id_func is not None:
            headers[REQUEST_ID_HEADER] = self.request_id_func()
        return headers

    def auth_headers(self) -> dict[str, str]:
        """Authentication headers for the current session.

        Bearer tokens (longer than 32 characters) are also sent as an
        ``Authorization: bearer`` header.
        """
        if not self.auth_header or not self.token:
            return {}
        headers = {self.auth_header: self.token}
        if len(self.token) > 32:
            headers["Authorization"] = f"bearer {self.token}"
            headers["X-Vmware-Vcloud-Token-Type"] = "Bearer"
        return headers

    async def request(
        self,
        method: str,
        url: str,
        params: Mapping[str, str] | None = None,
        content: str | bytes | None = None,
        headers: Mapping[str, str] | None = None,
        redact_body: bool = False,
    ) -> httpx.Response:
        """Send one HTTP request, retrying transient transport errors.

        Args:
            method: HTTP method.
            url: Absolute URL.
            params: Query parameters.
            content: Request body.
            headers: Complete request headers. The common headers are sent when omitted.
            redact_body: Keep the request and response bodies out of traces.

        Returns:
            The response, whatever its status code.

        Raises:
            ConnectionError: If the host cannot be reached after retries.
        """
        client = await self._ensure_client()
        headers = self._common_headers() if headers is None else httpx.Headers(headers)
        payload = content.decode(errors="replace") if isinstance(content, bytes) else (content or "")
        caller = f"{method.upper()} {httpx.URL(url).path}"

        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            log_request(
                caller,
                method.upper(),
                url,
                "[**********]" if redact_body and payload else payload,
                headers,
            )
            try:
                response = await client.request(
                    method.upper(),
                    url,
                    params=dict(params) if params else None,
                    content=content,
                    headers=headers,
                )
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_error = e
                if attempt < self.max_retries:
                    wait_time = (2**attempt) * 0.5  # Exponential backoff
                    self._logger.warning(
                        f"Request failed, retrying in {wait_time}s (attempt {attempt + 1}/{self.max_retries})",
                        extra={"error": str(e)},
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise ConnectionError(self.host, e) from e

            log_response(
                caller,
                response.status_code,
                response.headers,
                "[**********]" if redact_body else response.text,
            )

            if response.status_code == 429 and attempt < self.max_retries:
                retry_after = response.headers.get("Retry-After")
                if retry_after and retry_after.isdigit():
                    self._logger.warning(f"Rate limited, waiting {retry_after}s")
                    await asyncio.sleep(int(retry_after))
                    continue

            return response

        # Should not reach here, but just in case
        raise ConnectionError(self.host, last_error)

    # Legacy XML API

    def new_xml_headers(self, content_type: str = "") -> httpx.Headers:
        headers = self._common_headers()
        headers.update(self.auth_headers())
        headers["Accept"] = f"application/*+xml;version={self.api_version}"
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def check_response(self, response: httpx.Response) -> httpx.Response:
        """Validate an XML API response.

        Raises:
            APIResponseError: A decoded VCD error mapped to the status code,
                or a generic error for statuses the API does not document.
        """
        status = response.status_code
        if status in (200, 201, 202, 204):
            return response
        if status in XML_ERROR_STATUSES:
            raise self._parse_xml_error(response)
        raise APIResponseError(
            f"unhandled API response, please report this issue, status code: {status}",
            status_code=status,
            response_body=response.text,
        )

    def _parse_xml_error(self, response: httpx.Response) -> APIResponseError:
        try:
            root = etree.fromstring(response.content)
        except etree.XMLSyntaxError as e:
            return APIResponseError(
                f"error parsing error body for non-200 request: {e}",
                status_code=response.status_code,
                response_body=response.text,
            )
        major = root.get("majorErrorCode", "0")
        decoded = VcdApiError(
            root.get("message", ""),
            major_error_code=int(major) if major.isdigit() else 0,
            minor_error_code=root.get("minorErrorCode", ""),
            vendor_specific_error_code=root.get("vendorSpecificErrorCode", ""),
            stack_trace=root.get("stackTrace", ""),
            status_code=response.status_code,
            response_body=response.text,
        )
        if response.status_code in (401, 403, 404):
            error = status_error(response.status_code, str(decoded), str(response.url), response.text)
            error.__cause__ = decoded
            return error
        return decoded

    def parse_openapi_error(self, response: httpx.Response) -> APIResponseError:
        """Decode a CloudAPI JSON error body, mapped to the status code."""
        try:
            body = OpenApiErrorBody.model_validate_json(response.content)
        except ValueError:
            return status_error(
                response.status_code,
                response.text or f"HTTP {response.status_code}",
                str(response.url),
                response.text,
            )
        decoded = OpenApiError(
            body.message,
            minor_error_code=body.minor_error_code,
            stack_trace=body.stack_trace,
            status_code=response.status_code,
            response_body=response.text,
        )
        if response.status_code in (401, 404, 429):
            error = status_error(response.status_code, str(decoded), str(response.url), response.text)
            error.__cause__ = decoded
            return error
        return decoded

    async def execute_xml_request(
        self,
        href: str,
        method: str,
        content_type: str = "",
        payload: str | bytes | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        """Send an XML API request and return the parsed root element.

        Returns:
            The lxml root element, or None for an empty body.

        Raises:
            APIResponseError: If the API returns an error.
            VcdError: If the body is not valid XML.
        """
        response = await self.request(
            method,
            href,
            params=params,
            content=payload,
            headers=self.new_xml_headers(content_type),
        )
        self.check_response(response)
        if not response.content:
            return None
        try:
            return etree.fromstring(response.content)
        except etree.XMLSyntaxError as e:
            raise VcdError(f"error decoding response body: {e}") from e

    async def execute_task_request(
        self,
        href: str,
        method: str,
        content_type: str = "",
        payload: str | bytes | None = None,
    ) -> Task:
        """Send an XML API request whose response body is a Task."""
        root = await self.execute_xml_request(href, method, content_type, payload)
        if root is None:
            raise VcdError(f"{method} {href} returned no task")
        return Task(self, task_from_xml(root))

    # Authentication

    async def _vcd_login_url(self) -> str:
        try:
            await self.validate_api_version()
        except VcdError as e:
            raise VcdError(f"could not find valid version for login: {e}") from e
        for info in self.supported_versions.version_infos:
            if info.version == self.api_version:
                return info.login_url
        raise VcdError(f"couldn't find a LoginUrl for version {self.api_version}")

    async def authenticate(self, user: str, password: str, org: str) -> None:
        """Open a session with user name and password.

        Raises:
            ValidationError: If user, password or org is empty.
            AuthenticationError: If the credentials are rejected.
        """
        missing = [
            name for name, value in (("user", user), ("password", password), ("org", org)) if not value
        ]
        if missing:
            raise ValidationError(
                f"authorization is not possible because of these missing items: {missing}"
            )

        try:
            await self._vcd_login_url()
        except VcdError as e:
            raise VcdError(f"error finding LoginUrl: {e}") from e

        session_url = f"{self.base_url}/cloudapi/1.0.0/sessions"
        if org.lower() == "system":
            session_url += "/provider"
        self.session_href = session_url

        credentials = f"{user}@{org}:{password}"
        encoded = base64.b64encode(credentials.encode()).decode()
        headers = self._common_headers()
        headers["Authorization"] = f"Basic {encoded}"
        headers["Accept"] = f"application/*;version={self.api_version}"

        self._logger.debug("Connecting to VCD using cloudapi", extra={"url": session_url})
        response = await self.request("POST", session_url, headers=headers, redact_body=True)

        if response.status_code == 401:
            raise AuthenticationError(
                "received response HTTP 401 (Unauthorized). Please check if your credentials are valid",
                response_body=response.text,
            )
        if response.status_code >= 400:
            raise VcdError(f"error authorizing: {self.parse_openapi_error(response)}")

        self.token = response.headers.get(BEARER_TOKEN_HEADER, "")
        self.auth_header = BEARER_TOKEN_HEADER
        self.using_bearer_token = True
        self.is_sys_admin = org.lower() == "system"
        self._log_session_info(user, org)

    async def get_bearer_token_from_api_token(self, org: str, api_token: str) -> str:
        """Exchange an API token (refresh token) for an access token.

        Raises:
            VcdError: If the server is too old or the exchange fails.
        """
        if await self.api_vcd_max_version_is("< 36.1"):
            raise VcdError(
                f"minimum API version for API token is 36.1 - Version detected: {self.api_version}"
            )

        user_def = "provider" if org.lower() == "system" else f"tenant/{org}"
        url = f"{self.base_url}/oauth/{user_def}/token"
        headers = self._common_headers()
        headers["Accept"] = "application/*;version=36.1"
        headers["Content-Type"] = "application/x-www-form-urlencoded"
        body = urlencode({"grant_type": "refresh_token", "refresh_token": api_token})

        response = await self.request("POST", url, content=body, headers=headers, redact_body=True)
        if not response.content:
            raise VcdError(f"refresh token was empty: {response.status_code}")
        try:
            token_def = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise VcdError(f"error decoding token text: {e}") from e
        access_token = token_def.get("access_token") if isinstance(token_def, dict) else None
        if not access_token:
            raise VcdError(f"error extracting access token: {token_def}")
        return access_token

    async def set_token(self, org: str, auth_header: str, token: str) -> None:
        """Use an existing token instead of logging in.

        Args:
            org: Organization the token belongs to.
            auth_header: Header carrying the token. ``API-token`` triggers an
                exchange for a bearer token.
            token: Token value.
        """
        if auth_header == API_TOKEN_HEADER:
            self._logger.debug("Attempt authentication using API token")
            token = await self.get_bearer_token_from_api_token(org, token)
            auth_header = BEARER_TOKEN_HEADER
            self.using_access_token = True

        if not self.using_access_token:
            self.using_bearer_token = True

        self.auth_header = auth_header
        self.token = token

        try:
            await self._vcd_login_url()
        except VcdError as e:
            raise VcdError(f"error finding LoginUrl: {e}") from e

        self.is_sys_admin = org.lower() == "system"

        try:
            await self.execute_xml_request(f"{self.href}/org", "GET")
        except APIResponseError as e:
            raise VcdError(f"error connecting to VCD using token: {e}") from e
        self._log_session_info("", org)

    async def disconnect(self) -> None:
        """Close the server-side session.

        Raises:
            ValidationError: If the client never authenticated.
        """
        if not self.token and not self.auth_header:
            raise ValidationError("cannot disconnect, client is not authenticated")

        headers = self._common_headers()
        headers.update(self.auth_headers())
        headers["Accept"] = f"application/json;version={self.api_version}"
        url = f"{self.base_url}/cloudapi/1.0.0/sessions/current"
        response = await self.request("DELETE", url, headers=headers)
        if response.status_code >= 400:
            raise VcdError(
                "error processing session delete for VMware Cloud Director: "
                f"{self.parse_openapi_error(response)}"
            )
        self.token = ""
        self.auth_header = ""

    def _log_session_info(self, user: str, org: str) -> None:
        self._logger.info(
            "Session established",
            extra={
                "user": user,
                "org": org,
                "api_version": self.api_version,
                "sys_admin": self.is_sys_admin,
                "bearer": self.using_bearer_token,
                "access_token": self.using_access_token,
            },
        )

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self.client:
            await self.client.aclose()
            self.client = None
            self._logger.debug("HTTP client closed")

    async def __aenter__(self) -> "VcdAPIClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


async def connect(config: Config | VcdConfig) -> VcdAPIClient:
    """Create a client from configuration and log in.

    A bearer token wins over an API token, which wins over user and
    password.

    Raises:
        ValidationError: If no usable credentials are configured.
    """
    vcd = getattr(config, "vcd", config)
    client = VcdAPIClient.from_config(vcd)
    try:
        if vcd.token:
            await client.set_token(vcd.org, BEARER_TOKEN_HEADER, vcd.token)
        elif vcd.api_token:
            await client.set_token(vcd.org, API_TOKEN_HEADER, vcd.api_token)
        elif vcd.user and vcd.password:
            await client.authenticate(vcd.user, vcd.password, vcd.org)
        else:
            raise ValidationError("no credentials configured: set a token, an API token, or user and password")
    except BaseException:
        await client.close()
        raise
    return client


async def test_connection(
    url: str,
    user: str,
    password: str,
    org: str = "System",
    insecure: bool = False,
) -> dict[str, Any]:
    """Test connection to a VCD instance.

    Returns:
        Connection test result.

    Example:
        >>> result = await test_connection("https://vcd.example.com", "admin", "password")
        >>> print(result["success"])
    """
    async with VcdAPIClient(url, insecure=insecure, http_timeout=10, max_retries=1) as client:
        try:
            await client.authenticate(user, password, org)
            max_version = await client.max_supported_version()
            return {
                "success": True,
                "message": f"Connected to {client.host}",
                "host": client.host,
                "max_api_version": max_version,
            }
        except AuthenticationError:
            return {
                "success": False,
                "message": "Authentication failed - check user/password/org",
                "host": client.host,
            }
        except ConnectionError as e:
            return {
                "success": False,
                "message": f"Connection failed: {e}",
                "host": client.host,
            }
        except (VcdError, APIResponseError, ValidationError) as e:
            return {
                "success": False,
                "message": f"Unexpected error: {e}",
                "host": client.host,
            }

"""Low level CloudAPI (OpenAPI) operations.

These methods take a ready API version and an absolute endpoint URL. They
handle pagination, the synchronous (200/201) versus asynchronous (202 plus
task) response styles, and JSON error decoding.

Example:
    >>> endpoint = endpoints.OPENAPI_PATH_V1 + endpoints.EDGE_GATEWAYS
    >>> version = await client.check_openapi_endpoint_compatibility(endpoint)
    >>> url = client.openapi_build_endpoint(endpoint)
    >>> gateways = await client.openapi_get_all_items(version, url, {"filter": "name==gw"})
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

import httpx

from .exceptions import APIResponseError, EntityNotFoundError, VcdError
from .logging_config import get_logger
from .models import OpenApiPages, to_payload
from .query import copy_or_new_url_values, default_page_size, find_rel_link
from .task import Task

logger = get_logger(__name__)


class OpenApiMixin:
    """CloudAPI methods for :class:`~vcd_client.api_client.VcdAPIClient`."""

    def openapi_build_endpoint(self, *parts: str) -> str:
        """Join endpoint parts under ``<scheme>://<host>/cloudapi/``."""
        return f"{self.base_url}/cloudapi/" + "".join(parts)

    def new_openapi_headers(
        self,
        api_version: str,
        additional_header: Mapping[str, str] | None = None,
        content_type: str | None = None,
    ) -> httpx.Headers:
        headers = self._common_headers()
        if self.auth_header and self.token:
            headers.update(self.auth_headers())
            headers["Accept"] = f"application/json;version={api_version}"
        if additional_header:
            headers.update(additional_header)
        if content_type:
            headers["Content-Type"] = content_type
        elif "Content-Type" not in headers:
            headers["Content-Type"] = "application/json"
        return headers

    async def _require_openapi(self) -> None:
        if not await self.openapi_is_supported():
            raise VcdError("OpenAPI is not supported on this VCD version")

    def _check_openapi_response(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            raise self.parse_openapi_error(response)

    @staticmethod
    def _decode_json(response: httpx.Response, method: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise VcdError(f"error decoding JSON response after {method}: {e}") from e

    async def openapi_get_all_items(
        self,
        api_version: str,
        url: str,
        query_params: Mapping[str, str] | None = None,
        additional_header: Mapping[str, str] | None = None,
    ) -> list[Any]:
        """Retrieve every item of a list endpoint, following all pages.

        ``pageSize`` defaults to 128 when the caller did not set it.

        Returns:
            The concatenated ``values`` of all pages.
        """
        await self._require_openapi()
        params = default_page_size(query_params)
        logger.debug(f"Getting all items from endpoint {url}")
        try:
            return await self._openapi_get_all_pages(api_version, url, params, additional_header)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error getting all pages for endpoint {url}: {e}") from e

    async def _openapi_get_all_pages(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str],
        additional_header: Mapping[str, str] | None,
    ) -> list[Any]:
        results: list[Any] = []
        next_url: str | None = url
        next_params: dict[str, str] = copy_or_new_url_values(params)

        while next_url is not None:
            response = await self.request(
                "GET",
                next_url,
                params=next_params,
                headers=self.new_openapi_headers(api_version, additional_header),
            )
            self._check_openapi_response(response)

            try:
                pages = OpenApiPages.model_validate(response.json())
            except ValueError as e:
                raise VcdError(f"got error on page {next_params.get('page', '1')}: {e}") from e
            results.extend(pages.values)

            link = find_rel_link("nextPage", response)
            if link:
                # The link already carries every query parameter.
                next_url = str(httpx.URL(next_url).join(link))
                next_params = {}
                continue

            next_url_candidate = next_url
            next_url = None
            if pages.page_size != 0 and pages.page != 0:
                page_count = math.ceil(pages.result_total / pages.page_size)
                if pages.page < page_count:
                    next_url = next_url_candidate
                    next_params = copy_or_new_url_values(next_params)
                    next_params["page"] = str(pages.page + 1)

        return results

    async def openapi_get_item(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None = None,
        additional_header: Mapping[str, str] | None = None,
    ) -> Any:
        """GET a single item.

        HTTP 403 means either "forbidden" or "does not exist", so it raises
        an error carrying the not-found sentinel.
        """
        data, _ = await self.openapi_get_item_and_headers(api_version, url, params, additional_header)
        return data

    async def openapi_get_item_and_headers(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None = None,
        additional_header: Mapping[str, str] | None = None,
    ) -> tuple[Any, httpx.Headers]:
        await self._require_openapi()
        logger.debug(f"Getting item from endpoint {url}")
        response = await self.request(
            "GET",
            url,
            params=params,
            headers=self.new_openapi_headers(api_version, additional_header),
        )

        if response.status_code == 403:
            error = self.parse_openapi_error(response)
            raise EntityNotFoundError(str(error)) from error

        try:
            self._check_openapi_response(response)
        except APIResponseError as e:
            raise VcdError(f"error in HTTP GET request: {e}") from e

        return self._decode_json(response, "GET"), response.headers

    async def _openapi_perform_post_put(
        self,
        method: str,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None,
        payload: Any,
        additional_header: Mapping[str, str] | None,
    ) -> httpx.Response:
        await self._require_openapi()
        content = None
        if payload is not None:
            content = json.dumps(to_payload(payload))
        response = await self.request(
            method,
            url,
            params=params,
            content=content,
            headers=self.new_openapi_headers(api_version, additional_header),
        )
        try:
            self._check_openapi_response(response)
        except APIResponseError as e:
            raise VcdError(f"error in HTTP {method} request: {e}") from e
        return response

    def _task_from_response(self, response: httpx.Response) -> Task:
        task_href = response.headers.get("Location", "")
        if not task_href:
            raise VcdError("unexpected empty task HREF")
        return Task.from_href(self, task_href)

    async def _wait_for_task(self, task: Task) -> None:
        try:
            await task.wait_task_completion()
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error waiting completion of task ({task.task.href}): {e}") from e

    async def openapi_post_item_sync(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None,
        payload: Any,
        additional_header: Mapping[str, str] | None = None,
    ) -> Any:
        """POST where the server answers 200 or 201 with the created body."""
        response = await self._openapi_perform_post_put("POST", api_version, url, params, payload, additional_header)
        if response.status_code not in (200, 201):
            raise VcdError(
                f"POST request expected sync task (HTTP response 200 or 201), got {response.status_code}"
            )
        return self._decode_json(response, "POST")

    async def openapi_post_item_async(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None,
        payload: Any,
        additional_header: Mapping[str, str] | None = None,
    ) -> Task:
        """POST where the server answers 202 with a task in ``Location``."""
        response = await self._openapi_perform_post_put("POST", api_version, url, params, payload, additional_header)
        if response.status_code != 202:
            raise VcdError(
                f"POST request expected async task (HTTP response 202), got {response.status_code}"
            )
        return self._task_from_response(response)

    async def openapi_post_item(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None,
        payload: Any,
        additional_header: Mapping[str, str] | None = None,
    ) -> Any:
        """POST and return the created item, whichever response style is used.

        For 202 the task is awaited and the item is read back from
        ``url + task owner id``.
        """
        response = await self._openapi_perform_post_put("POST", api_version, url, params, payload, additional_header)

        if response.status_code == 202:
            task = self._task_from_response(response)
            await self._wait_for_task(task)
            owner_id = task.task.owner.id if task.task.owner else ""
            if not owner_id:
                raise VcdError(f"task {task.task.href} finished without an owner reference")
            try:
                return await self.openapi_get_item(api_version, url + owner_id, None, additional_header)
            except (VcdError, APIResponseError) as e:
                raise VcdError(f"error retrieving item after creation: {e}") from e

        if response.status_code in (200, 201):
            return self._decode_json(response, "POST")

        raise VcdError(f"POST request expected HTTP response 200, 201 or 202, got {response.status_code}")

    async def openapi_post_url_encoded(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None,
        payload_map: Mapping[str, str],
        additional_header: Mapping[str, str] | None = None,
    ) -> Any:
        """POST a form-encoded body and decode the JSON response."""
        await self._require_openapi()
        response = await self.request(
            "POST",
            url,
            params=params,
            content=urlencode(dict(payload_map)),
            headers=self.new_openapi_headers(
                api_version,
                additional_header,
                content_type="application/x-www-form-urlencoded",
            ),
        )
        try:
            self._check_openapi_response(response)
        except APIResponseError as e:
            raise VcdError(f"error in HTTP POST request: {e}") from e
        return self._decode_json(response, "POST")

    async def openapi_put_item_sync(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None,
        payload: Any,
        additional_header: Mapping[str, str] | None = None,
    ) -> Any:
        response = await self._openapi_perform_post_put("PUT", api_version, url, params, payload, additional_header)
        if response.status_code != 201:
            logger.debug(f"PUT {url} answered HTTP {response.status_code}")
        return self._decode_json(response, "PUT")

    async def openapi_put_item_async(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None,
        payload: Any,
        additional_header: Mapping[str, str] | None = None,
    ) -> Task:
        response = await self._openapi_perform_post_put("PUT", api_version, url, params, payload, additional_header)
        if response.status_code != 202:
            raise VcdError(
                f"PUT request expected async task (HTTP response 202), got {response.status_code}"
            )
        return self._task_from_response(response)

    async def openapi_put_item(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None,
        payload: Any,
        additional_header: Mapping[str, str] | None = None,
    ) -> Any:
        """PUT and return the updated item. For 202 the item is read back after the task."""
        response = await self._openapi_perform_post_put("PUT", api_version, url, params, payload, additional_header)

        if response.status_code == 202:
            task = self._task_from_response(response)
            await self._wait_for_task(task)
            try:
                return await self.openapi_get_item(api_version, url, None, additional_header)
            except (VcdError, APIResponseError) as e:
                raise VcdError(f"error retrieving item after updating: {e}") from e

        return self._decode_json(response, "PUT")

    async def openapi_delete_item(
        self,
        api_version: str,
        url: str,
        params: Mapping[str, str] | None = None,
        additional_header: Mapping[str, str] | None = None,
    ) -> None:
        """DELETE an item, waiting for the task when the server answers 202."""
        await self._require_openapi()
        response = await self.request(
            "DELETE",
            url,
            params=params,
            headers=self.new_openapi_headers(api_version, additional_header),
        )
        try:
            self._check_openapi_response(response)
        except APIResponseError as e:
            raise VcdError(f"error in HTTP DELETE request: {e}") from e

        if response.status_code == 202:
            await self._wait_for_task(self._task_from_response(response))

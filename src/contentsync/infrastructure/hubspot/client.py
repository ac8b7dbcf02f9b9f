"""
HubSpot CMS client.

Thin httpx wrapper implementing the operations the engine needs:
- update_record: PATCH a single record (one call per record)
- fetch_sample: GET one record of a content type, for schema comparison

Every call returns Success/Failure; transport errors are not raised.
No automatic retry: callers resubmit failed records.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from contentsync.domain.field_registry import header_to_field_key, normalize_content_type
from contentsync.domain.results import Failure, Result, Success

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.hubapi.com"
DEFAULT_TIMEOUT = 30.0

CONTENT_TYPE_PATHS: dict[str, str] = {
    "site_pages": "/cms/v3/pages/site-pages",
    "landing_pages": "/cms/v3/pages/landing-pages",
    "blog_posts": "/cms/v3/blogs/posts",
    "blog_tags": "/cms/v3/blogs/tags",
    "blog_authors": "/cms/v3/blogs/authors",
    "url_redirects": "/cms/v3/url-redirects",
}


def snake_to_camel(key: str) -> str:
    """html_title -> htmlTitle"""
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_api_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert local snake_case field keys to the API's camelCase."""
    return {snake_to_camel(key): value for key, value in fields.items()}


def from_api_fields(record: dict[str, Any]) -> dict[str, Any]:
    """Convert API camelCase keys to local snake_case."""
    return {header_to_field_key(key): value for key, value in record.items()}


def content_type_path(content_type: str) -> str | None:
    return CONTENT_TYPE_PATHS.get(normalize_content_type(content_type))


def _error_message(response: httpx.Response) -> str:
    """Best-effort message from an error response body."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    text = re.sub(r"\s+", " ", response.text or "").strip()
    return text[:200] or response.reason_phrase


class HubSpotClient:
    """
    HubSpot CMS v3 client.

    Usage:
        with HubSpotClient(token) as client:
            result = client.update_record("landing_pages", "123", {"html_title": "New"})
            if not result.ok:
                print(result.error)
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.Client | None = None,
        default_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=default_timeout)
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def __enter__(self) -> HubSpotClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def update_record(
        self,
        content_type: str,
        record_id: str,
        fields: dict[str, Any],
        timeout: float = DEFAULT_TIMEOUT,
    ) -> Result[None, str]:
        """
        PATCH one record with the given fields.

        A 404 is reported as a failure; missing records are never created.
        """
        path = content_type_path(content_type)
        if path is None:
            return Failure(f"Unsupported content type: {content_type}")

        url = f"{self.base_url}{path}/{record_id}"
        try:
            response = self._client.patch(
                url,
                json=to_api_fields(fields),
                headers=self._headers,
                timeout=timeout,
            )
        except httpx.TimeoutException:
            logger.warning("Timed out updating %s %s", content_type, record_id)
            return Failure(f"Timed out after {timeout:g}s", recoverable=True)
        except httpx.HTTPError as e:
            logger.warning("Request error updating %s %s: %s", content_type, record_id, e)
            return Failure(f"Request failed: {e}", recoverable=True)

        if response.status_code == 404:
            return Failure("Record not found in HubSpot (404)")
        if response.is_error:
            message = _error_message(response)
            logger.debug(
                "Update of %s %s rejected (%d): %s",
                content_type,
                record_id,
                response.status_code,
                message,
            )
            return Failure(
                f"HTTP {response.status_code}: {message}",
                recoverable=response.status_code == 429 or response.status_code >= 500,
            )
        return Success(None, metadata={"status_code": response.status_code})

    def fetch_sample(self, content_type: str) -> dict[str, Any] | None:
        """Fetch one record of a content type with snake_case keys, or None."""
        path = content_type_path(content_type)
        if path is None:
            return None
        try:
            response = self._client.get(
                f"{self.base_url}{path}",
                params={"limit": 1},
                headers=self._headers,
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Could not fetch %s sample: %s", content_type, e)
            return None

        if isinstance(body, dict) and isinstance(body.get("results"), list):
            return from_api_fields(body["results"][0]) if body["results"] else None
        if isinstance(body, dict):
            return from_api_fields(body)
        return None

"""Web App Manifest models and download helpers.

Only the members twaforge reads are modelled; unknown keys are ignored so
that real-world manifests with vendor extensions still parse.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from twaforge.config import get_settings
from twaforge.errors import FetchError, ManifestValidationError

logger = logging.getLogger(__name__)

_SIZE_TOKEN = re.compile(r"^(\d+)x(\d+)$", re.IGNORECASE)


class _ManifestModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class WebManifestIcon(_ManifestModel):
    src: str
    sizes: str | None = None
    purpose: str | None = None
    mime_type: str | None = Field(default=None, alias="type")

    @property
    def size(self) -> int:
        """Largest dimension across the ``sizes`` tokens, 0 when unknown (``any``, missing)."""
        largest = 0
        for token in (self.sizes or "").split():
            match = _SIZE_TOKEN.match(token)
            if match:
                largest = max(largest, int(match.group(1)), int(match.group(2)))
        return largest

    @property
    def purposes(self) -> frozenset[str]:
        tokens = (self.purpose or "").split()
        return frozenset(tokens) if tokens else frozenset({"any"})


class WebManifestShortcut(_ManifestModel):
    name: str | None = None
    short_name: str | None = None
    url: str | None = None
    icons: list[WebManifestIcon] | None = None


class ShareTargetFile(_ManifestModel):
    name: str | None = None
    accept: str | list[str] | None = None


class ShareTargetParams(_ManifestModel):
    title: str | None = None
    text: str | None = None
    url: str | None = None
    files: list[ShareTargetFile] | None = None

    @field_validator("files", mode="before")
    @classmethod
    def _single_file_as_list(cls, value: Any) -> Any:
        # A share target may declare one file entry instead of a list.
        return [value] if isinstance(value, dict) else value


class ShareTarget(_ManifestModel):
    action: str | None = None
    method: str | None = None
    enctype: str | None = None
    params: ShareTargetParams | None = None


class ProtocolHandlerJson(_ManifestModel):
    protocol: str | None = None
    url: str | None = None


class FileHandlerJson(_ManifestModel):
    action: str | None = None
    accept: dict[str, str | list[str]] | None = None


class WebManifest(_ManifestModel):
    name: str | None = None
    short_name: str | None = None
    start_url: str | None = None
    scope: str | None = None
    display: str | None = None
    orientation: str | None = None
    theme_color: str | None = None
    background_color: str | None = None
    icons: list[WebManifestIcon] = Field(default_factory=list)
    shortcuts: list[WebManifestShortcut] = Field(default_factory=list)
    share_target: ShareTarget | None = None
    # Raw entries; each one is parsed and checked by twaforge.handlers so that
    # a malformed handler is rejected on its own.
    protocol_handlers: list[Any] = Field(default_factory=list)
    file_handlers: list[Any] = Field(default_factory=list)

    @field_validator("icons", "shortcuts", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("protocol_handlers", "file_handlers", mode="before")
    @classmethod
    def _handler_list(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning("Ignoring %s: expected a list, got %r", info.field_name, value)
            return []
        return value

    @field_validator("share_target", mode="before")
    @classmethod
    def _lenient_share_target(cls, value: Any) -> Any:
        if value is None or isinstance(value, ShareTarget):
            return value
        try:
            return ShareTarget.model_validate(value)
        except ValidationError as exc:
            logger.warning("Ignoring malformed share_target: %s", exc)
            return None


def parse_web_manifest(data: dict[str, Any]) -> WebManifest:
    """Validate raw manifest JSON, raising ManifestValidationError on bad structure."""
    if not isinstance(data, dict):
        raise ManifestValidationError("Web Manifest must be a JSON object")
    try:
        return WebManifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestValidationError(f"Invalid Web Manifest: {exc}") from exc


def create_http_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Build the client used for every download.

    ``timeout`` defaults to the configured ``fetch_timeout``.
    """
    if timeout is None:
        timeout = get_settings().http_timeout
    return httpx.AsyncClient(timeout=timeout, follow_redirects=True)


async def fetch_web_manifest_bytes(
    url: str, client: httpx.AsyncClient | None = None
) -> bytes:
    """Download the Web Manifest body as-is."""
    if client is None:
        async with create_http_client() as owned:
            return await fetch_web_manifest_bytes(url, owned)

    logger.debug("Fetching Web Manifest %s", url)
    response = await client.get(url)
    if response.status_code != 200:
        raise FetchError(
            f"Failed to download Web Manifest {url}. Responded with status {response.status_code}",
            url=url,
            status_code=response.status_code,
        )
    return response.content


async def fetch_web_manifest_json(
    url: str, client: httpx.AsyncClient | None = None
) -> dict[str, Any]:
    """Download and decode the Web Manifest as a JSON object."""
    body = await fetch_web_manifest_bytes(url, client)
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise ManifestValidationError(f"Web Manifest {url} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestValidationError(f"Web Manifest {url} must be a JSON object")
    return data


async def fetch_web_manifest(url: str, client: httpx.AsyncClient | None = None) -> WebManifest:
    return parse_web_manifest(await fetch_web_manifest_json(url, client))


__all__ = [
    "FileHandlerJson",
    "ProtocolHandlerJson",
    "ShareTarget",
    "ShareTargetFile",
    "ShareTargetParams",
    "WebManifest",
    "WebManifestIcon",
    "WebManifestShortcut",
    "create_http_client",
    "fetch_web_manifest",
    "fetch_web_manifest_bytes",
    "fetch_web_manifest_json",
    "parse_web_manifest",
]

"""URL normalization plus protocol and file handler extraction.

Handler processing never raises for a bad entry. Each entry is either
accepted (normalized) or reported back as a ``Rejection`` carrying a
``RejectionReason`` so callers decide how loudly to complain.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from twaforge.web_manifest import FileHandlerJson, ProtocolHandlerJson

logger = logging.getLogger(__name__)

ALLOWED_PROTOCOL_SCHEMES = frozenset(
    {
        "bitcoin", "ftp", "ftps", "geo", "im", "irc", "ircs", "magnet", "mailto", "matrix",
        "news", "nntp", "openpgp4fpr", "sftp", "sip", "ssh", "urn", "webcal", "wtai", "xmpp",
    }
)  # fmt: skip
# mms, sms, smsto and tel cannot be claimed by a web app.

_CUSTOM_PROTOCOL = re.compile(r"^web\+[a-z]+$")
_DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters percent-encoded by browsers in each URL component, besides
# controls, space and non-ASCII. "%" is left alone so "%s" survives.
_PATH_UNSAFE = frozenset('"#<>?`{}')
_QUERY_UNSAFE = frozenset("\"#<>'")
_FRAGMENT_UNSAFE = frozenset('"<>`')

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class RejectionReason(str, Enum):
    MISSING_FIELDS = "missing-fields"
    INVALID_PROTOCOL = "invalid-protocol"
    MISSING_PLACEHOLDER = "missing-placeholder"
    INVALID_URL = "invalid-url"
    INVALID_SCHEME = "invalid-scheme"
    ORIGIN_MISMATCH = "origin-mismatch"
    OUT_OF_SCOPE = "out-of-scope"


@dataclass(frozen=True)
class Rejection(Generic[T]):
    input: T
    reason: RejectionReason


@dataclass
class HandlerResult(Generic[T]):
    accepted: list = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)


class ProtocolHandler(BaseModel):
    model_config = ConfigDict(frozen=True)

    protocol: str
    url: str


class FileHandler(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action_url: str = Field(alias="actionUrl")
    mime_types: list[str] = Field(alias="mimeTypes")


def url_origin(url: str) -> str:
    """``scheme://host[:port]`` with the default port dropped, as browsers compare origins."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    try:
        port = parts.port
    except ValueError:
        port = None
    if port is None or _DEFAULT_PORTS.get(scheme) == port:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def url_path(url: str) -> str:
    return urlsplit(url).path or "/"


def _is_absolute(url: str) -> bool:
    return bool(urlsplit(url).scheme)


def _percent_encode(text: str, unsafe: frozenset[str]) -> str:
    return "".join(
        quote(char, safe="") if char in unsafe or not "!" <= char <= "~" else char
        for char in text
    )


def _canonical(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit(
        (
            parts.scheme.lower(),
            parts.netloc.lower(),
            _percent_encode(parts.path or "/", _PATH_UNSAFE),
            _percent_encode(parts.query, _QUERY_UNSAFE),
            _percent_encode(parts.fragment, _FRAGMENT_UNSAFE),
        )
    )


def _check_in_scope(url: str, scope_url: str) -> RejectionReason | None:
    parts = urlsplit(url)
    if parts.scheme.lower() != "https":
        return RejectionReason.INVALID_SCHEME
    if not parts.hostname:
        return RejectionReason.INVALID_URL
    if url_origin(url) != url_origin(scope_url):
        return RejectionReason.ORIGIN_MISMATCH
    if not url_path(url).startswith(url_path(scope_url)):
        return RejectionReason.OUT_OF_SCOPE
    return None


def _normalize_protocol_url(
    url: str, start_url: str, scope_url: str
) -> tuple[str | None, RejectionReason | None]:
    if "%s" not in url:
        return None, RejectionReason.MISSING_PLACEHOLDER

    try:
        if not _is_absolute(url):
            # Relative URLs are anchored to the start URL and are not scope-checked.
            return _canonical(urljoin(start_url, url)), None
        reason = _check_in_scope(url, scope_url)
        if reason is not None:
            return None, reason
        return _canonical(url), None
    except ValueError:
        return None, RejectionReason.INVALID_URL


def _normalize_action_url(
    url: str, start_url: str, scope_url: str
) -> tuple[str | None, RejectionReason | None]:
    try:
        resolved = urljoin(start_url, url)
        reason = _check_in_scope(resolved, scope_url)
        if reason is not None:
            return None, reason
        return _canonical(resolved), None
    except ValueError:
        return None, RejectionReason.INVALID_URL


_LOG_MESSAGES = {
    RejectionReason.MISSING_PLACEHOLDER: "Ignoring url without %%s: %s",
    RejectionReason.INVALID_URL: "Ignoring invalid url: %s",
    RejectionReason.INVALID_SCHEME: "Ignoring url with illegal scheme: %s",
    RejectionReason.ORIGIN_MISMATCH: "Ignoring url with invalid origin: %s",
    RejectionReason.OUT_OF_SCOPE: "Ignoring url not within manifest scope: %s",
}


def normalize_url(
    url: str,
    start_url: str,
    scope_url: str,
    *,
    require_placeholder: bool = True,
    log: logging.Logger | None = None,
) -> str | None:
    """Resolve a handler URL, or return None (with a warning) when it is not acceptable.

    With ``require_placeholder`` (protocol handlers) the URL must contain
    ``%s``. An absolute URL must be https, share the scope's origin and sit
    under the scope's path; a relative one is resolved against ``start_url``
    and returned unchecked. Without ``require_placeholder`` (file handlers)
    the URL is resolved first and then always checked.
    """
    log = log or logger
    if require_placeholder:
        normalized, reason = _normalize_protocol_url(url, start_url, scope_url)
    else:
        normalized, reason = _normalize_action_url(url, start_url, scope_url)
    if reason is not None:
        log.warning(_LOG_MESSAGES[reason], url)
    return normalized


def normalize_protocol(protocol: str, log: logging.Logger | None = None) -> str | None:
    """Lowercase ``protocol`` if it may be registered by a web app, else None."""
    normalized = protocol.lower()
    if normalized in ALLOWED_PROTOCOL_SCHEMES or _CUSTOM_PROTOCOL.match(normalized):
        return normalized
    (log or logger).warning("Ignoring invalid protocol: %s", protocol)
    return None


def _parse_entry(model: type[M], entry: Any) -> tuple[M | None, RejectionReason | None]:
    try:
        return model.model_validate(entry), None
    except ValidationError as exc:
        fields = {error["loc"][0] for error in exc.errors() if error["loc"]}
        if fields & {"url", "action"}:
            return None, RejectionReason.INVALID_URL
        return None, RejectionReason.MISSING_FIELDS


def process_protocol_handlers(
    handlers: Iterable[ProtocolHandlerJson | Any], start_url: str, scope_url: str
) -> HandlerResult[ProtocolHandler]:
    """Normalize raw ``protocol_handlers`` entries, rejecting the unusable ones."""
    result: HandlerResult[ProtocolHandler] = HandlerResult()
    for entry in handlers:
        handler, reason = _parse_entry(ProtocolHandlerJson, entry)
        if handler is None:
            result.rejections.append(Rejection(entry, reason))
            continue
        if not handler.protocol or not handler.url:
            result.rejections.append(Rejection(handler, RejectionReason.MISSING_FIELDS))
            continue

        protocol = handler.protocol.lower()
        if protocol not in ALLOWED_PROTOCOL_SCHEMES and not _CUSTOM_PROTOCOL.match(protocol):
            result.rejections.append(Rejection(handler, RejectionReason.INVALID_PROTOCOL))
            continue

        url, reason = _normalize_protocol_url(handler.url, start_url, scope_url)
        if reason is not None:
            result.rejections.append(Rejection(handler, reason))
            continue

        result.accepted.append(ProtocolHandler(protocol=protocol, url=url))
    return result


def process_file_handlers(
    handlers: Iterable[FileHandlerJson | Any], start_url: str, scope_url: str
) -> HandlerResult[FileHandler]:
    result: HandlerResult[FileHandler] = HandlerResult()
    for entry in handlers:
        handler, reason = _parse_entry(FileHandlerJson, entry)
        if handler is None:
            result.rejections.append(Rejection(entry, reason))
            continue
        if not handler.action or not handler.accept:
            result.rejections.append(Rejection(handler, RejectionReason.MISSING_FIELDS))
            continue

        action_url, reason = _normalize_action_url(handler.action, start_url, scope_url)
        if reason is not None:
            result.rejections.append(Rejection(handler, reason))
            continue

        result.accepted.append(FileHandler(action_url=action_url, mime_types=list(handler.accept)))
    return result


def log_rejections(
    kind: str, rejections: Iterable[Rejection], log: logging.Logger | None = None
) -> None:
    log = log or logger
    for rejection in rejections:
        log.warning("Ignoring %s %r: %s", kind, rejection.input, rejection.reason.value)


__all__ = [
    "ALLOWED_PROTOCOL_SCHEMES",
    "FileHandler",
    "HandlerResult",
    "ProtocolHandler",
    "Rejection",
    "RejectionReason",
    "log_rejections",
    "normalize_protocol",
    "normalize_url",
    "process_file_handlers",
    "process_protocol_handlers",
    "url_origin",
    "url_path",
]

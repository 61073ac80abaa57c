from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

import requests  # type: ignore[import-untyped]

from . import __version__
from .config import DEFAULT_TIMEOUT, DEFAULT_URL
from .logging_utils import style_text
from .models import ModelError, Snapshot, build_snapshot

logger = logging.getLogger("quotaboard.fetcher")

DEFAULT_ACCEPT = "application/json"
DEFAULT_USER_AGENT = f"quotaboard/{__version__}"


class FetchError(Exception):
    """Base class for one failed fetch cycle."""

    user_message = "Failed to fetch account limits."

    def __init__(self, url: str, message: str, *, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url
        self.detail = detail


class TransportError(FetchError):
    """The endpoint could not be reached (DNS, refused connection, timeout)."""

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return (
            f"Failed to connect to server at {self.url}. "
            "Verify it is running and the URL/port are correct."
        )


class FormatError(FetchError):
    """The endpoint answered with something that is not JSON."""

    def __init__(
        self,
        url: str,
        message: str,
        *,
        content_type: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(url, message, detail=detail)
        self.content_type = content_type

    @property
    def user_message(self) -> str:  # type: ignore[override]
        kind = self.content_type or "non-JSON content"
        return (
            f"Server at {self.url} returned {kind} instead of JSON. "
            "Check that the URL points at the account-limits endpoint "
            "and that the server version matches."
        )


class DecodeError(FetchError):
    """JSON was expected but the body does not decode into a snapshot."""

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"Malformed response from {self.url}: {self}"


class ServerError(FetchError):
    """The endpoint answered with a non-success status."""

    def __init__(
        self, url: str, status_code: int, *, detail: Optional[str] = None
    ) -> None:
        super().__init__(url, f"Server returned error {status_code}", detail=detail)
        self.status_code = status_code

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"Server at {self.url} returned error {self.status_code}."


class SnapshotFetcher:
    """Performs one bounded GET against the account-limits endpoint."""

    def __init__(
        self,
        url: str = DEFAULT_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        debug: bool = False,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        if not url:
            raise ValueError("url cannot be empty")
        self.url = url
        self.debug = debug
        self._timeout = max(timeout, 0.1)
        self._session = session or requests.Session()
        self._user_agent = user_agent

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> SnapshotFetcher:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def fetch(self) -> Mapping[str, Any]:
        """Return the decoded JSON document or raise a :class:`FetchError`."""
        payload, _ = self._fetch_document()
        return payload

    def _fetch_document(self) -> tuple[Mapping[str, Any], str]:
        headers = {"Accept": DEFAULT_ACCEPT, "User-Agent": self._user_agent}
        logger.debug("GET %s timeout=%.1fs", self.url, self._timeout)
        try:
            response = self._session.get(
                self.url, headers=headers, timeout=self._timeout
            )
        except requests.RequestException as exc:
            logger.warning("GET %s failed: %s", self.url, exc)
            raise TransportError(self.url, f"Failed to connect to server: {exc}") from exc

        content_type = response.headers.get("Content-Type", "")
        text = response.text
        logger.debug(
            "GET %s -> %s (%s, %d bytes)",
            self.url,
            response.status_code,
            content_type or "no content type",
            len(text),
        )

        if _looks_like_html(content_type, text):
            logger.warning(
                style_text(
                    f"GET {self.url} -> {response.status_code} returned HTML", "bold yellow"
                ),
            )
            raise FormatError(
                self.url,
                f"Expected JSON but received {content_type or 'HTML'}",
                content_type=content_type.split(";", 1)[0].strip() or None,
                detail=self._debug_body(text),
            )
        if not response.ok:
            logger.warning("GET %s -> %s", self.url, response.status_code)
            raise ServerError(
                self.url, response.status_code, detail=self._debug_body(text)
            )
        if content_type and not _is_json_type(content_type) and not _looks_like_json(text):
            raise FormatError(
                self.url,
                f"Expected JSON but received {content_type}",
                content_type=content_type.split(";", 1)[0].strip(),
                detail=self._debug_body(text),
            )

        payload = self._decode(text)
        if not isinstance(payload, Mapping):
            raise DecodeError(
                self.url,
                f"expected a JSON object, got {type(payload).__name__}",
                detail=self._debug_body(text),
            )
        return payload, text

    def fetch_snapshot(self) -> Snapshot:
        """Fetch and decode in one step; schema failures become DecodeError."""
        payload, text = self._fetch_document()
        try:
            return build_snapshot(payload)
        except ModelError as exc:
            raise DecodeError(
                self.url, str(exc), detail=self._debug_body(text)
            ) from exc

    def _decode(self, text: str) -> object:
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise DecodeError(
                self.url, f"Failed to parse JSON: {exc}", detail=self._debug_body(text)
            ) from exc
        # The proxy may wrap the document as {"result": "<json string>"}.
        if (
            isinstance(payload, Mapping)
            and "accounts" not in payload
            and isinstance(payload.get("result"), str)
        ):
            try:
                payload = json.loads(payload["result"])
            except ValueError as exc:
                raise DecodeError(
                    self.url,
                    f"Failed to parse inner JSON: {exc}",
                    detail=self._debug_body(text),
                ) from exc
        return payload

    def _debug_body(self, text: str) -> Optional[str]:
        return text if self.debug else None


def _is_json_type(content_type: str) -> bool:
    media = content_type.split(";", 1)[0].strip().lower()
    return media == "application/json" or media.endswith("+json")


def _looks_like_json(text: str) -> bool:
    return text.lstrip()[:1] in ("{", "[")


def _looks_like_html(content_type: str, text: str) -> bool:
    media = content_type.split(";", 1)[0].strip().lower()
    if media in ("text/html", "application/xhtml+xml"):
        return True
    if _is_json_type(media):
        return False
    return text.lstrip()[:1] == "<"

"""HTTP client for the remote daily-document store.

Talks JSON to the ``/sync`` resource:

    POST {base}/sync                           save one day's sessions/projects
    GET  {base}/sync?date=YYYY-MM-DD           fetch one day
    GET  {base}/sync?from=YYYY-MM-DD&to=...    fetch a range, aggregated remotely

No operation raises.  Every call returns a result object so callers can
tell "no document for this day" apart from "sync is broken".  Retries are
left to the caller.
"""

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pomotrack.core.models import DailySyncDocument, Project, RangeDocument, Session
from pomotrack.core.timeutil import days_ago, today

logger = logging.getLogger(__name__)

USER_AGENT = "PomoTrack/1.0"


class FetchStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    DISABLED = "disabled"


@dataclass
class FetchResult:
    status: FetchStatus
    document: Optional[Union[DailySyncDocument, RangeDocument]] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is FetchStatus.FOUND


@dataclass
class UploadResult:
    ok: bool
    date: Optional[str] = None
    key: Optional[str] = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


class SyncClient:
    """Uploads and downloads Daily Sync Documents."""

    def __init__(self, base_url: str, timeout: float = 10) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def upload(
        self,
        sessions: list[Session],
        projects: list[Project],
        now: Optional[datetime] = None,
    ) -> UploadResult:
        """POST today's sessions plus the full project list."""
        if not self.enabled:
            logger.error("api_url not configured; cannot sync")
            return UploadResult(ok=False, error="api_url not configured")

        day = today(now)
        payload = {
            "date": day,
            "projects": [p.to_dict() for p in projects],
            "sessions": [s.to_dict() for s in sessions if s.date == day],
        }
        logger.debug("Syncing %d sessions for %s", len(payload["sessions"]), day)
        try:
            status, body = self._request("POST", "/sync", payload=payload)
        except (urllib.error.URLError, OSError, ValueError) as exc:
            logger.error("Sync error: %s", exc)
            return UploadResult(ok=False, date=day, error=str(exc))

        if status == 200 and isinstance(body, dict) and body.get("success"):
            logger.info("Synced %s to %s", day, body.get("key"))
            return UploadResult(ok=True, date=body.get("date", day), key=body.get("key"))

        error = body.get("error") if isinstance(body, dict) else None
        logger.error("Sync failed (HTTP %s): %s", status, error)
        return UploadResult(ok=False, date=day, error=error or f"HTTP {status}")

    def fetch_day(self, day: str) -> FetchResult:
        """GET the document for *day*.  A 404 is ``NOT_FOUND``, not a failure."""
        if not self.enabled:
            logger.debug("api_url not configured, skip load for %s", day)
            return FetchResult(FetchStatus.DISABLED)

        try:
            status, body = self._request("GET", "/sync", query={"date": day})
        except (urllib.error.URLError, OSError, ValueError) as exc:
            logger.error("Load error for %s: %s", day, exc)
            return FetchResult(FetchStatus.FAILED, error=str(exc))

        if status == 404:
            logger.debug("No remote data for %s", day)
            return FetchResult(FetchStatus.NOT_FOUND)
        if status != 200 or not isinstance(body, dict):
            logger.error("Load failed for %s: HTTP %s", day, status)
            return FetchResult(FetchStatus.FAILED, error=f"HTTP {status}")

        try:
            document = DailySyncDocument.from_dict(body)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed remote document for %s: %s", day, exc)
            return FetchResult(FetchStatus.FAILED, error=str(exc))
        return FetchResult(FetchStatus.FOUND, document=document)

    def fetch_range(self, date_from: str, date_to: str) -> FetchResult:
        """GET every session and project stored between two days inclusive."""
        if not self.enabled:
            return FetchResult(FetchStatus.DISABLED)

        try:
            status, body = self._request(
                "GET", "/sync", query={"from": date_from, "to": date_to}
            )
        except (urllib.error.URLError, OSError, ValueError) as exc:
            logger.error("Load history error: %s", exc)
            return FetchResult(FetchStatus.FAILED, error=str(exc))

        if status != 200 or not isinstance(body, dict):
            logger.error("Load history failed: HTTP %s", status)
            return FetchResult(FetchStatus.FAILED, error=f"HTTP {status}")

        try:
            document = RangeDocument.from_dict(body)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed range response: %s", exc)
            return FetchResult(FetchStatus.FAILED, error=str(exc))
        logger.debug(
            "History loaded: %d files, %d sessions",
            document.files_loaded, len(document.sessions),
        )
        return FetchResult(FetchStatus.FOUND, document=document)

    def fetch_history(self, days: int = 30, now: Optional[datetime] = None) -> FetchResult:
        """Range fetch covering the last *days* days through today."""
        return self.fetch_range(days_ago(days, now), today(now))

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        query: Optional[dict[str, str]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> tuple[int, Any]:
        """Send a JSON request and return ``(status, decoded_body)``.

        Non-2xx responses are returned rather than raised; transport
        errors and undecodable bodies propagate to the caller.
        """
        url = self.base_url + path
        if query:
            url += "?" + urllib.parse.urlencode(query)
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(
            url,
            data=data,
            method=method,
            headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                status = resp.status
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            status = exc.code
            raw = exc.read() or b""
        try:
            body = json.loads(raw.decode("utf-8") or "null")
        except ValueError:
            if 200 <= status < 300:
                raise
            body = None
        return status, body

"""
Google Calendar sink adapter.

Mirrors desired events into Google Calendars through the Calendar v3 REST
API, keyed by the event's iCalUID so that every mutation is idempotent:

- apply:  POST   /calendars/{calendarId}/events/import
- remove: GET    /calendars/{calendarId}/events?iCalUID=...
          DELETE /calendars/{calendarId}/events/{eventId}  (404/410 = already gone)
- list:   GET    /calendars/{calendarId}/events?timeMin=...  (follows nextPageToken)
- delete: DELETE /calendars/{calendarId}/events/{eventId}  (a listed event, by its id)

The API is authenticated with an OAuth access token read from the
environment variable named by ``GoogleCalendarConfig.token_env``.

Rate limiting is reported by Google either as HTTP 429 or as HTTP 403 with a
structured ``rateLimitExceeded`` / ``userRateLimitExceeded`` reason; both are
surfaced as transient SinkErrors.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from calsync.core.config.models import GoogleCalendarConfig
from calsync.core.diagnostics.exceptions import ConfigurationError, SinkError
from calsync.core.diagnostics.retry import is_transient_status
from calsync.core.sync.models import DesiredEvent, ExistingEvent
from calsync.utils.dates import to_iso_utc

logger = logging.getLogger(__name__)

RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})
GONE_STATUS_CODES = frozenset({404, 410})


def _error_reasons(response: httpx.Response) -> set[str]:
    """Extract the structured error reasons from a Google API error body."""
    try:
        body = response.json()
    except ValueError:
        return set()
    if not isinstance(body, dict):
        return set()
    error = body.get("error")
    if not isinstance(error, dict):
        return set()
    return {
        str(item.get("reason"))
        for item in error.get("errors") or []
        if isinstance(item, dict) and item.get("reason")
    }


class GoogleCalendarSink:
    """
    Sink that writes events to Google Calendar.

    Example:
        >>> sink = GoogleCalendarSink(GoogleCalendarConfig())
        >>> sink.apply(event, "primary")
        >>> sink.remove("primary", event.stable_id)
    """

    def __init__(self, config: GoogleCalendarConfig, token: str | None = None) -> None:
        """
        Initialize the sink.

        Args:
            config: Sink configuration
            token: Access token; read from ``config.token_env`` when omitted

        Raises:
            ConfigurationError: If no access token is available
        """
        self.config = config
        token = token or os.environ.get(config.token_env)
        if not token:
            raise ConfigurationError(
                f"No Google Calendar access token: set {config.token_env}",
                variable=config.token_env,
            )
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    @property
    def name(self) -> str:
        return "google_calendar"

    def _events_path(self, calendar_id: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/calendars/{quote(calendar_id, safe='')}/events"

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        allow_gone: bool = False,
    ) -> httpx.Response:
        """
        Make one API request and classify any failure.

        Raises:
            SinkError: On network errors (transient), rate limits and 5xx
                (transient) and every other error status
        """
        try:
            response = httpx.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers,
                timeout=self.config.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise SinkError(self.name, f"{method} timed out", transient=True, url=url) from e
        except httpx.TransportError as e:
            raise SinkError(
                self.name, f"Network error during {method}: {e}", transient=True, url=url
            ) from e

        status = response.status_code
        if allow_gone and status in GONE_STATUS_CODES:
            return response
        if status >= 400:
            reasons = _error_reasons(response)
            transient = is_transient_status(status) or bool(reasons & RATE_LIMIT_REASONS)
            raise SinkError(
                self.name,
                f"Google Calendar responded with {status} to {method}:\n{response.text}",
                status_code=status,
                transient=transient,
                url=url,
                reasons=sorted(reasons),
            )
        return response

    def apply(self, event: DesiredEvent, destination: str) -> None:
        """Import (create or update) ``event`` into ``destination`` by iCalUID."""
        url = f"{self._events_path(destination)}/import"
        self._request("POST", url, json=event.canonical())
        logger.debug("Imported %s into %s", event.stable_id, destination)

    def remove(self, destination: str, stable_id: str) -> None:
        """Delete every event with iCalUID ``stable_id``; absent events are fine."""
        url = self._events_path(destination)
        response = self._request("GET", url, params={"iCalUID": stable_id})
        for item in response.json().get("items") or []:
            event_id = item.get("id")
            if event_id:
                self._delete(destination, event_id, stable_id)

    def _delete(self, destination: str, event_id: str, stable_id: str) -> bool:
        url = f"{self._events_path(destination)}/{quote(event_id, safe='')}"
        response = self._request("DELETE", url, allow_gone=True)
        if response.status_code in GONE_STATUS_CODES:
            logger.debug("%s (%s) was already gone from %s", stable_id, event_id, destination)
            return False
        logger.debug("Deleted %s (%s) from %s", stable_id, event_id, destination)
        return True

    def delete_existing(self, destination: str, event: ExistingEvent) -> bool:
        """
        Delete a listed event by its Google event id.

        Events listed without an id fall back to ``remove`` by iCalUID.
        """
        if not event.sink_id:
            self.remove(destination, event.stable_id)
            return True
        return self._delete(destination, event.sink_id, event.stable_id)

    def list_existing(self, destination: str, since: datetime) -> list[ExistingEvent]:
        """List every event in ``destination`` from ``since`` onwards."""
        url = self._events_path(destination)
        params = {"timeMin": to_iso_utc(since)}
        events: list[ExistingEvent] = []
        while True:
            data = self._request("GET", url, params=params).json()
            for item in data.get("items") or []:
                events.append(
                    ExistingEvent(
                        stable_id=item.get("iCalUID") or "",
                        summary=item.get("summary") or "",
                        sink_id=item.get("id"),
                    )
                )
            page_token = data.get("nextPageToken")
            if not page_token:
                return events
            params = {**params, "pageToken": page_token}

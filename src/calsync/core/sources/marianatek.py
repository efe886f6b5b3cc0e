"""
Mariana Tek source adapter.

Fetches scheduled classes for a brand from the Mariana Tek customer API and
maps each class to a calendar event.

API Endpoints:
- List: GET https://{brand}.marianatek.com/api/customer/v1/classes?min_start_date=YYYY-MM-DD

Response Format:
{
  "results": [
    {
      "id": "12345",
      "name": "Vinyasa",
      "start_datetime": "2024-05-01T17:30:00Z",
      "is_cancelled": false,
      "class_type": {"duration": 60},
      "instructors": [{"name": "Ann Smith"}],
      "location": {
        "name": "Downtown",
        "formatted_address": ["1 Main St", "Springfield, IL 62701"],
        "city": "Springfield",
        "state_province": "IL",
        "phone_number": "555-0100",
        "email": "front@studio.example"
      }
    }
  ],
  "links": {"next": "https://...&page=2"}
}

Example:
    >>> source = MarianaTekSource(config)
    >>> page = source.fetch_page(diagnostics, 1)
    >>> events = [source.map_to_desired_event(raw) for raw in page.items]
"""

from __future__ import annotations

import html
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from calsync.core.config.models import LocationMode, MarianaTekSourceConfig
from calsync.core.diagnostics.exceptions import ConfigurationError, SourceError
from calsync.core.diagnostics.retry import is_transient_status
from calsync.core.sources.base import register_source
from calsync.core.sync.models import DesiredEvent, EventStatus, PageResult
from calsync.utils.dates import days_ago, parse_datetime, to_iso_utc, to_utc_date_string
from calsync.utils.text import to_natural_list

if TYPE_CHECKING:
    from calsync.core.diagnostics import Diagnostics

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _class_id(raw: Any) -> str:
    return str(raw.get("id")) if isinstance(raw, dict) else repr(raw)


@register_source("marianatek")
class MarianaTekSource:
    """
    Source of Mariana Tek classes.

    Pagination follows ``links.next`` and stops once a page reaches classes
    starting ``future_days_to_fetch`` days from now. Page 1 always restarts
    from ``past_days_to_fetch`` days ago, so one instance can serve several
    runs.
    """

    def __init__(
        self,
        config: MarianaTekSourceConfig,
        *,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        """
        Initialize the source.

        Args:
            config: Validated source configuration
            now: Wall-clock source for the fetch window, injectable for tests
        """
        self.config = config
        self._now = now
        self._next_url: str | None = None
        self.fetch_upper_bound: datetime = days_ago(-config.future_days_to_fetch, now=now())

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def id_prefix(self) -> str:
        return self.config.id_prefix

    @property
    def past_days_to_fetch(self) -> int:
        return self.config.past_days_to_fetch

    def start_url(self) -> str:
        """URL of the first page, starting ``past_days_to_fetch`` days ago."""
        now = self._now()
        min_start_date = to_utc_date_string(days_ago(self.config.past_days_to_fetch, now=now))
        return (
            f"https://{self.config.brand}.marianatek.com/api/customer/v1/classes"
            f"?min_start_date={min_start_date}"
        )

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_page(self, diagnostics: Diagnostics, page_number: int) -> PageResult:
        """
        Fetch one page of classes.

        The continuation cursor only advances once a page was fetched and
        parsed, so retrying a failed call fetches the same page again.

        Raises:
            SourceError: On HTTP errors (transient for 429/5xx), network
                errors (transient) or unparseable responses
        """
        if page_number == 1:
            self._next_url = self.start_url()
            self.fetch_upper_bound = days_ago(
                -self.config.future_days_to_fetch, now=self._now()
            )
        url = self._next_url
        if url is None:
            return PageResult(items=[], keep_going=False)

        data = self._get_json(url)

        results = data.get("results") or []
        if not isinstance(results, list):
            raise SourceError(self.name, "Response 'results' is not a list", url=url)
        if not results:
            return PageResult(items=[], keep_going=False)

        links = data.get("links") or {}
        next_url = links.get("next") if isinstance(links, dict) else None

        # A class without a usable start time fails on its own when mapped;
        # here it is only left out of the horizon check
        known: list[datetime] = []
        for raw in results:
            start = self._start_or_none(raw)
            if start is None:
                logger.warning(
                    "Class %s from %s has no usable start time", _class_id(raw), self.name
                )
            else:
                known.append(start)
        page = PageResult.bounded(
            results,
            has_next=next_url is not None,
            horizon=self.fetch_upper_bound,
            timestamp_of=self._start_or_none,
        )
        if known:
            logger.info("Fetched %s up to %s", self.name, max(known).isoformat())

        self._next_url = next_url
        return page

    def _get_json(self, url: str) -> dict[str, Any]:
        try:
            response = httpx.get(
                url,
                headers={"Accept": "application/json"},
                timeout=REQUEST_TIMEOUT,
                follow_redirects=True,
            )
        except httpx.TimeoutException as e:
            raise SourceError(
                self.name, "Request timed out while fetching classes", transient=True, url=url
            ) from e
        except httpx.TransportError as e:
            raise SourceError(
                self.name, f"Network error while fetching classes: {e}", transient=True, url=url
            ) from e

        if response.status_code != 200:
            raise SourceError(
                self.name,
                f"MarianaTek responded with {response.status_code}:\n{response.text}",
                status_code=response.status_code,
                transient=is_transient_status(response.status_code),
                url=url,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SourceError(self.name, "Failed to parse JSON response", url=url) from e
        if not isinstance(data, dict):
            raise SourceError(
                self.name,
                "Response is not a valid JSON object",
                url=url,
                response_type=type(data).__name__,
            )
        return data

    @staticmethod
    def _start_or_none(raw: Any) -> datetime | None:
        try:
            return parse_datetime(raw["start_datetime"])
        except (KeyError, TypeError, ValueError):
            return None

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def describe(self, raw: dict[str, Any]) -> str:
        return (
            f'Processing "{raw.get("name")}" event with ID {raw.get("id")} '
            f'at {raw.get("start_datetime")}'
        )

    def map_to_desired_event(self, raw: dict[str, Any]) -> DesiredEvent:
        """
        Map a class to the calendar event it should appear as.

        Cancelled classes map to a cancelled event carrying only the id.

        Raises:
            KeyError: If a required class field is missing
            ValueError: If the start time cannot be parsed
        """
        class_id = str(raw["id"])
        stable_id = f"{self.config.id_prefix}{class_id}"
        if raw.get("is_cancelled"):
            return DesiredEvent(stable_id=stable_id, status=EventStatus.CANCELLED)

        config = self.config
        class_name = raw["name"]
        names = [
            instructor["name"].strip()
            for instructor in raw.get("instructors") or []
            if (instructor.get("name") or "").strip()
        ]
        first_names = [name.split(" ")[0] for name in names]

        summary = class_name
        if names:
            summary += f" with {to_natural_list(first_names)}"

        location = raw.get("location") or {}
        address_lines = location.get("formatted_address") or []
        one_line_address = ", ".join(address_lines) if address_lines else None

        description = config.custom_prefix
        description += f"{class_name} class"
        if names:
            description += f" with {to_natural_list(names)}"
        description += "\n\n"
        if config.include_reserve_link:
            reserve_url = (
                f"https://{config.brand}.marianaiframes.com/iframe/classes/{class_id}/reserve"
            )
            description += f'<a href="{reserve_url}">Reserve</a>\n\n'
        if config.include_address and one_line_address:
            maps_url = "https://www.google.com/maps/place/" + quote(one_line_address, safe="")
            description += f'<a href="{maps_url}">{html.escape(one_line_address)}</a>\n\n'
        if config.include_phone_number and location.get("phone_number"):
            description += location["phone_number"] + "\n"
        if config.include_email and location.get("email"):
            description += location["email"]
        description += config.custom_suffix

        start = parse_datetime(raw["start_datetime"])
        end = start + timedelta(minutes=raw["class_type"]["duration"])

        payload: dict[str, Any] = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": to_iso_utc(start)},
            "end": {"dateTime": to_iso_utc(end)},
        }

        if config.location_mode is LocationMode.FULL and one_line_address:
            payload["location"] = one_line_address
        elif config.location_mode is LocationMode.CONCISE:
            first_line = address_lines[0] if address_lines else None
            city = location.get("city")
            if first_line and city:
                state = location.get("state_province") or ""
                payload["location"] = f"{first_line}, {city} {state}".rstrip()
            else:
                logger.debug("No concise location for class %s", class_id)

        return DesiredEvent(stable_id=stable_id, status=EventStatus.CONFIRMED, payload=payload)

    # ------------------------------------------------------------------
    # Destinations
    # ------------------------------------------------------------------

    def destinations_for(self, raw: dict[str, Any]) -> list[str]:
        """
        Calendars a class is mirrored to.

        Raises:
            ConfigurationError: If the class has no location name, or its
                location has no configured calendars
        """
        mapping = self.config.location_to_target_calendars
        if mapping is not None:
            location_name = (raw.get("location") or {}).get("name")
            if not location_name:
                raise ConfigurationError("No location name to determine target calendars.")
            targets = mapping.get(location_name)
            if not targets:
                raise ConfigurationError(
                    f'No target calendars for location "{location_name}"',
                    location=location_name,
                )
            return list(dict.fromkeys(targets))
        if self.config.target_calendar:
            return [self.config.target_calendar]
        raise ConfigurationError("Invalid target calendar configuration.")

    def all_destinations(self) -> list[str]:
        mapping = self.config.location_to_target_calendars
        if mapping is not None:
            return list(dict.fromkeys(t for targets in mapping.values() for t in targets))
        return [self.config.target_calendar] if self.config.target_calendar else []

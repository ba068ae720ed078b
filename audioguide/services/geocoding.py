"""Reverse geocoding through Nominatim, used to ground the facts prompt."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from audioguide.config.settings import NominatimConfig, settings

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

LOCATION_WARNING = "Location details unavailable - information may be less accurate"


@dataclass(frozen=True)
class Location:
    """Human-readable place around a coordinate pair."""

    country: str = ""
    city: str = ""
    street: str = ""
    neighborhood: str = ""
    valid: bool = False

    def describe(self) -> str:
        """Comma-joined street, neighborhood, city and country (empty parts skipped)."""

        if not self.valid:
            return ""
        parts = [self.street, self.neighborhood, self.city, self.country]
        return ", ".join(part for part in parts if part)


def _first(address: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = address.get(key)
        if value:
            return str(value)
    return ""


def parse_location(payload: Any) -> Location:
    if not isinstance(payload, Mapping):
        return Location()
    address = payload.get("address")
    if not isinstance(address, Mapping):
        return Location()
    return Location(
        country=_first(address, "country"),
        city=_first(address, "city", "town", "village"),
        street=_first(address, "road", "street"),
        neighborhood=_first(address, "suburb", "neighbourhood"),
        valid=True,
    )


class NominatimGeocoder:
    """Resolve coordinates to a ``Location``; failures yield an invalid one."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: NominatimConfig | None = None,
    ) -> None:
        self._config = config or settings.nominatim
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._config.timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def reverse(
        self,
        latitude: float,
        longitude: float,
        token: CancellationToken | None = None,
    ) -> Location:
        request = self._client.get(
            self._config.endpoint,
            params={"lat": f"{latitude:f}", "lon": f"{longitude:f}", "format": "json"},
            headers={"User-Agent": self._config.user_agent},
            timeout=self._config.timeout_seconds,
        )
        try:
            response = await (token.guard(request) if token else request)
        except httpx.HTTPError as exc:
            logger.info("Reverse geocoding failed for %s,%s: %s", latitude, longitude, exc)
            return Location()

        if response.status_code != 200:
            logger.info("Reverse geocoding returned HTTP %s", response.status_code)
            return Location()
        try:
            return parse_location(response.json())
        except ValueError:
            return Location()


__all__ = ["LOCATION_WARNING", "Location", "NominatimGeocoder", "parse_location"]

"""Overpass API client for querying tourist attractions."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional

import httpx

from audioguide.config.settings import OverpassConfig, settings
from audioguide.domain.models import Attraction, Bounds
from audioguide.telemetry import record_search_attempt

from .cancellation import CancellationToken, OperationCancelled
from .errors import AttractionSearchError, RateLimitedError, SearchTimeoutError

logger = logging.getLogger(__name__)

_QUERY_TEMPLATE = """
[out:json][timeout:{timeout}];
(
  nwr["tourism"~"museum|attraction|gallery|viewpoint|artwork|information"]({bbox});
  nwr["historic"]({bbox});
  nwr["amenity"="place_of_worship"]({bbox});
);
out center;
"""


def build_query(bounds: Bounds, timeout: int = 25) -> str:
    return _QUERY_TEMPLATE.format(timeout=timeout, bbox=bounds.as_overpass_bbox())


class OverpassClient:
    """Issue bounding-box searches against an Overpass interpreter."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: OverpassConfig | None = None,
    ) -> None:
        self._config = config or settings.overpass
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._config.timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def search_attractions(
        self,
        bounds: Bounds,
        token: CancellationToken | None = None,
    ) -> List[Mapping[str, Any]]:
        """Return the raw ``elements`` of the Overpass response."""

        query = build_query(bounds, self._config.query_timeout_seconds)
        request = self._client.post(
            self._config.endpoint,
            data={"data": query},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        try:
            response = await (token.guard(request) if token else request)
        except OperationCancelled:
            record_search_attempt("cancelled")
            raise
        except httpx.TimeoutException as exc:
            record_search_attempt("timeout")
            raise SearchTimeoutError(
                "Overpass request timed out", service="overpass", status_code=504
            ) from exc
        except httpx.RequestError as exc:
            record_search_attempt("error")
            raise AttractionSearchError(
                f"Unable to reach Overpass API: {exc}", service="overpass"
            ) from exc

        if response.status_code == 429:
            record_search_attempt("rate_limited")
            raise RateLimitedError("RATE_LIMITED", service="overpass", status_code=429)
        if response.status_code == 504:
            record_search_attempt("timeout")
            raise SearchTimeoutError("TIMEOUT", service="overpass", status_code=504)
        if response.is_error:
            record_search_attempt("error")
            raise AttractionSearchError(
                f"Overpass API error: {response.status_code}",
                service="overpass",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            record_search_attempt("error")
            raise AttractionSearchError(
                f"Invalid response from Overpass API: {exc}", service="overpass"
            ) from exc

        record_search_attempt("ok")
        elements = payload.get("elements") if isinstance(payload, Mapping) else None
        return list(elements or [])


def get_category(tags: Mapping[str, str]) -> str:
    """Derive the display category from OSM tags."""

    if tags.get("tourism"):
        return tags["tourism"]
    if tags.get("historic"):
        return f"historic:{tags['historic']}"
    if tags.get("amenity") == "place_of_worship":
        return "place_of_worship"
    return "attraction"


def _coordinate(element: Mapping[str, Any], key: str) -> Optional[float]:
    value = element.get(key)
    if value is None:
        center = element.get("center")
        if isinstance(center, Mapping):
            value = center.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def transform_attraction(element: Mapping[str, Any]) -> Optional[Attraction]:
    """Build an ``Attraction`` from one raw element, or None if unusable."""

    tags = element.get("tags")
    if not isinstance(tags, Mapping):
        return None
    name = str(tags.get("name") or "").strip()
    if not name:
        return None

    latitude = _coordinate(element, "lat")
    longitude = _coordinate(element, "lon")
    if latitude is None or longitude is None:
        return None

    raw_id = element.get("id")
    if raw_id is None:
        return None
    element_type = element.get("type")
    attraction_id = f"{element_type}/{raw_id}" if element_type else raw_id

    return Attraction(
        id=attraction_id,
        name=name,
        category=get_category(tags),
        latitude=latitude,
        longitude=longitude,
        raw_tags={str(key): str(value) for key, value in tags.items()},
    )


def transform_attractions(elements: Iterable[Mapping[str, Any]]) -> List[Attraction]:
    """Transform raw elements in source order, dropping unusable records."""

    attractions: List[Attraction] = []
    for element in elements:
        attraction = transform_attraction(element)
        if attraction is not None:
            attractions.append(attraction)
    return attractions


__all__ = [
    "OverpassClient",
    "build_query",
    "get_category",
    "transform_attraction",
    "transform_attractions",
]

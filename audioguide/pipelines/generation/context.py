"""Location context stage: reverse geocode the attraction before prompting."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Tuple

from audioguide.domain.models import Attraction
from audioguide.services.cancellation import CancellationToken
from audioguide.services.geocoding import LOCATION_WARNING, Location

logger = logging.getLogger("audioguide.pipelines.generation")


class Geocoder(Protocol):
    async def reverse(
        self, latitude: float, longitude: float, token: CancellationToken | None = None
    ) -> Location:
        ...


async def resolve_location(
    geocoder: Optional[Geocoder],
    attraction: Attraction,
    token: CancellationToken,
) -> Tuple[Optional[Location], Optional[str]]:
    """Return the attraction's location and a warning when it could not be resolved."""

    if geocoder is None:
        return None, None

    location = await geocoder.reverse(attraction.latitude, attraction.longitude, token)
    if not location.valid:
        logger.info("Location unavailable for %s; prompting with coordinates", attraction.id)
        return location, LOCATION_WARNING
    return location, None


__all__ = ["Geocoder", "resolve_location"]

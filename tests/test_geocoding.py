"""Reverse geocoding and its failure modes."""

from __future__ import annotations

import asyncio

import httpx

from audioguide.config.settings import NominatimConfig
from audioguide.services.geocoding import NominatimGeocoder, parse_location


def _reverse(handler):
    async def run():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        geocoder = NominatimGeocoder(client=client, config=NominatimConfig())
        try:
            return await geocoder.reverse(50.0614, 19.9372)
        finally:
            await client.aclose()

    return asyncio.run(run())


def test_reverse_sends_user_agent_and_parses_address():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["agent"] = request.headers.get("user-agent")
        captured["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={"address": {"road": "Rynek Główny", "town": "Kraków", "country": "Poland"}},
        )

    location = _reverse(handler)

    assert captured["agent"] == "AudioGuide/1.0 (audio-guide-app)"
    assert captured["params"]["format"] == "json"
    assert location.valid is True
    assert location.describe() == "Rynek Główny, Kraków, Poland"


def test_http_failure_yields_invalid_location():
    location = _reverse(lambda request: httpx.Response(503))

    assert location.valid is False
    assert location.describe() == ""


def test_transport_failure_yields_invalid_location():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    assert _reverse(handler).valid is False


def test_parse_location_requires_address():
    assert parse_location({"display_name": "somewhere"}).valid is False
    assert parse_location(None).valid is False

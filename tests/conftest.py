"""Shared fakes: in-memory Table client, WeatherAPI transport, webpush."""

from __future__ import annotations

import json
import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any

import httpx
import pytest
from azure.core.exceptions import ResourceNotFoundError, ServiceRequestError
from azure.data.tables import UpdateMode
from pywebpush import WebPushException

from weather_alerts.config import Settings
from weather_alerts.infra import push_client
from weather_alerts.infra.table_client import SubscriptionStore
from weather_alerts.infra.weather_client import WeatherGateway
from weather_alerts.models.subscription import Subscription

FIXED_NOW = datetime(2026, 6, 1, 14, 5, tzinfo=timezone.utc)


class FakeTableClient:
    """Just enough of azure.data.tables.TableClient for SubscriptionStore."""

    def __init__(self) -> None:
        self.entities: dict[tuple[str, str], dict[str, Any]] = {}
        self.fail = False
        self.closed = False
        self.latency = 0.0

    def _check(self) -> None:
        if self.latency:
            time.sleep(self.latency)
        if self.fail:
            raise ServiceRequestError("table unavailable")

    def upsert_entity(self, entity: dict[str, Any], mode: UpdateMode = UpdateMode.MERGE) -> None:
        self._check()
        key = (entity["PartitionKey"], entity["RowKey"])
        if mode == UpdateMode.REPLACE or key not in self.entities:
            self.entities[key] = dict(entity)
        else:
            self.entities[key].update(entity)

    def update_entity(self, entity: dict[str, Any], mode: UpdateMode = UpdateMode.MERGE) -> None:
        self._check()
        key = (entity["PartitionKey"], entity["RowKey"])
        if key not in self.entities:
            raise ResourceNotFoundError("Not Found")
        if mode == UpdateMode.REPLACE:
            self.entities[key] = dict(entity)
        else:
            self.entities[key].update(entity)

    def get_entity(self, partition_key: str, row_key: str) -> dict[str, Any]:
        self._check()
        try:
            return dict(self.entities[(partition_key, row_key)])
        except KeyError:
            raise ResourceNotFoundError("Not Found") from None

    def delete_entity(self, partition_key: str, row_key: str) -> None:
        self._check()
        self.entities.pop((partition_key, row_key), None)

    def query_entities(self, query_filter: str, parameters: dict[str, Any]) -> list[dict[str, Any]]:
        self._check()
        rows = []
        for (pk, _), entity in self.entities.items():
            if pk != parameters["pk"]:
                continue
            if "location" in parameters and entity.get("location") != parameters["location"]:
                continue
            rows.append(dict(entity))
        return rows

    def close(self) -> None:
        self.closed = True


class FakeWebPush:
    """Stands in for pywebpush.webpush; endpoints can be marked gone/broken/slow."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.gone: set[str] = set()
        self.broken: set[str] = set()
        self.not_found: set[str] = set()

    def __call__(self, subscription_info: dict[str, Any], data: str, **kwargs: Any) -> None:
        endpoint = subscription_info["endpoint"]
        if endpoint in self.gone:
            raise WebPushException("Push failed: 410 Gone", response=SimpleNamespace(status_code=410))
        if endpoint in self.not_found:
            raise WebPushException("Push failed: 404", response=SimpleNamespace(status_code=404))
        if endpoint in self.broken:
            raise WebPushException("Push failed: 503", response=SimpleNamespace(status_code=503))
        self.sent.append((endpoint, json.loads(data)))

    def payloads_for(self, endpoint: str) -> list[dict[str, Any]]:
        return [payload for ep, payload in self.sent if ep == endpoint]


def make_hour(day: str, hour: int, temp_c: float = 20.0, text: str = "Clear") -> dict[str, Any]:
    return {
        "time": f"{day} {hour:02d}:00",
        "temp_c": temp_c,
        "condition": {"text": text, "icon": "//cdn.weatherapi.com/weather/64x64/day/113.png"},
        "cloud": 0,
        "chance_of_rain": 0,
        "wind_kph": 5.0,
        "wind_dir": "N",
        "uv": 3.0,
    }


def make_forecast(days: int = 2, start: datetime = FIXED_NOW) -> dict[str, Any]:
    forecastday = []
    for offset in range(days):
        day = (start + timedelta(days=offset)).strftime("%Y-%m-%d")
        forecastday.append({"date": day, "hour": [make_hour(day, h, temp_c=10 + h) for h in range(24)]})
    return {"location": {"name": "Paris"}, "forecast": {"forecastday": forecastday}}


class WeatherAPIStub:
    """httpx.MockTransport handler; locations listed in `failing` get a 500."""

    def __init__(self) -> None:
        self.failing: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.search_payload: list[dict[str, Any]] = [{"name": "Paris", "country": "France"}]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        query = request.url.params.get("q", "")
        if any(query.startswith(name) for name in self.failing):
            return httpx.Response(500, json={"error": {"message": "boom"}})
        if request.url.path.endswith("/search.json"):
            return httpx.Response(200, json=self.search_payload)
        return httpx.Response(200, json=make_forecast())


def make_subscription(endpoint: str, location: str = "Paris,Ile-de-France,France") -> Subscription:
    return Subscription(
        endpoint=endpoint,
        keys={"p256dh": "key-" + endpoint[-4:], "auth": "auth"},
        location=location,
        created_at=FIXED_NOW,
        next_notification_time=FIXED_NOW + timedelta(hours=2),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        weather_api_key="test-key",
        weather_api_base_url="https://weather.test/v1",
        vapid_public_key="test-public",
        vapid_private_key="test-private",
        storage_connection_string="UseDevelopmentStorage=true",
        push_timeout_seconds=2.0,
        scheduler_enabled=False,
    )


@pytest.fixture
def table() -> FakeTableClient:
    return FakeTableClient()


@pytest.fixture
def store(table: FakeTableClient) -> SubscriptionStore:
    return SubscriptionStore(table_client=table)


@pytest.fixture
def fake_push(monkeypatch: pytest.MonkeyPatch) -> FakeWebPush:
    fake = FakeWebPush()
    monkeypatch.setattr(push_client, "webpush", fake)
    return fake


@pytest.fixture
def weather_api() -> WeatherAPIStub:
    return WeatherAPIStub()


@pytest.fixture
def gateway(weather_api: WeatherAPIStub) -> WeatherGateway:
    return WeatherGateway(
        api_key="test-key",
        base_url="https://weather.test/v1",
        transport=httpx.MockTransport(weather_api),
    )

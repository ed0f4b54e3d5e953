"""UpdateScheduler cycles and cadence."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from weather_alerts.infra.push_client import PushDispatcher
from weather_alerts.infra.table_client import SubscriptionStore
from weather_alerts.infra.weather_client import WeatherGateway
from weather_alerts.services.notification_handler import LocationNotifier, LocationReport
from weather_alerts.services.scheduler import SchedulerState, UpdateScheduler

from conftest import FIXED_NOW, FakeTableClient, FakeWebPush, WeatherAPIStub, make_subscription

PARIS = "Paris,Ile-de-France,France"
LYON = "Lyon,Auvergne,France"


def _scheduler(store: SubscriptionStore, gateway: WeatherGateway, **kwargs: Any) -> UpdateScheduler:
    dispatcher = PushDispatcher(store, vapid_private_key="priv", vapid_subject="mailto:t@example.com")
    notifier = LocationNotifier(store, gateway, dispatcher, cadence_hours=2, clock=lambda: FIXED_NOW)
    return UpdateScheduler(store, notifier, interval_hours=2, clock=lambda: FIXED_NOW, **kwargs)


def test_cycle_isolates_failing_location(
    store: SubscriptionStore, gateway: WeatherGateway, weather_api: WeatherAPIStub, fake_push: FakeWebPush
) -> None:
    for i in range(3):
        store.upsert(make_subscription(f"https://push.test/p{i}", PARIS))
    for i in range(2):
        store.upsert(make_subscription(f"https://push.test/l{i}", LYON))
    weather_api.failing.add("Lyon")

    report = asyncio.run(_scheduler(store, gateway).run_cycle())

    assert report is not None
    assert (report.locations, report.succeeded, report.failed, report.subscribers) == (2, 1, 1, 5)
    for i in range(2):
        titles = [p["title"] for p in fake_push.payloads_for(f"https://push.test/l{i}")]
        assert titles == ["Weather Update Failed"]
    for i in range(3):
        types = [p["data"]["type"] for p in fake_push.payloads_for(f"https://push.test/p{i}")]
        assert types == ["current_weather", "forecast"]
        assert store.find_by_endpoint(f"https://push.test/p{i}").last_notified == FIXED_NOW


def test_scheduled_forecast_uses_cadence_offset(
    store: SubscriptionStore, gateway: WeatherGateway, fake_push: FakeWebPush
) -> None:
    store.upsert(make_subscription("https://push.test/1", PARIS))

    asyncio.run(_scheduler(store, gateway).run_cycle())

    forecast = fake_push.payloads_for("https://push.test/1")[1]
    assert forecast["data"]["time"].endswith("16:00")


def test_empty_store_is_a_noop(store: SubscriptionStore, gateway: WeatherGateway, weather_api: WeatherAPIStub) -> None:
    report = asyncio.run(_scheduler(store, gateway).run_cycle())

    assert report is not None
    assert report.locations == 0
    assert weather_api.requests == []


def test_store_error_does_not_escape(table: FakeTableClient, gateway: WeatherGateway) -> None:
    store = SubscriptionStore(table_client=table)
    table.fail = True
    scheduler = _scheduler(store, gateway)

    report = asyncio.run(scheduler.run_cycle())

    assert report is not None
    assert report.locations == 0
    assert scheduler.state is SchedulerState.IDLE


def test_unexpected_error_in_one_group_does_not_stop_others(
    store: SubscriptionStore, gateway: WeatherGateway, fake_push: FakeWebPush
) -> None:
    store.upsert(make_subscription("https://push.test/p", PARIS))
    store.upsert(make_subscription("https://push.test/l", LYON))
    scheduler = _scheduler(store, gateway)
    real = scheduler.notifier.notify_location

    async def flaky(location: str, subscribers: list, **kwargs: Any) -> LocationReport:
        if location == PARIS:
            raise RuntimeError("boom")
        return await real(location, subscribers, **kwargs)

    scheduler.notifier.notify_location = flaky  # type: ignore[method-assign]

    report = asyncio.run(scheduler.run_cycle())

    assert report is not None
    assert (report.succeeded, report.failed) == (1, 1)
    assert len(fake_push.payloads_for("https://push.test/l")) == 2


def test_cycle_is_single_flight(store: SubscriptionStore, gateway: WeatherGateway) -> None:
    scheduler = _scheduler(store, gateway)
    scheduler.state = SchedulerState.RUNNING

    assert asyncio.run(scheduler.run_cycle()) is None


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


def test_fire_times_are_anchored_and_do_not_drift(store: SubscriptionStore, gateway: WeatherGateway) -> None:
    clock = FakeClock(datetime(2026, 6, 1, 13, 30, tzinfo=timezone.utc))
    scheduler = _scheduler(store, gateway, sleep=clock.sleep)
    scheduler.clock = clock
    fired: list[datetime] = []

    async def slow_cycle() -> None:
        fired.append(clock.now)
        clock.now += timedelta(minutes=17)

    scheduler.run_cycle = slow_cycle  # type: ignore[method-assign]

    asyncio.run(scheduler.run_forever(max_cycles=3))

    assert scheduler.anchor == datetime(2026, 6, 1, 14, 0, tzinfo=timezone.utc)
    assert fired == [
        datetime(2026, 6, 1, 14, 0, tzinfo=timezone.utc),
        datetime(2026, 6, 1, 16, 0, tzinfo=timezone.utc),
        datetime(2026, 6, 1, 18, 0, tzinfo=timezone.utc),
    ]


def test_overrunning_cycle_skips_missed_ticks(store: SubscriptionStore, gateway: WeatherGateway) -> None:
    clock = FakeClock(datetime(2026, 6, 1, 13, 30, tzinfo=timezone.utc))
    scheduler = _scheduler(store, gateway, sleep=clock.sleep)
    scheduler.clock = clock
    fired: list[datetime] = []

    async def very_slow_cycle() -> None:
        fired.append(clock.now)
        clock.now += timedelta(hours=5)

    scheduler.run_cycle = very_slow_cycle  # type: ignore[method-assign]

    asyncio.run(scheduler.run_forever(max_cycles=2))

    # 14:00 runs until 19:00; 16:00 and 18:00 are skipped, next is 20:00
    assert fired == [
        datetime(2026, 6, 1, 14, 0, tzinfo=timezone.utc),
        datetime(2026, 6, 1, 20, 0, tzinfo=timezone.utc),
    ]


def test_slow_store_does_not_block_the_event_loop(
    table: FakeTableClient, gateway: WeatherGateway, fake_push: FakeWebPush
) -> None:
    store = SubscriptionStore(table_client=table)
    store.upsert(make_subscription("https://push.test/1", PARIS))
    table.latency = 0.2
    scheduler = _scheduler(store, gateway)

    async def run() -> tuple[Any, int]:
        cycle = asyncio.ensure_future(scheduler.run_cycle())
        ticks = 0
        while not cycle.done():
            await asyncio.sleep(0.01)
            ticks += 1
        return cycle.result(), ticks

    report, ticks = asyncio.run(run())

    assert report is not None
    assert report.succeeded == 1
    # find_all and the timestamp update each block their thread for 0.2s
    assert ticks >= 10
    assert store.find_by_endpoint("https://push.test/1").last_notified == FIXED_NOW

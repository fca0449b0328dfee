import pytest

from feedsync.jobs.celery_app import TIERED_SECONDS, TIMER_SECONDS, beat_schedule
from feedsync.jobs.trigger import ImportTrigger
from feedsync.logic.budget import MAX_EXECUTION_SECONDS
from feedsync.settings import (
    CRON_MODE_KEY,
    EXTERNAL,
    TIERED,
    TIMER,
    SourceCredentials,
    cron_mode,
    cron_secret,
    load_credentials,
    save_credentials,
)


def test_credentials_fall_back_to_environment(options, monkeypatch):
    monkeypatch.setenv("GVAMAX_ACCOUNT_ID", "inmo")
    monkeypatch.setenv("GVAMAX_API_KEY", "from-env")

    assert load_credentials(options, "gvamax") == SourceCredentials("inmo", "from-env")

    save_credentials(options, "gvamax", SourceCredentials("inmo", "stored"))
    assert load_credentials(options, "gvamax").access_token == "stored"


def test_incomplete_credentials(options, monkeypatch):
    monkeypatch.delenv("EIKON_ACCOUNT_ID", raising=False)
    monkeypatch.delenv("EIKON_ACCESS_TOKEN", raising=False)
    assert not load_credentials(options, "eikon").complete


def test_cron_mode(options, monkeypatch):
    monkeypatch.delenv("CRON_MODE", raising=False)
    assert cron_mode(options) == TIMER

    options.set(CRON_MODE_KEY, TIERED)
    assert cron_mode(options) == TIERED

    options.set(CRON_MODE_KEY, "hourly")
    with pytest.raises(ValueError):
        cron_mode(options)


def test_cron_secret_is_generated_once(options):
    secret = cron_secret(options)
    assert len(secret) == 32
    assert cron_secret(options) == secret


def test_beat_schedule_per_mode():
    assert beat_schedule(TIMER)["feedsync-import"]["schedule"] == TIMER_SECONDS
    assert TIMER_SECONDS > MAX_EXECUTION_SECONDS
    assert beat_schedule(TIERED)["feedsync-tiered-import"]["schedule"] == TIERED_SECONDS
    assert beat_schedule(EXTERNAL) == {}
    with pytest.raises(ValueError):
        beat_schedule("hourly")


@pytest.mark.asyncio
async def test_timer_fire_runs_imports(options):
    calls = []

    async def run_imports():
        calls.append(True)
        return []

    assert await ImportTrigger(options, run_imports).on_timer_fire() == []
    assert calls == [True]

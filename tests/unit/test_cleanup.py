import asyncio
import logging
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from shortener import crud
from shortener.expiration import utc_now
from shortener.services.cleanup import CleanupSweeper, DEFAULT_CLEANUP_MINUTES
from shortener.services.registry import LinkRegistry


async def create(session_factory, url="https://example.com/a", expire_in=None):
    async with session_factory() as db:
        return await LinkRegistry(db).create(url, expire_in)


async def stored_codes(session_factory):
    async with session_factory() as db:
        return {link.short_code for link in await crud.list_links(db, utc_now(), active_only=False)}


@pytest.mark.asyncio
async def test_sweep_with_nothing_expired_is_noop(session_factory):
    keep = await create(session_factory)
    later = await create(session_factory, expire_in=3_600_000)
    sweeper = CleanupSweeper(session_factory)

    assert await sweeper.sweep_once() == []
    assert await stored_codes(session_factory) == {keep.short_code, later.short_code}


@pytest.mark.asyncio
async def test_sweep_removes_only_expired_links(session_factory, expire_link):
    keep = await create(session_factory)
    later = await create(session_factory, expire_in=3_600_000)
    gone = await create(session_factory, expire_in=60_000)
    also_gone = await create(session_factory, expire_in=60_000)
    await expire_link(gone.short_code)
    await expire_link(also_gone.short_code, timedelta(days=3))

    sweeper = CleanupSweeper(session_factory)
    removed = await sweeper.sweep_once()

    assert sorted(removed) == sorted([gone.short_code, also_gone.short_code])
    assert await stored_codes(session_factory) == {keep.short_code, later.short_code}


@pytest.mark.asyncio
async def test_second_sweep_is_noop(session_factory, expire_link):
    gone = await create(session_factory, expire_in=60_000)
    await expire_link(gone.short_code)
    sweeper = CleanupSweeper(session_factory)

    assert await sweeper.sweep_once() == [gone.short_code]
    assert await sweeper.sweep_once() == []


@pytest.mark.parametrize("interval", [0, -5])
def test_invalid_interval_falls_back_to_default(interval, caplog):
    with caplog.at_level(logging.WARNING, logger="shortener.services.cleanup"):
        sweeper = CleanupSweeper(MagicMock(), interval_minutes=interval)

    assert sweeper.interval == timedelta(minutes=DEFAULT_CLEANUP_MINUTES)
    assert "Invalid cleanup interval" in caplog.text


def test_interval_is_taken_in_minutes():
    assert CleanupSweeper(MagicMock(), interval_minutes=60).interval == timedelta(hours=1)


@pytest.mark.asyncio
async def test_run_sweeps_immediately_and_stops_promptly(session_factory, expire_link):
    gone = await create(session_factory, expire_in=60_000)
    await expire_link(gone.short_code)

    sweeper = CleanupSweeper(session_factory, interval_minutes=60)
    sweeper.start()
    assert sweeper.running

    for _ in range(100):
        if not await stored_codes(session_factory):
            break
        await asyncio.sleep(0.02)
    assert await stored_codes(session_factory) == set()

    # Interval is an hour; stop must not wait for it.
    await asyncio.wait_for(sweeper.stop(), timeout=2)
    assert not sweeper.running


@pytest.mark.asyncio
async def test_failed_sweep_does_not_stop_the_loop(session_factory, caplog):
    sweeper = CleanupSweeper(session_factory)
    sweeper.interval = timedelta(milliseconds=10)
    calls = 0

    async def flaky(db, now):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("database is locked")
        return []

    with patch("shortener.crud.delete_expired_links", side_effect=flaky):
        with caplog.at_level(logging.ERROR, logger="shortener.services.cleanup"):
            sweeper.start()
            for _ in range(100):
                if calls >= 3:
                    break
                await asyncio.sleep(0.01)
            await sweeper.stop()

    assert calls >= 3
    assert "Error in cleanup job" in caplog.text


@pytest.mark.asyncio
async def test_sweep_skipped_when_another_worker_holds_lock(session_factory, expire_link):
    gone = await create(session_factory, expire_in=60_000)
    await expire_link(gone.short_code)
    redis_client = AsyncMock()
    redis_client.acquire_lock.return_value = False

    sweeper = CleanupSweeper(session_factory, redis_client=redis_client)

    assert await sweeper.sweep_once() == []
    assert await stored_codes(session_factory) == {gone.short_code}
    redis_client.acquire_lock.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_without_start_is_harmless(session_factory):
    await CleanupSweeper(session_factory).stop()

from unittest.mock import MagicMock

import pytest

from config import Config

from refresh.beat_savior import BeatSaviorDataRefresher
from services.context import PLAYERS, ServiceContext
from services.players import create_player_service

from fakes import FakeBeatSaviorClient, FakePlayerService, beat_savior_repo, players_refresh_repo


class Closable:
    def __init__(self):
        self.closed = 0

    async def close(self):
        self.closed += 1


def test_acquire_shares_one_instance():
    context = ServiceContext()
    created = []

    def factory(ctx):
        assert ctx is context
        created.append(Closable())
        return created[-1]

    first = context.acquire("svc", factory)
    second = context.acquire("svc", factory)

    assert first is second
    assert len(created) == 1
    assert context.holders("svc") == 2
    assert "svc" in context


@pytest.mark.asyncio
async def test_instance_closed_when_last_holder_releases():
    context = ServiceContext()
    service = context.acquire("svc", lambda ctx: Closable())
    context.acquire("svc", lambda ctx: Closable())

    await context.release("svc")
    assert service.closed == 0
    assert "svc" in context

    await context.release("svc")
    assert service.closed == 1
    assert "svc" not in context
    assert context.holders("svc") == 0


@pytest.mark.asyncio
async def test_reacquire_after_close_creates_new_instance():
    context = ServiceContext()
    first = context.acquire("svc", lambda ctx: Closable())
    await context.release("svc")

    second = context.acquire("svc", lambda ctx: Closable())

    assert second is not first


@pytest.mark.asyncio
async def test_sync_close_and_no_close_are_supported():
    class SyncClosable:
        closed = False

        def close(self):
            self.closed = True

    context = ServiceContext()
    sync_service = context.acquire("sync", lambda ctx: SyncClosable())
    context.acquire("plain", lambda ctx: object())

    await context.release("sync")
    await context.release("plain")

    assert sync_service.closed is True


@pytest.mark.asyncio
async def test_release_unknown_service_raises():
    with pytest.raises(KeyError):
        await ServiceContext().release("nope")


@pytest.mark.asyncio
async def test_refresher_close_releases_player_service():
    context = ServiceContext()
    player_service = context.acquire(PLAYERS, lambda ctx: FakePlayerService([], "P"))
    client = FakeBeatSaviorClient([])
    refresher = BeatSaviorDataRefresher(
        client,
        beat_savior_repo(),
        players_refresh_repo(),
        player_service,
        context=context,
    )

    await refresher.close()

    assert client.closed is True
    assert PLAYERS not in context


@pytest.mark.asyncio
async def test_player_service_factory_reads_players_table():
    db = MagicMock()
    db.select_one.return_value = {"data": {"playerId": "42", "recentPlay": "2024-05-01T12:00:00+00:00"}}
    context = ServiceContext(Config(supabase_url="http://x", supabase_key="k", main_player_id="42"), db)

    service = context.acquire(PLAYERS, create_player_service)
    player = await service.get(42)

    assert service.is_main_player(42)
    assert not service.is_main_player("7")
    assert player["recentPlay"].year == 2024
    db.select_one.assert_called_once_with("players", "key", "42")

import asyncio

import pytest

from enrichment.enhancers import EnhancerSet
from enrichment.provider import ApiScoresProvider, UnknownServiceError
from enrichment.scores_store import DEFAULT_SERVICE_PARAMS, ScoresStore

DEBOUNCE = 0.02


def make_rows(*leaderboard_ids):
    return [
        {"leaderboard": {"leaderboardId": lid, "maxScore": 1000}, "score": {"score": 500}}
        for lid in leaderboard_ids
    ]


class FakeProvider:
    def __init__(self, response=None, error=None):
        self.response = response if response is not None else {"scores": make_rows("A", "B"), "total": 42}
        self.error = error
        self.calls = []
        self.gates = {}

    async def get_data(self, player_id, service, service_params, priority):
        self.calls.append((player_id, service, dict(service_params)))
        gate = self.gates.get(player_id)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(player_id)
        return self.response


def make_store(provider=None, **kwargs):
    provider = provider or FakeProvider()
    store = ScoresStore(provider, player_id="P", debounce_seconds=DEBOUNCE, **kwargs)
    return store, provider


@pytest.mark.asyncio
async def test_unchanged_query_makes_no_request():
    store, provider = make_store()

    assert await store.fetch() is False
    assert await store.fetch(dict(DEFAULT_SERVICE_PARAMS), "scoresaber", "P") is False
    assert provider.calls == []


@pytest.mark.asyncio
async def test_param_order_does_not_make_a_new_query():
    store, provider = make_store()

    assert await store.fetch({"page": 1, "type": "recent"}) is False
    assert provider.calls == []


@pytest.mark.asyncio
async def test_changed_query_fetches_and_unwraps_total():
    store, provider = make_store()

    assert await store.fetch({"type": "top", "page": 2}) is True

    assert provider.calls == [("P", "scoresaber", {"type": "top", "page": 2})]
    assert [r["leaderboard"]["leaderboardId"] for r in store.get()] == ["A", "B"]
    assert store.total_scores == 42
    assert store.service_params == {"type": "top", "page": 2}
    assert store.pending is False
    await store.pipeline.wait()


@pytest.mark.asyncio
async def test_forced_fetch_and_refresh_always_request():
    store, provider = make_store()

    assert await store.fetch(force=True) is True
    assert await store.refresh() is True
    assert len(provider.calls) == 2
    await store.pipeline.wait()


@pytest.mark.asyncio
async def test_switching_player_keeps_params():
    store, provider = make_store()

    assert await store.fetch(player_id="Q") is True

    assert store.player_id == "Q"
    assert provider.calls == [("Q", "scoresaber", DEFAULT_SERVICE_PARAMS)]
    await store.pipeline.wait()


@pytest.mark.asyncio
async def test_failed_fetch_records_error():
    boom = RuntimeError("service down")
    store, _ = make_store(FakeProvider(error=boom))

    assert await store.fetch(force=True) is False
    assert store.error is boom
    assert store.pending is False
    assert store.get() is None


@pytest.mark.asyncio
async def test_same_fetch_retries_after_failure():
    provider = FakeProvider(error=RuntimeError("service down"))
    store, _ = make_store(provider)

    assert await store.fetch({"type": "top", "page": 2}) is False
    assert store.service_params == DEFAULT_SERVICE_PARAMS

    provider.error = None
    assert await store.fetch({"type": "top", "page": 2}) is True

    assert len(provider.calls) == 2
    assert store.service_params == {"type": "top", "page": 2}
    assert store.error is None
    assert store.total_scores == 42
    await store.pipeline.wait()


@pytest.mark.asyncio
async def test_failed_player_switch_keeps_committed_player():
    provider = FakeProvider(error=RuntimeError("service down"))
    store, _ = make_store(provider)

    assert await store.fetch(player_id="Q") is False
    assert store.player_id == "P"

    provider.error = None
    assert await store.fetch(player_id="Q") is True
    assert store.player_id == "Q"
    await store.pipeline.wait()


@pytest.mark.asyncio
async def test_superseded_fetch_is_dropped():
    provider = FakeProvider(response=lambda player_id: {"scores": make_rows(player_id), "total": 1})
    provider.gates["slow"] = asyncio.Event()
    store, _ = make_store(provider)

    slow = asyncio.ensure_future(store.fetch(player_id="slow"))
    await asyncio.sleep(0)
    assert store.pending is True

    assert await store.fetch(player_id="fast") is True
    provider.gates["slow"].set()

    assert await slow is False
    assert [r["leaderboard"]["leaderboardId"] for r in store.get()] == ["fast"]
    await store.pipeline.wait()


@pytest.mark.asyncio
async def test_subscribers_see_commits_and_enrichment():
    def beatmaps(draft, player_id=None):
        draft["beatmap"] = {"key": draft["leaderboard"]["leaderboardId"]}

    store, _ = make_store(enhancers=EnhancerSet(beatmaps=beatmaps))
    states = []
    unsubscribe = store.subscribe(states.append)

    await store.fetch(force=True)
    assert "beatmap" not in states[0][0]

    await store.pipeline.wait()
    await asyncio.sleep(DEBOUNCE * 5)

    final = states[-1]
    assert final[0]["beatmap"] == {"key": "A"}
    assert final[0]["score"]["acc"] == pytest.approx(50.0)
    assert store.get() is final

    unsubscribe()
    count = len(states)
    await store.refresh()
    await store.pipeline.wait()
    assert len(states) == count


@pytest.mark.asyncio
async def test_initial_state_is_enriched_without_fetching():
    store, provider = make_store(initial_state=make_rows("A"))

    await store.initialize()
    await store.pipeline.wait()
    await asyncio.sleep(DEBOUNCE * 5)

    assert provider.calls == []
    assert store.get()[0]["score"]["acc"] == pytest.approx(50.0)


@pytest.mark.asyncio
async def test_initialize_without_state_fetches():
    store, provider = make_store()

    await store.initialize()
    await store.pipeline.wait()

    assert len(provider.calls) == 1
    assert store.total_scores == 42


@pytest.mark.asyncio
async def test_unknown_player_response_clears_rows():
    store, _ = make_store(FakeProvider(response=lambda player_id: None))

    assert await store.fetch(force=True) is True
    assert store.get() is None
    assert store.total_scores == 0


class FakeServiceClient:
    def __init__(self):
        self.calls = []
        self.closed = False

    async def get_player_scores(self, player_id, **kwargs):
        self.calls.append((player_id, kwargs))
        return {"scores": [], "total": 0}

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_provider_routes_by_service():
    scoresaber, accsaber = FakeServiceClient(), FakeServiceClient()
    provider = ApiScoresProvider(scoresaber, accsaber)

    await provider.get_data("P", "scoresaber", {"type": "top", "page": "2"})
    await provider.get_data("P", "accsaber", {"type": "tech", "page": 1})

    assert scoresaber.calls[0][1]["sort"] == "top"
    assert scoresaber.calls[0][1]["page"] == 2
    assert accsaber.calls[0][1]["category"] == "tech"

    with pytest.raises(UnknownServiceError):
        await provider.get_data("P", "beatleader", {})

    await provider.close()
    assert scoresaber.closed and accsaber.closed

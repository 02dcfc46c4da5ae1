from datetime import datetime, timedelta, timezone

import pytest

from refresh.policy import (
    CACHED_PLAYER_REFRESH_INTERVAL,
    MAIN_PLAYER_REFRESH_INTERVAL,
    OTHER_PLAYER_REFRESH_INTERVAL,
    RefreshPolicy,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
MAIN = "main"


def make_policy(**kwargs):
    return RefreshPolicy(lambda player_id: player_id == MAIN, clock=lambda: NOW, **kwargs)


def stamp(ago):
    return {"playerId": "x", "lastRefresh": NOW - ago}


@pytest.mark.parametrize("player_id, player", [
    (MAIN, {"playerId": MAIN}),
    ("cached", {"playerId": "cached"}),
    ("other", None),
])
def test_never_refreshed_player_is_always_due(player_id, player):
    policy = make_policy()
    assert policy.should_refresh(player_id, False, player, None) is True


def test_tiers_are_ordered_shortest_first():
    assert MAIN_PLAYER_REFRESH_INTERVAL < CACHED_PLAYER_REFRESH_INTERVAL < OTHER_PLAYER_REFRESH_INTERVAL


def test_main_player_within_window_is_fresh():
    policy = make_policy()
    assert policy.should_refresh(MAIN, False, None, stamp(timedelta(minutes=5))) is False


def test_main_player_after_window_is_due():
    policy = make_policy()
    assert policy.should_refresh(MAIN, False, None, stamp(timedelta(minutes=16))) is True


def test_cached_player_uses_medium_window():
    policy = make_policy()
    player = {"playerId": "cached"}
    assert policy.should_refresh("cached", False, player, stamp(timedelta(hours=2))) is False
    assert policy.should_refresh("cached", False, player, stamp(timedelta(hours=4))) is True


def test_other_player_uses_longest_window():
    policy = make_policy()
    assert policy.should_refresh("other", False, None, stamp(timedelta(hours=20))) is False
    assert policy.should_refresh("other", False, None, stamp(timedelta(days=2))) is True


def test_force_bypasses_window():
    policy = make_policy()
    assert policy.should_refresh(MAIN, True, None, stamp(timedelta(seconds=1))) is True


def test_record_without_timestamp_is_due():
    policy = make_policy()
    assert policy.should_refresh("other", False, None, {"playerId": "other"}) is True


def test_iso_string_timestamps_are_accepted():
    policy = make_policy()
    record = {"playerId": MAIN, "lastRefresh": (NOW - timedelta(minutes=1)).isoformat()}
    assert policy.should_refresh(MAIN, False, None, record) is False


def test_next_refresh_adds_tier_interval():
    policy = make_policy()
    record = stamp(timedelta(minutes=5))
    assert policy.next_refresh(MAIN, None, record) == NOW + timedelta(minutes=10)


def test_recent_play_is_ignored_by_default():
    policy = make_policy()
    player = {"playerId": "cached", "recentPlay": NOW - timedelta(minutes=1)}
    assert policy.should_refresh("cached", False, player, stamp(timedelta(hours=1))) is False


def test_recent_play_after_last_refresh_triggers_refresh_when_enabled():
    policy = make_policy(honor_recent_play=True)
    record = stamp(timedelta(hours=1))

    played_after = {"playerId": "cached", "recentPlay": NOW - timedelta(minutes=1)}
    played_before = {"playerId": "cached", "recentPlay": NOW - timedelta(hours=2)}
    never_played = {"playerId": "cached"}

    assert policy.should_refresh("cached", False, played_after, record) is True
    assert policy.should_refresh("cached", False, played_before, record) is False
    assert policy.should_refresh("cached", False, never_played, record) is False

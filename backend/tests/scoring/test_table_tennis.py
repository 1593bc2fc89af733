import random
from datetime import datetime, timezone

import pytest

from app.scoring import table_tennis

NOW = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)


def launched():
    state, effects = table_tennis.launch_match(table_tennis.init_state(), NOW)
    assert effects.changed
    return state


def score(state, *points):
    """Apply one point per side letter, e.g. ``score(s, "A", "A", "B")``."""
    for side in points:
        state, _ = table_tennis.adjust_point(state, side, 1)
    return state


def win_set(state, side, loser_points=0):
    other = "B" if side == "A" else "A"
    state = score(state, *([other] * loser_points))
    return score(state, *([side] * table_tennis.POINTS_TO_WIN))


def test_init_state_is_waiting_with_no_sets():
    state = table_tennis.init_state()
    assert state == {
        "sets": [],
        "setsWon": {"A": 0, "B": 0},
        "status": "waiting",
        "startTime": None,
        "sideFlipped": False,
    }


@pytest.mark.parametrize(
    "a,b,expected",
    [
        (11, 0, True),
        (11, 9, True),
        (11, 10, False),
        (10, 8, False),
        (12, 10, True),
        (13, 12, False),
        (9, 11, True),
        (0, 0, False),
    ],
)
def test_is_set_complete(a, b, expected):
    assert table_tennis.is_set_complete({"A": a, "B": b}) is expected


def test_compute_sets_won_can_skip_trailing_set():
    sets = [{"A": 11, "B": 5}, {"A": 7, "B": 11}, {"A": 11, "B": 3}]
    assert table_tennis.compute_sets_won(sets) == {"A": 2, "B": 1}
    assert table_tennis.compute_sets_won(sets, include_current=False) == {"A": 1, "B": 1}


def test_launch_match_opens_first_set_and_stamps_start():
    state = launched()
    assert state["sets"] == [{"A": 0, "B": 0}]
    assert state["status"] == "inProgress"
    assert state["startTime"] == NOW
    assert state["sideFlipped"] is False


def test_launch_match_defaults_start_to_now():
    state, _ = table_tennis.launch_match(table_tennis.init_state())
    assert state["startTime"].tzinfo is not None


def test_launch_match_is_idempotent():
    state = launched()
    again, effects = table_tennis.launch_match(state, NOW)
    assert again is state
    assert not effects.changed


def test_launch_match_ignores_waiting_match_with_scores():
    state = table_tennis.init_state()
    state["sets"] = [{"A": 3, "B": 1}]
    new_state, effects = table_tennis.launch_match(state, NOW)
    assert new_state is state
    assert not effects.changed


def test_adjust_point_ignored_before_launch():
    state = table_tennis.init_state()
    new_state, effects = table_tennis.adjust_point(state, "A", 1)
    assert new_state is state
    assert effects == table_tennis.NO_EFFECT


def test_adjust_point_does_not_mutate_input():
    state = launched()
    new_state, effects = table_tennis.adjust_point(state, "B", 1)
    assert effects.changed
    assert state["sets"] == [{"A": 0, "B": 0}]
    assert new_state["sets"] == [{"A": 0, "B": 1}]


def test_removing_point_at_zero_is_a_noop():
    state = launched()
    new_state, effects = table_tennis.adjust_point(state, "A", -1)
    assert new_state is state
    assert not effects.changed


def test_no_points_added_to_a_decided_set():
    state = win_set(launched(), "A")
    assert state["sets"][-1] == {"A": 11, "B": 0}
    new_state, effects = table_tennis.adjust_point(state, "B", 1)
    assert new_state is state
    assert not effects.changed


def test_decided_set_can_still_be_corrected():
    state = win_set(launched(), "A")
    state, effects = table_tennis.adjust_point(state, "A", -1)
    assert effects.changed
    assert state["sets"][-1] == {"A": 10, "B": 0}


@pytest.mark.parametrize("side,delta", [("C", 1), ("A", 2), ("B", 0)])
def test_adjust_point_ignores_bad_arguments(side, delta):
    state = launched()
    new_state, effects = table_tennis.adjust_point(state, side, delta)
    assert new_state is state
    assert effects == table_tennis.NO_EFFECT


def test_deuce_needs_two_point_lead():
    state = launched()
    state = score(state, *(["A", "B"] * 10))
    assert state["sets"][-1] == {"A": 10, "B": 10}
    state = score(state, "A")
    assert not table_tennis.can_launch_set(state)
    state = score(state, "B", "B", "B")
    assert state["sets"][-1] == {"A": 11, "B": 13}
    assert table_tennis.can_launch_set(state)


def test_decided_set_is_provisional_until_next_set():
    state = win_set(launched(), "A")
    assert state["setsWon"] == {"A": 0, "B": 0}
    assert table_tennis.display_sets_won(state) == {"A": 0, "B": 0}
    assert table_tennis.terminal_sets_won(state) == {"A": 1, "B": 0}

    state, effects = table_tennis.launch_set(state)
    assert effects.changed
    assert state["setsWon"] == {"A": 1, "B": 0}
    assert state["sets"] == [{"A": 11, "B": 0}, {"A": 0, "B": 0}]


def test_launch_set_requires_decided_set():
    state = score(launched(), "A", "A")
    new_state, effects = table_tennis.launch_set(state)
    assert new_state is state
    assert not effects.changed


def test_launch_set_flips_sides_every_time():
    state = launched()
    for expected in (True, False, True):
        state = win_set(state, "A" if expected else "B")
        state, effects = table_tennis.launch_set(state)
        assert effects.sides_flipped
        assert state["sideFlipped"] is expected


def test_scenario_straight_sets():
    state = launched()
    for _ in range(2):
        state = win_set(state, "A")
        state, _ = table_tennis.launch_set(state)
    state = win_set(state, "A")

    assert not table_tennis.can_launch_set(state)
    assert table_tennis.can_terminate(state)
    state, effects = table_tennis.terminate_match(state)
    assert effects.winner == "A"
    assert state["status"] == "finished"
    assert state["setsWon"] == {"A": 3, "B": 0}
    assert len(state["sets"]) == 3


def test_three_identical_sets_win_the_match():
    state = launched()
    for expected in (1, 2):
        state = score(state, *(["B"] * 6))
        state = score(state, *(["A"] * 11))
        state, _ = table_tennis.launch_set(state)
        assert state["setsWon"] == {"A": expected, "B": 0}
    state = score(state, *(["B"] * 6))
    state = score(state, *(["A"] * 11))
    state, effects = table_tennis.terminate_match(state)
    assert effects.winner == "A"
    assert state["setsWon"] == {"A": 3, "B": 0}
    assert state["status"] == "finished"
    assert state["sets"] == [{"A": 11, "B": 6}] * 3


def test_correcting_a_decided_set_never_counts_it():
    state = score(launched(), *(["A", "B"] * 9), "A", "A")
    assert state["sets"][-1] == {"A": 11, "B": 9}
    assert state["setsWon"] == {"A": 0, "B": 0}
    state, _ = table_tennis.adjust_point(state, "A", -1)
    assert state["sets"][-1] == {"A": 10, "B": 9}
    assert state["setsWon"] == {"A": 0, "B": 0}
    assert not table_tennis.can_launch_set(state)


def test_deciding_set_switch_and_correction_cancel_out():
    state = launched()
    state["sets"] = [
        {"A": 11, "B": 1},
        {"A": 1, "B": 11},
        {"A": 11, "B": 1},
        {"A": 1, "B": 11},
        {"A": 4, "B": 3},
    ]
    state["setsWon"] = {"A": 2, "B": 2}

    state, effects = table_tennis.adjust_point(state, "A", 1)
    assert effects.sides_flipped
    assert state["sideFlipped"] is True

    state, effects = table_tennis.adjust_point(state, "A", -1)
    assert effects.sides_flipped
    state, effects = table_tennis.adjust_point(state, "A", -1)
    assert not effects.sides_flipped
    assert state["sets"][-1] == {"A": 3, "B": 3}
    assert state["sideFlipped"] is False


def test_reset_finished_match_and_relaunch_restamps_start():
    state = launched()
    for _ in range(3):
        state = win_set(state, "A")
        if table_tennis.can_launch_set(state):
            state, _ = table_tennis.launch_set(state)
    state, _ = table_tennis.terminate_match(state)

    state, _ = table_tennis.reset_match(state)
    assert state["sets"] == [{"A": 0, "B": 0}]
    assert state["setsWon"] == {"A": 0, "B": 0}
    assert state["status"] == "waiting"

    later = datetime(2025, 6, 1, 10, 45, tzinfo=timezone.utc)
    state, _ = table_tennis.launch_match(state, later)
    assert state["startTime"] > NOW


def test_scenario_five_setter_with_deciding_set_switch():
    state = launched()
    for winner in ("A", "B", "A", "B"):
        state = win_set(state, winner, loser_points=5)
        state, _ = table_tennis.launch_set(state)
    assert len(state["sets"]) == 5
    assert state["setsWon"] == {"A": 2, "B": 2}
    assert state["sideFlipped"] is False

    state = score(state, "A", "B", "A", "B", "A", "B", "A", "B")
    assert state["sets"][-1] == {"A": 4, "B": 4}
    state, effects = table_tennis.adjust_point(state, "B", 1)
    assert effects.sides_flipped
    assert state["sideFlipped"] is True

    # Further points past 5 do not flip again.
    state, effects = table_tennis.adjust_point(state, "A", 1)
    assert not effects.sides_flipped

    state = score(state, *(["B"] * 6))
    assert state["sets"][-1] == {"A": 5, "B": 11}
    state, effects = table_tennis.terminate_match(state)
    assert effects.winner == "B"
    assert state["setsWon"] == {"A": 2, "B": 3}


def test_deciding_set_correction_flips_back():
    state = launched()
    state["sets"] = [
        {"A": 11, "B": 1},
        {"A": 1, "B": 11},
        {"A": 11, "B": 1},
        {"A": 1, "B": 11},
        {"A": 5, "B": 2},
    ]
    state["setsWon"] = {"A": 2, "B": 2}
    state, effects = table_tennis.adjust_point(state, "A", -1)
    assert effects.sides_flipped
    assert state["sideFlipped"] is True


def test_no_switch_at_five_outside_deciding_set():
    state = score(launched(), *(["A"] * 5))
    assert state["sideFlipped"] is False


def test_terminate_needs_three_sets():
    state = launched()
    state = win_set(state, "A")
    state, _ = table_tennis.launch_set(state)
    state = win_set(state, "A")
    assert not table_tennis.can_terminate(state)
    new_state, effects = table_tennis.terminate_match(state)
    assert new_state is state
    assert not effects.changed


def test_launch_set_refused_once_match_is_decided():
    state = launched()
    for _ in range(3):
        state = win_set(state, "B")
        state, _ = table_tennis.launch_set(state)
    assert len(state["sets"]) == 3
    assert table_tennis.can_terminate(state)
    assert not table_tennis.can_launch_set(state)


def test_scenario_reset_then_relaunch():
    state = win_set(launched(), "A", loser_points=4)
    state, _ = table_tennis.launch_set(state)
    state = score(state, "B", "B")

    state, effects = table_tennis.reset_match(state)
    assert effects.changed
    assert state["status"] == "waiting"
    assert state["sets"] == [{"A": 0, "B": 0}]
    assert state["setsWon"] == {"A": 0, "B": 0}
    assert state["startTime"] == NOW

    later = datetime(2025, 6, 1, 11, 0, tzinfo=timezone.utc)
    state, effects = table_tennis.launch_match(state, later)
    assert effects.changed
    assert state["status"] == "inProgress"
    assert state["startTime"] == later


def test_reset_finished_match_reopens_it():
    state = launched()
    for _ in range(3):
        state = win_set(state, "A")
        if table_tennis.can_launch_set(state):
            state, _ = table_tennis.launch_set(state)
    state, _ = table_tennis.terminate_match(state)
    assert state["status"] == "finished"

    state, effects = table_tennis.reset_match(state)
    assert effects.changed
    assert state["status"] == "waiting"


def test_reset_is_noop_for_cancelled_match():
    state = table_tennis.init_state()
    state["status"] = "cancelled"
    new_state, effects = table_tennis.reset_match(state)
    assert new_state is state
    assert not effects.changed


def test_reset_of_pristine_reset_match_reports_no_change():
    state, _ = table_tennis.reset_match(launched())
    again, effects = table_tennis.reset_match(state)
    assert not effects.changed


def test_change_sides_toggles_until_finished():
    state = table_tennis.init_state()
    state, effects = table_tennis.change_sides(state)
    assert effects.sides_flipped
    assert state["sideFlipped"] is True
    state, _ = table_tennis.change_sides(state)
    assert state["sideFlipped"] is False

    state["status"] = "finished"
    new_state, effects = table_tennis.change_sides(state)
    assert new_state is state
    assert not effects.changed


def test_apply_dispatches_events():
    state, effects = table_tennis.apply({"type": "LAUNCH_MATCH"}, table_tennis.init_state(), NOW)
    assert effects.changed
    state, _ = table_tennis.apply({"type": "POINT", "by": "A"}, state)
    state, _ = table_tennis.apply({"type": "POINT", "by": "B", "delta": 1}, state)
    state, _ = table_tennis.apply({"type": "POINT", "by": "B", "delta": -1}, state)
    assert state["sets"] == [{"A": 1, "B": 0}]
    state, effects = table_tennis.apply({"type": "CHANGE_SIDES"}, state)
    assert effects.sides_flipped


@pytest.mark.parametrize(
    "event",
    [
        {"type": "POINT"},
        {"type": "POINT", "by": "C"},
        {"type": "POINT", "by": "A", "delta": 2},
        {"type": "POINT", "by": "A", "delta": True},
        {"type": "SERVE"},
        {},
    ],
)
def test_apply_rejects_malformed_events(event):
    with pytest.raises(ValueError):
        table_tennis.apply(event, launched())


def test_summary_exposes_derived_flags():
    state = win_set(launched(), "B")
    view = table_tennis.summary(state)
    assert view["canLaunchSet"] is True
    assert view["canTerminate"] is False
    assert view["displaySetsWon"] == {"A": 0, "B": 0}
    assert view["status"] == "inProgress"


def _random_walk(seed, steps=400):
    rng = random.Random(seed)
    state = launched()
    events = [
        {"type": "POINT", "by": "A", "delta": 1},
        {"type": "POINT", "by": "B", "delta": 1},
        {"type": "POINT", "by": "A", "delta": -1},
        {"type": "POINT", "by": "B", "delta": -1},
        {"type": "LAUNCH_SET"},
        {"type": "CHANGE_SIDES"},
        {"type": "TERMINATE"},
    ]
    weights = [30, 30, 4, 4, 6, 1, 2]
    for _ in range(steps):
        event = rng.choices(events, weights)[0]
        before = state
        state, effects = table_tennis.apply(event, state)
        yield event, before, state, effects
        if state["status"] == "finished":
            return


@pytest.mark.parametrize("seed", range(25))
def test_random_play_keeps_invariants(seed):
    for event, before, state, effects in _random_walk(seed):
        for s in state["sets"]:
            assert s["A"] >= 0 and s["B"] >= 0
        assert len(state["sets"]) <= table_tennis.DECIDING_SET
        assert max(state["setsWon"].values()) <= table_tennis.SETS_TO_WIN
        # Every completed set before the trailing one is counted.
        assert state["setsWon"] == table_tennis.display_sets_won(state) or (
            state["status"] == "finished"
        )
        if not effects.changed:
            assert state is before
        if effects.sides_flipped:
            assert state["sideFlipped"] is not before["sideFlipped"]
        else:
            assert state["sideFlipped"] is before["sideFlipped"]
        if effects.winner:
            assert state["setsWon"][effects.winner] == table_tennis.SETS_TO_WIN


@pytest.mark.parametrize("seed", range(10))
def test_random_play_finishes_with_three_sets(seed):
    rng = random.Random(seed)
    state = launched()
    while state["status"] != "finished":
        state, _ = table_tennis.adjust_point(state, rng.choice("AB"), 1)
        if table_tennis.can_launch_set(state):
            state, _ = table_tennis.launch_set(state)
        elif table_tennis.can_terminate(state):
            state, effects = table_tennis.terminate_match(state)
            assert effects.winner in ("A", "B")
    won = state["setsWon"]
    assert sorted(won.values())[1] == 3
    assert 3 <= len(state["sets"]) <= 5

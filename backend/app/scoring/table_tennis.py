"""Table tennis scoring engine.

Rally-point sets to 11 with a win-by-2 requirement, best of 5 sets. The
operator drives the match explicitly: a set that is mathematically decided
only counts towards ``setsWon`` once the next set is launched or the match is
terminated, so a mis-click on the 11th point can still be corrected.

Every operation is pure. It receives a state dict and returns a new state
together with the :class:`Effects` the caller has to carry out. Calls whose
preconditions do not hold are no-ops rather than errors.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional

from ..time_utils import coerce_utc, utcnow

POINTS_TO_WIN = 11
WIN_BY = 2
SETS_TO_WIN = 3
DECIDING_SET = 5
DECIDING_SET_SWITCH_AT = 5

SIDES = ("A", "B")

WAITING = "waiting"
IN_PROGRESS = "inProgress"
FINISHED = "finished"
CANCELLED = "cancelled"


class Effects(NamedTuple):
    changed: bool = False
    sides_flipped: bool = False
    winner: Optional[str] = None


NO_EFFECT = Effects()


def _empty_set() -> Dict[str, int]:
    return {"A": 0, "B": 0}


def init_state() -> Dict:
    """Initial state of a freshly seeded match."""
    return {
        "sets": [],
        "setsWon": _empty_set(),
        "status": WAITING,
        "startTime": None,
        "sideFlipped": False,
    }


def is_set_complete(set_score: Dict[str, int]) -> bool:
    a, b = set_score["A"], set_score["B"]
    return max(a, b) >= POINTS_TO_WIN and abs(a - b) >= WIN_BY


def _is_blank(set_score: Dict[str, int]) -> bool:
    return set_score["A"] == 0 and set_score["B"] == 0


def compute_sets_won(
    sets: List[Dict[str, int]], include_current: bool = True
) -> Dict[str, int]:
    """Count decided sets per side.

    With ``include_current=False`` the trailing set is left out even if it is
    already decided; that is the confirmed tally shown to viewers.
    """
    won = _empty_set()
    counted = sets if include_current else sets[:-1]
    for s in counted:
        if is_set_complete(s):
            won["A" if s["A"] > s["B"] else "B"] += 1
    return won


def display_sets_won(state: Dict) -> Dict[str, int]:
    return compute_sets_won(state["sets"], include_current=False)


def terminal_sets_won(state: Dict) -> Dict[str, int]:
    return compute_sets_won(state["sets"], include_current=True)


def _leader_at(won: Dict[str, int], target: int) -> Optional[str]:
    for side in SIDES:
        if won[side] == target:
            return side
    return None


def can_terminate(state: Dict) -> bool:
    if state["status"] != IN_PROGRESS or not state["sets"]:
        return False
    return _leader_at(terminal_sets_won(state), SETS_TO_WIN) is not None


def can_launch_set(state: Dict) -> bool:
    if state["status"] != IN_PROGRESS or not state["sets"]:
        return False
    last = state["sets"][-1]
    if not is_set_complete(last) or _is_blank(last):
        return False
    return not can_terminate(state)


def _crossed_switch_threshold(before: Dict[str, int], after: Dict[str, int]) -> bool:
    prev_max = max(before["A"], before["B"])
    new_max = max(after["A"], after["B"])
    return (prev_max < DECIDING_SET_SWITCH_AT <= new_max) or (
        new_max < DECIDING_SET_SWITCH_AT <= prev_max
    )


def adjust_point(state: Dict, side: str, delta: int):
    """Add or remove one point for ``side`` in the trailing set.

    An unknown side or a delta other than +1/-1 is ignored like any other
    unmet precondition.
    """
    if side not in SIDES or isinstance(delta, bool) or delta not in (1, -1):
        return state, NO_EFFECT
    if state["status"] != IN_PROGRESS or not state["sets"]:
        return state, NO_EFFECT

    current = state["sets"][-1]
    if delta > 0 and is_set_complete(current):
        return state, NO_EFFECT

    updated = dict(current)
    updated[side] = max(0, updated[side] + delta)
    if updated == current:
        return state, NO_EFFECT

    new_state = copy.deepcopy(state)
    new_state["sets"][-1] = updated
    new_state["setsWon"] = compute_sets_won(new_state["sets"], include_current=False)

    flipped = len(new_state["sets"]) == DECIDING_SET and _crossed_switch_threshold(
        current, updated
    )
    if flipped:
        new_state["sideFlipped"] = not new_state["sideFlipped"]

    return new_state, Effects(changed=True, sides_flipped=flipped)


def _has_no_play(sets: List[Dict[str, int]]) -> bool:
    # A reset match keeps one blank set.
    return not sets or (len(sets) == 1 and _is_blank(sets[0]))


def launch_match(state: Dict, now: datetime | None = None):
    """Open the first set and stamp ``startTime``."""
    if state["status"] != WAITING or not _has_no_play(state["sets"]):
        return state, NO_EFFECT

    new_state = copy.deepcopy(state)
    new_state["sets"] = [_empty_set()]
    new_state["setsWon"] = _empty_set()
    new_state["status"] = IN_PROGRESS
    new_state["startTime"] = coerce_utc(now) if now is not None else utcnow()
    return new_state, Effects(changed=True)


def launch_set(state: Dict):
    """Confirm the decided trailing set and open the next one."""
    if not can_launch_set(state):
        return state, NO_EFFECT

    new_state = copy.deepcopy(state)
    new_state["setsWon"] = compute_sets_won(new_state["sets"], include_current=True)
    new_state["sets"].append(_empty_set())
    # Players change ends before every set after the first.
    new_state["sideFlipped"] = not new_state["sideFlipped"]
    return new_state, Effects(changed=True, sides_flipped=True)


def terminate_match(state: Dict):
    """Finish the match, promoting the trailing set into the final tally."""
    if not can_terminate(state):
        return state, NO_EFFECT

    won = terminal_sets_won(state)
    new_state = copy.deepcopy(state)
    new_state["setsWon"] = won
    new_state["status"] = FINISHED
    return new_state, Effects(changed=True, winner=_leader_at(won, SETS_TO_WIN))


def reset_match(state: Dict):
    """Back to ``waiting`` with a single blank set. ``startTime`` is kept."""
    if state["status"] == CANCELLED:
        return state, NO_EFFECT

    new_state = copy.deepcopy(state)
    new_state["sets"] = [_empty_set()]
    new_state["setsWon"] = _empty_set()
    new_state["status"] = WAITING
    return new_state, Effects(changed=new_state != state)


def change_sides(state: Dict):
    if state["status"] in (FINISHED, CANCELLED):
        return state, NO_EFFECT

    new_state = copy.deepcopy(state)
    new_state["sideFlipped"] = not new_state["sideFlipped"]
    return new_state, Effects(changed=True, sides_flipped=True)


def apply(event: Dict, state: Dict, now: datetime | None = None):
    """Dispatch an operator event to the matching operation."""
    etype = event.get("type")

    if etype == "POINT":
        side = event.get("by")
        delta = event.get("delta", 1)
        if side not in SIDES or isinstance(delta, bool) or delta not in (1, -1):
            raise ValueError("invalid table tennis event")
        return adjust_point(state, side, delta)
    if etype == "LAUNCH_MATCH":
        return launch_match(state, now)
    if etype == "LAUNCH_SET":
        return launch_set(state)
    if etype == "TERMINATE":
        return terminate_match(state)
    if etype == "RESET":
        return reset_match(state)
    if etype == "CHANGE_SIDES":
        return change_sides(state)

    raise ValueError("invalid table tennis event")


def summary(state: Dict) -> Dict:
    return {
        "sets": state["sets"],
        "setsWon": state["setsWon"],
        "displaySetsWon": display_sets_won(state),
        "status": state["status"],
        "startTime": state["startTime"],
        "sideFlipped": state["sideFlipped"],
        "canLaunchSet": can_launch_set(state),
        "canTerminate": can_terminate(state),
    }

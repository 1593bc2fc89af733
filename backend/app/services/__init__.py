"""Application services sitting between the routers and the scoring engine."""

from . import match_store
from .live_scoring import (
    apply_action,
    auto_mark_finished_matches,
    create_match,
    find_active_match,
    list_matches,
)
from .milestones import add_milestone, list_milestones

__all__ = [
    "match_store",
    "apply_action",
    "auto_mark_finished_matches",
    "create_match",
    "find_active_match",
    "list_matches",
    "add_milestone",
    "list_milestones",
]

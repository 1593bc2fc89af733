from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from .db import Base


def _json():
    return JSON().with_variant(JSONB, "postgresql")


class MatchRecord(Base):
    """A scheduled match and its live scoring state."""

    __tablename__ = "match"
    id = Column(String, primary_key=True)
    feed_match_id = Column(String, nullable=True, unique=True)
    championship_id = Column(String, nullable=True)
    encounter_id = Column(String, nullable=True)
    date = Column(String(10), nullable=True)  # YYYY-MM-DD
    table_number = Column(Integer, nullable=False)
    event_key = Column(String, nullable=True)
    match_desc = Column(String, nullable=True)
    scheduled_time = Column(String, nullable=True)  # HH:MM as published by the feed
    match_number = Column(Integer, nullable=True)
    match_type = Column(String, nullable=False, default="single")  # "single" | "double"

    player1_name = Column(String, nullable=False)
    player1_country = Column(String, nullable=True)
    player2_name = Column(String, nullable=False)
    player2_country = Column(String, nullable=True)
    feed_details = Column(_json(), nullable=True)

    sets = Column(_json(), nullable=False, default=list)
    sets_won = Column(_json(), nullable=False, default=lambda: {"A": 0, "B": 0})
    status = Column(String, nullable=False, default="waiting")
    start_time = Column(DateTime(timezone=True), nullable=True)
    side_flipped = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_match_table_date", "table_number", "date"),
        Index("ix_match_encounter_id", "encounter_id"),
    )


class MatchAction(Base):
    """Operator action applied to a match, kept for auditing."""

    __tablename__ = "match_action"
    id = Column(String, primary_key=True)
    match_id = Column(
        String, ForeignKey("match.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String, nullable=False)
    payload = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Milestone(Base):
    """Highlight flagged by the operator during a match, shown on the TV overlay."""

    __tablename__ = "milestone"
    id = Column(String, primary_key=True)
    table_number = Column(Integer, nullable=False)
    encounter_id = Column(String, nullable=True)
    match_id = Column(String, ForeignKey("match.id", ondelete="SET NULL"), nullable=True)
    date = Column(String(10), nullable=False)
    time = Column(String(8), nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False)
    match_info = Column(JSON, nullable=True)

    __table_args__ = (Index("ix_milestone_table_date", "table_number", "date"),)

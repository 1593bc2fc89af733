from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        "match",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("feed_match_id", sa.String(), nullable=True, unique=True),
        sa.Column("championship_id", sa.String(), nullable=True),
        sa.Column("encounter_id", sa.String(), nullable=True),
        sa.Column("date", sa.String(length=10), nullable=True),
        sa.Column("table_number", sa.Integer(), nullable=False),
        sa.Column("event_key", sa.String(), nullable=True),
        sa.Column("match_desc", sa.String(), nullable=True),
        sa.Column("scheduled_time", sa.String(), nullable=True),
        sa.Column("match_number", sa.Integer(), nullable=True),
        sa.Column("match_type", sa.String(), nullable=False, server_default="single"),
        sa.Column("player1_name", sa.String(), nullable=False),
        sa.Column("player1_country", sa.String(), nullable=True),
        sa.Column("player2_name", sa.String(), nullable=False),
        sa.Column("player2_country", sa.String(), nullable=True),
        sa.Column("feed_details", _json(), nullable=True),
        sa.Column("sets", _json(), nullable=False),
        sa.Column("sets_won", _json(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="waiting"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("side_flipped", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_match_table_date", "match", ["table_number", "date"])
    op.create_index("ix_match_encounter_id", "match", ["encounter_id"])

    op.create_table(
        "match_action",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "match_id",
            sa.String(),
            sa.ForeignKey("match.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_match_action_match_id", "match_action", ["match_id"])

    op.create_table(
        "milestone",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("table_number", sa.Integer(), nullable=False),
        sa.Column("encounter_id", sa.String(), nullable=True),
        sa.Column(
            "match_id",
            sa.String(),
            sa.ForeignKey("match.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("time", sa.String(length=8), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("match_info", sa.JSON(), nullable=True),
    )
    op.create_index("ix_milestone_table_date", "milestone", ["table_number", "date"])


def downgrade():
    op.drop_index("ix_milestone_table_date", table_name="milestone")
    op.drop_table("milestone")
    op.drop_index("ix_match_action_match_id", table_name="match_action")
    op.drop_table("match_action")
    op.drop_index("ix_match_encounter_id", table_name="match")
    op.drop_index("ix_match_table_date", table_name="match")
    op.drop_table("match")

"""Initial schema: events, teams, seeding, brackets, games, queue

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "event",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("seeding_rounds", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "team",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("team_number", sa.Integer(), nullable=False),
        sa.Column("team_name", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["event_id"], ["event.id"]),
        sa.UniqueConstraint("event_id", "team_number", name="uq_event_team_number"),
    )
    op.create_index("ix_team_event_id", "team", ["event_id"])

    op.create_table(
        "seedingscore",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("scored_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["team_id"], ["team.id"]),
        sa.UniqueConstraint("team_id", "round_number", name="uq_seeding_team_round"),
    )
    op.create_index("ix_seedingscore_team_id", "seedingscore", ["team_id"])

    op.create_table(
        "seedingranking",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("seed_average", sa.Float(), nullable=True),
        sa.Column("raw_seed_score", sa.Float(), nullable=False),
        sa.Column("seed_rank", sa.Integer(), nullable=False),
        sa.Column("tiebreaker_value", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["event_id"], ["event.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["team.id"]),
        sa.UniqueConstraint("team_id"),
    )
    op.create_index("ix_seedingranking_event_id", "seedingranking", ["event_id"])

    op.create_table(
        "bracket",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("bracket_size", sa.Integer(), nullable=False),
        sa.Column("actual_team_count", sa.Integer(), nullable=True),
        sa.Column("elimination_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["event_id"], ["event.id"]),
    )
    op.create_index("ix_bracket_event_id", "bracket", ["event_id"])

    op.create_table(
        "bracketentry",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bracket_id", sa.Integer(), nullable=False),
        sa.Column("seed_position", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("is_bye", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["bracket_id"], ["bracket.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["team.id"]),
        sa.UniqueConstraint("bracket_id", "seed_position", name="uq_bracket_seed_position"),
        sa.UniqueConstraint("bracket_id", "team_id", name="uq_bracket_team"),
    )
    op.create_index("ix_bracketentry_bracket_id", "bracketentry", ["bracket_id"])

    op.create_table(
        "bracketgame",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bracket_id", sa.Integer(), nullable=False),
        sa.Column("game_number", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("round_name", sa.String(), nullable=False),
        sa.Column("bracket_side", sa.String(), nullable=False),
        sa.Column("team1_id", sa.Integer(), nullable=True),
        sa.Column("team2_id", sa.Integer(), nullable=True),
        sa.Column("team1_source", sa.String(), nullable=True),
        sa.Column("team2_source", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("loser_id", sa.Integer(), nullable=True),
        sa.Column("team1_score", sa.Integer(), nullable=True),
        sa.Column("team2_score", sa.Integer(), nullable=True),
        sa.Column("winner_advances_to_id", sa.Integer(), nullable=True),
        sa.Column("loser_advances_to_id", sa.Integer(), nullable=True),
        sa.Column("winner_slot", sa.String(), nullable=True),
        sa.Column("loser_slot", sa.String(), nullable=True),
        sa.Column("is_grand_final", sa.Boolean(), nullable=False),
        sa.Column("is_reset_game", sa.Boolean(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["bracket_id"], ["bracket.id"]),
        sa.ForeignKeyConstraint(["team1_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["team2_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["loser_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["winner_advances_to_id"], ["bracketgame.id"]),
        sa.ForeignKeyConstraint(["loser_advances_to_id"], ["bracketgame.id"]),
        sa.UniqueConstraint("bracket_id", "game_number", name="uq_bracket_game_number"),
    )
    op.create_index("ix_bracketgame_bracket_id", "bracketgame", ["bracket_id"])

    op.create_table(
        "queueitem",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("queue_type", sa.String(), nullable=False),
        sa.Column("bracket_game_id", sa.Integer(), nullable=True),
        sa.Column("seeding_team_id", sa.Integer(), nullable=True),
        sa.Column("seeding_round", sa.Integer(), nullable=True),
        sa.Column("queue_position", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("table_number", sa.Integer(), nullable=True),
        sa.Column("called_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["event_id"], ["event.id"]),
        sa.ForeignKeyConstraint(["bracket_game_id"], ["bracketgame.id"]),
        sa.ForeignKeyConstraint(["seeding_team_id"], ["team.id"]),
        sa.UniqueConstraint("event_id", "queue_position", name="uq_event_queue_position"),
    )
    op.create_index("ix_queueitem_event_id", "queueitem", ["event_id"])


def downgrade() -> None:
    op.drop_index("ix_queueitem_event_id", table_name="queueitem")
    op.drop_table("queueitem")
    op.drop_index("ix_bracketgame_bracket_id", table_name="bracketgame")
    op.drop_table("bracketgame")
    op.drop_index("ix_bracketentry_bracket_id", table_name="bracketentry")
    op.drop_table("bracketentry")
    op.drop_index("ix_bracket_event_id", table_name="bracket")
    op.drop_table("bracket")
    op.drop_index("ix_seedingranking_event_id", table_name="seedingranking")
    op.drop_table("seedingranking")
    op.drop_index("ix_seedingscore_team_id", table_name="seedingscore")
    op.drop_table("seedingscore")
    op.drop_index("ix_team_event_id", table_name="team")
    op.drop_table("team")
    op.drop_table("event")

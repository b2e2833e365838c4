"""Create Nakka import tables

Revision ID: 3c8e51a0d7b2
Revises:
Create Date: 2026-10-18 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "3c8e51a0d7b2"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tournaments",
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("nakka_identifier", sa.String(length=100), nullable=False),
        sa.Column("tournament_name", sa.Text(), nullable=False),
        sa.Column("tournament_date", sa.DateTime(), nullable=False),
        sa.Column("href", sa.Text(), nullable=False),
        sa.Column("imported_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("last_updated", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("match_import_status", sa.String(length=20), nullable=True),
        sa.Column("match_import_error", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "match_import_status IS NULL OR match_import_status IN "
            "('matches_saved', 'in_progress', 'completed', 'failed')",
            name="ck_tournament_import_status",
        ),
        sa.PrimaryKeyConstraint("tournament_id"),
        sa.UniqueConstraint("nakka_identifier"),
    )
    op.create_index("idx_tournaments_date", "tournaments", ["tournament_date"], unique=False)

    op.create_table(
        "tournament_matches",
        sa.Column("tournament_match_id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("nakka_match_identifier", sa.String(length=200), nullable=False),
        sa.Column("match_type", sa.String(length=50), nullable=False),
        sa.Column("first_player_name", sa.Text(), nullable=False),
        sa.Column("first_player_code", sa.String(length=50), nullable=False),
        sa.Column("second_player_name", sa.Text(), nullable=False),
        sa.Column("second_player_code", sa.String(length=50), nullable=False),
        sa.Column("href", sa.Text(), nullable=False),
        sa.Column("match_date", sa.DateTime(), nullable=True),
        sa.Column("imported_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("match_result_status", sa.String(length=20), nullable=True),
        sa.Column("match_result_error", sa.Text(), nullable=True),
        sa.Column("attempts_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint(
            "match_result_status IS NULL OR match_result_status IN "
            "('in_progress', 'completed', 'failed')",
            name="ck_match_result_status",
        ),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.tournament_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("tournament_match_id"),
        sa.UniqueConstraint(
            "tournament_id", "nakka_match_identifier", name="uq_tournament_match_identifier"
        ),
    )
    op.create_index("idx_tournament_matches_tournament", "tournament_matches", ["tournament_id"], unique=False)
    op.create_index(
        "idx_tournament_matches_result_status", "tournament_matches", ["match_result_status"], unique=False
    )

    op.create_table(
        "tournament_match_player_results",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_match_id", sa.Integer(), nullable=False),
        sa.Column("nakka_match_player_identifier", sa.String(length=200), nullable=False),
        sa.Column("average_score", sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column("first_nine_avg", sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column("checkout_percentage", sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column("score_60_count", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("score_100_count", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("score_140_count", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("score_180_count", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("high_finish", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("best_leg", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("worst_leg", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("player_score", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("opponent_score", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("imported_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint(
            "score_60_count >= 0 AND score_100_count >= 0 AND score_140_count >= 0 "
            "AND score_180_count >= 0 AND high_finish >= 0 AND best_leg >= 0 "
            "AND worst_leg >= 0 AND player_score >= 0 AND opponent_score >= 0",
            name="ck_player_result_non_negative",
        ),
        sa.ForeignKeyConstraint(
            ["tournament_match_id"], ["tournament_matches.tournament_match_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tournament_match_id", "nakka_match_player_identifier", name="uq_player_result"
        ),
    )
    op.create_index(
        "idx_player_results_identifier",
        "tournament_match_player_results",
        ["nakka_match_player_identifier"],
        unique=False,
    )

    op.create_table(
        "sync_keywords",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("keyword", sa.String(length=100), nullable=False),
        sa.Column("last_sync_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("keyword"),
    )


def downgrade() -> None:
    op.drop_table("sync_keywords")
    op.drop_index("idx_player_results_identifier", table_name="tournament_match_player_results")
    op.drop_table("tournament_match_player_results")
    op.drop_index("idx_tournament_matches_result_status", table_name="tournament_matches")
    op.drop_index("idx_tournament_matches_tournament", table_name="tournament_matches")
    op.drop_table("tournament_matches")
    op.drop_index("idx_tournaments_date", table_name="tournaments")
    op.drop_table("tournaments")

"""Create tournament and ranking tables

Revision ID: c4e8a1f3b2d7
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c4e8a1f3b2d7'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'states',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('short_code', sa.String(5), nullable=True),
    )

    op.create_table(
        'players',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('state_id', sa.Integer(), sa.ForeignKey('states.id'), nullable=True),
        sa.Column('nrtp_level', sa.Numeric(3, 1), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_players_state_id', 'players', ['state_id'])

    op.create_table(
        'tournaments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tournament_type', sa.String(50), nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('state_id', sa.Integer(), sa.ForeignKey('states.id'), nullable=True),
        sa.Column('is_ranking', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('ranking_multiplier', sa.Numeric(3, 1), nullable=False, server_default='1.0'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_tournaments_state_id', 'tournaments', ['state_id'])
    op.create_index('ix_tournaments_start_date', 'tournaments', ['start_date'])

    op.create_table(
        'tournament_categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tournament_id', sa.Integer(), sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('gender', sa.String(10), nullable=True),
        sa.Column('format', sa.String(50), nullable=True),
    )
    op.create_index('ix_tournament_categories_tournament_id', 'tournament_categories', ['tournament_id'])

    op.create_table(
        'tournament_registrations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tournament_id', sa.Integer(), sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('tournament_categories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('partner_player_id', sa.Integer(), sa.ForeignKey('players.id'), nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('registration_date', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tournament_id', 'category_id', 'player_id', name='unique_registration'),
    )
    op.create_index('ix_tournament_registrations_tournament_id', 'tournament_registrations', ['tournament_id'])
    op.create_index('ix_tournament_registrations_category_id', 'tournament_registrations', ['category_id'])
    op.create_index('ix_tournament_registrations_player_id', 'tournament_registrations', ['player_id'])

    op.create_table(
        'tournament_matches',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tournament_id', sa.Integer(), sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('tournament_categories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('round', sa.Integer(), nullable=False),
        sa.Column('match_number', sa.Integer(), nullable=False),
        sa.Column('match_date', sa.Date(), nullable=True),
        sa.Column('player1_id', sa.Integer(), sa.ForeignKey('players.id'), nullable=False),
        sa.Column('player2_id', sa.Integer(), sa.ForeignKey('players.id'), nullable=True),
        sa.Column('player3_id', sa.Integer(), sa.ForeignKey('players.id'), nullable=False),
        sa.Column('player4_id', sa.Integer(), sa.ForeignKey('players.id'), nullable=True),
        sa.Column('score', sa.Text(), nullable=True),
        sa.Column('winner_side', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tournament_id', 'category_id', 'round', 'match_number', name='unique_match'),
    )
    op.create_index('ix_tournament_matches_tournament_id', 'tournament_matches', ['tournament_id'])
    op.create_index(
        'ix_tournament_matches_bracket',
        'tournament_matches',
        ['tournament_id', 'category_id', 'status', 'round']
    )

    op.create_table(
        'ranking_periods',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
    )
    # Partial unique index: at most one active period
    op.create_index(
        'ix_ranking_periods_single_active',
        'ranking_periods',
        ['status'],
        unique=True,
        postgresql_where=sa.text("status = 'active'")
    )

    op.create_table(
        'player_rankings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('period_id', sa.Integer(), sa.ForeignKey('ranking_periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tournaments_played', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_finish', sa.Integer(), nullable=True),
        sa.Column('ranking_position', sa.Integer(), nullable=True),
        sa.Column('previous_position', sa.Integer(), nullable=True),
        sa.Column('state_position', sa.Integer(), nullable=True),
        sa.Column('position_change', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_updated', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('player_id', 'period_id', name='unique_player_ranking'),
    )
    op.create_index('ix_player_rankings_player_id', 'player_rankings', ['player_id'])
    op.create_index('ix_player_rankings_period_id', 'player_rankings', ['period_id'])
    op.create_index('ix_player_rankings_standings', 'player_rankings', ['period_id', 'ranking_position'])

    op.create_table(
        'ranking_points_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tournament_id', sa.Integer(), sa.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('tournament_categories.id', ondelete='CASCADE'), nullable=True),
        sa.Column('period_id', sa.Integer(), sa.ForeignKey('ranking_periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('finish_position', sa.Integer(), nullable=True),
        sa.Column('total_participants', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('player_id', 'tournament_id', 'category_id', 'period_id', name='unique_points_event'),
    )
    op.create_index('ix_ranking_points_history_player_id', 'ranking_points_history', ['player_id'])
    op.create_index('ix_ranking_points_history_period_id', 'ranking_points_history', ['period_id'])
    op.create_index('ix_ranking_points_history_created_at', 'ranking_points_history', ['created_at'])


def downgrade() -> None:
    op.drop_table('ranking_points_history')
    op.drop_table('player_rankings')
    op.drop_index('ix_ranking_periods_single_active', table_name='ranking_periods')
    op.drop_table('ranking_periods')
    op.drop_table('tournament_matches')
    op.drop_table('tournament_registrations')
    op.drop_table('tournament_categories')
    op.drop_table('tournaments')
    op.drop_table('players')
    op.drop_table('states')

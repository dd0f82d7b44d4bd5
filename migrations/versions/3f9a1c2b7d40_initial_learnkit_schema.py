"""initial learnkit schema

Revision ID: 3f9a1c2b7d40
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2b7d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _active_session_index(table: str) -> None:
    op.create_index(
        f'uq_{table}_active_user', table, ['user_id'], unique=True,
        sqlite_where=sa.text('ended_at IS NULL'),
        postgresql_where=sa.text('ended_at IS NULL'),
    )


def upgrade() -> None:
    """Create users, word-books, cards, goals, sessions, weekly tables, schedules, reminders and app launches."""
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('nickname', sa.String(), nullable=False),
        sa.Column('profile_image_url', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table('wordbooks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('hard_frequency_ratio', sa.Integer(), nullable=False),
        sa.Column('normal_frequency_ratio', sa.Integer(), nullable=False),
        sa.Column('easy_frequency_ratio', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_wordbooks_user_id', 'wordbooks', ['user_id'])

    op.create_table('cards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('word_book_id', sa.Integer(), nullable=False),
        sa.Column('front_text', sa.Text(), nullable=False),
        sa.Column('back_text', sa.Text(), nullable=False),
        sa.Column('difficulty', sa.Enum('EASY', 'NORMAL', 'HARD', name='difficulty', native_enum=False, length=10),
                  nullable=True),
        sa.Column('review_priority', sa.Integer(), nullable=False),
        sa.Column('last_reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['word_book_id'], ['wordbooks.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cards_word_book_id', 'cards', ['word_book_id'])

    op.create_table('goals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('total_target_amount', sa.Integer(), nullable=False),
        sa.Column('target_unit', sa.String(length=50), nullable=False),
        sa.Column('current_progress', sa.Integer(), nullable=False),
        sa.Column('is_completed', sa.Boolean(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_goals_user_id', 'goals', ['user_id'])

    for table in ('study_sessions', 'goal_study_sessions'):
        op.create_table(table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('goal_id', sa.Integer(), nullable=True),
            sa.Column('started_at', sa.DateTime(), nullable=False),
            sa.Column('ended_at', sa.DateTime(), nullable=True),
            sa.Column('achieved_amount', sa.Integer(), nullable=False),
            sa.Column('duration_minutes', sa.Integer(), nullable=False),
            sa.Column('pomo_count', sa.Integer(), nullable=False),
            sa.Column('note', sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.ForeignKeyConstraint(['goal_id'], ['goals.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(f'ix_{table}_user_id', table, ['user_id'])
        op.create_index(f'ix_{table}_goal_id', table, ['goal_id'])
        _active_session_index(table)

    op.create_table('wordbook_study_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('word_book_id', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('start_hard_count', sa.Integer(), nullable=False),
        sa.Column('start_normal_count', sa.Integer(), nullable=False),
        sa.Column('start_easy_count', sa.Integer(), nullable=False),
        sa.Column('end_hard_count', sa.Integer(), nullable=False),
        sa.Column('end_normal_count', sa.Integer(), nullable=False),
        sa.Column('end_easy_count', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['word_book_id'], ['wordbooks.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_wordbook_study_sessions_user_id', 'wordbook_study_sessions', ['user_id'])
    op.create_index('ix_wordbook_study_sessions_word_book_id', 'wordbook_study_sessions', ['word_book_id'])
    _active_session_index('wordbook_study_sessions')

    op.create_table('weekly_card_baselines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('total_card_count', sa.Integer(), nullable=False),
        sa.Column('hard_count', sa.Integer(), nullable=False),
        sa.Column('normal_count', sa.Integer(), nullable=False),
        sa.Column('easy_count', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'year', 'month', 'week_number', name='uq_weekly_card_baseline_week'),
    )

    op.create_table('weekly_goal_baselines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('goal_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('start_amount', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(length=50), nullable=False),
        sa.Column('goal_title', sa.String(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'goal_id', 'year', 'month', 'week_number',
                            name='uq_weekly_goal_baseline_week'),
    )

    op.create_table('weekly_stats',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('achievement_rate', sa.Float(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'year', 'month', 'week_number', name='uq_weekly_stat_week'),
    )

    op.create_table('schedules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('is_completed', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_schedules_user_id', 'schedules', ['user_id'])

    op.create_table('reminders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('schedule_id', sa.Integer(), nullable=True),
        sa.Column('message', sa.String(), nullable=False),
        sa.Column('notification_time', sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reminders_user_id', 'reminders', ['user_id'])

    op.create_table('app_launches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('launch_time', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_app_launches_user_id', 'app_launches', ['user_id'])


def downgrade() -> None:
    """Drop every LearnKit table."""
    for table in (
        'app_launches', 'reminders', 'schedules', 'weekly_stats', 'weekly_goal_baselines',
        'weekly_card_baselines', 'wordbook_study_sessions', 'goal_study_sessions', 'study_sessions',
        'goals', 'cards', 'wordbooks', 'users',
    ):
        op.drop_table(table)

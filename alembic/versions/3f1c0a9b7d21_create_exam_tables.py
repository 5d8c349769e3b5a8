"""create_exam_tables

Revision ID: 3f1c0a9b7d21
Revises:
Create Date: 2024-04-22 10:14:03.512880

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c0a9b7d21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('subjects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('code', sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_subjects_id', 'subjects', ['id'])
    op.create_index('ix_subjects_code', 'subjects', ['code'], unique=True)

    op.create_table('exams',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('duration', sa.String(32), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('available_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('subject_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='SET NULL')
    )
    op.create_index('ix_exams_id', 'exams', ['id'])
    op.create_index('ix_exams_subject_id', 'exams', ['subject_id'])

    op.create_table('questions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('points', sa.Float(), nullable=True),
        sa.Column('options_json', sa.Text(), nullable=True),
        sa.Column('correct_answer', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE')
    )
    op.create_index('ix_questions_id', 'questions', ['id'])
    op.create_index('ix_questions_exam_id', 'questions', ['exam_id'])

    op.create_table('exam_attempts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('question_order_json', sa.Text(), nullable=True),
        sa.Column('answers_json', sa.Text(), nullable=True),
        sa.Column('flags_json', sa.Text(), nullable=True),
        sa.Column('last_open_question', sa.Integer(), nullable=False),
        sa.Column('time_left', sa.Integer(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('result_json', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE')
    )
    op.create_index('ix_exam_attempts_id', 'exam_attempts', ['id'])
    op.create_index('ix_exam_attempts_user_id', 'exam_attempts', ['user_id'])
    op.create_index('ix_exam_attempts_exam_id', 'exam_attempts', ['exam_id'])
    op.create_index('ix_exam_attempts_completed_at', 'exam_attempts', ['completed_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_exam_attempts_completed_at', table_name='exam_attempts')
    op.drop_index('ix_exam_attempts_exam_id', table_name='exam_attempts')
    op.drop_index('ix_exam_attempts_user_id', table_name='exam_attempts')
    op.drop_index('ix_exam_attempts_id', table_name='exam_attempts')
    op.drop_table('exam_attempts')
    op.drop_index('ix_questions_exam_id', table_name='questions')
    op.drop_index('ix_questions_id', table_name='questions')
    op.drop_table('questions')
    op.drop_index('ix_exams_subject_id', table_name='exams')
    op.drop_index('ix_exams_id', table_name='exams')
    op.drop_table('exams')
    op.drop_index('ix_subjects_code', table_name='subjects')
    op.drop_index('ix_subjects_id', table_name='subjects')
    op.drop_table('subjects')

"""create quiz, question, option, answer and result tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'quizzes',
        sa.Column('quiz_id', sa.Integer(), primary_key=True),
        sa.Column('admin_id', sa.BigInteger(), nullable=False),
        sa.Column('quiz_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('total_mark', sa.Integer(), nullable=False),
        sa.Column('quiz_token', sa.String(16), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_quizzes_quiz_id', 'quizzes', ['quiz_id'])
    op.create_index('ix_quizzes_admin_id', 'quizzes', ['admin_id'])
    op.create_index('ix_quizzes_quiz_token', 'quizzes', ['quiz_token'], unique=True)

    # Options and questions disappear with their parent through the FK itself
    op.create_table(
        'questions',
        sa.Column('question_id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quizzes.quiz_id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('points', sa.Integer(), server_default='1', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_questions_question_id', 'questions', ['question_id'])
    op.create_index('ix_questions_quiz_id', 'questions', ['quiz_id'])

    op.create_table(
        'options',
        sa.Column('option_id', sa.Integer(), primary_key=True),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('questions.question_id', ondelete='CASCADE'), nullable=False),
        sa.Column('option_text', sa.Text(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), server_default=sa.false(), nullable=False),
    )
    op.create_index('ix_options_option_id', 'options', ['option_id'])
    op.create_index('ix_options_question_id', 'options', ['question_id'])

    op.create_table(
        'user_answers',
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('quiz_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('option_id', sa.Integer(), nullable=False),
        sa.Column('answered_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('user_id', 'quiz_id', 'question_id', name='pk_user_answers'),
    )
    op.create_index('idx_user_answers_quiz', 'user_answers', ['quiz_id'])

    op.create_table(
        'user_results',
        sa.Column('result_id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('quiz_id', sa.Integer(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'quiz_id', name='uq_user_results_user_quiz'),
    )
    op.create_index('ix_user_results_result_id', 'user_results', ['result_id'])
    op.create_index('ix_user_results_user_id', 'user_results', ['user_id'])
    op.create_index('ix_user_results_quiz_id', 'user_results', ['quiz_id'])


def downgrade() -> None:
    op.drop_table('user_results')
    op.drop_table('user_answers')
    op.drop_table('options')
    op.drop_table('questions')
    op.drop_table('quizzes')

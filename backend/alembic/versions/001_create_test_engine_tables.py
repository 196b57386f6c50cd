"""Create test engine tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE TYPE session_type AS ENUM ('practice', 'mock_test', 'section_test', 'custom')")
    op.execute("CREATE TYPE session_status AS ENUM ('draft', 'active', 'paused', 'completed')")
    op.execute("CREATE TYPE question_selection_mode AS ENUM ('all', 'mixed', 'new_only', 'incorrect_only')")

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('role', sa.String(32), nullable=False, server_default='STUDENT'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Exam content (authored elsewhere, read by the engine)
    op.create_table(
        'exams',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('duration_minutes', sa.Integer, nullable=True),
        sa.Column('total_score', sa.Integer, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )
    op.create_table(
        'sections',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('exam_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('order_index', sa.Integer, nullable=False, server_default='0'),
        sa.Column('duration_minutes', sa.Integer, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
    )
    op.create_index('ix_sections_exam_order', 'sections', ['exam_id', 'order_index'])
    op.create_table(
        'question_types',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('section_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('sections.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('input_type', sa.String(32), nullable=False, server_default='single_choice'),
        sa.Column('response_type', sa.String(32), nullable=False, server_default='selection'),
        sa.Column('scoring_method', sa.String(50), nullable=True),
        sa.Column('time_limit_seconds', sa.Integer, nullable=True),
        sa.Column('ui_component', sa.String(100), nullable=True),
        sa.Column('order_index', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
    )
    op.create_index('ix_question_types_section_order', 'question_types', ['section_id', 'order_index'])
    op.create_table(
        'questions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('question_type_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('question_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('content', sa.Text, nullable=True),
        sa.Column('instructions', sa.Text, nullable=True),
        sa.Column('difficulty_level', sa.SmallInteger, nullable=False, server_default='3'),
        sa.Column('expected_duration_seconds', sa.Integer, nullable=True),
        sa.Column('correct_answer', postgresql.JSONB, nullable=True),
        sa.Column('blanks_config', postgresql.JSONB, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.CheckConstraint('difficulty_level BETWEEN 1 AND 5', name='ck_questions_difficulty_level'),
    )
    op.create_index('ix_questions_type_active', 'questions', ['question_type_id', 'is_active'])
    op.create_table(
        'media',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('content_type', sa.String(100), nullable=True),
        sa.Column('url', sa.String(2048), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        'question_options',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('option_text', sa.Text, nullable=False),
        sa.Column('is_correct', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('display_order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('media_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('media.id', ondelete='SET NULL'), nullable=True),
    )
    op.create_table(
        'question_media',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('media_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('media.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(32), nullable=False, server_default='question_content'),
        sa.Column('display_order', sa.Integer, nullable=False, server_default='0'),
    )

    # Sessions
    op.create_table(
        'test_sessions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', onupdate='CASCADE'), nullable=False),
        sa.Column('exam_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('exams.id', onupdate='CASCADE'), nullable=False),
        sa.Column('session_name', sa.String(255), nullable=False),
        sa.Column('session_type', sa.Enum('practice', 'mock_test', 'section_test', 'custom', name='session_type', create_type=False), nullable=False, server_default='practice'),
        sa.Column('status', sa.Enum('draft', 'active', 'paused', 'completed', name='session_status', create_type=False), nullable=False, server_default='draft'),
        sa.Column('question_selection_mode', sa.Enum('all', 'mixed', 'new_only', 'incorrect_only', name='question_selection_mode', create_type=False), nullable=False, server_default='mixed'),
        sa.Column('difficulty_levels', postgresql.JSONB, nullable=False),
        sa.Column('session_config', postgresql.JSONB, nullable=False, server_default='{}'),
        sa.Column('question_count', sa.Integer, nullable=False),
        sa.Column('total_questions', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_timed', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('total_duration_minutes', sa.Integer, nullable=True),
        sa.Column('started_at', sa.DateTime, nullable=True),
        sa.Column('paused_at', sa.DateTime, nullable=True),
        sa.Column('completed_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_test_sessions_user_created', 'test_sessions', ['user_id', 'created_at'])
    op.create_index('ix_test_sessions_status', 'test_sessions', ['status'])

    op.create_table(
        'test_session_questions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('test_sessions.id', ondelete='CASCADE', onupdate='CASCADE'), nullable=False),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('questions.id', onupdate='CASCADE'), nullable=False),
        sa.Column('sequence_number', sa.Integer, nullable=False),
        sa.Column('allocated_time_seconds', sa.Integer, nullable=True),
        sa.Column('question_attempt_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_attempted', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('is_completed', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('time_spent_seconds', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('session_id', 'sequence_number', name='uq_session_question_sequence'),
    )
    op.create_index('ix_test_session_questions_session_id', 'test_session_questions', ['session_id'])

    op.create_table(
        'question_attempts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', onupdate='CASCADE'), nullable=False),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('questions.id', onupdate='CASCADE'), nullable=False),
        sa.Column('test_session_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('test_sessions.id', ondelete='CASCADE', onupdate='CASCADE'), nullable=False),
        sa.Column('session_question_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('test_session_questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('response_type', sa.String(32), nullable=False),
        sa.Column('response_data', postgresql.JSONB, nullable=True),
        sa.Column('response_text', sa.Text, nullable=True),
        sa.Column('selected_options', postgresql.JSONB, nullable=True),
        sa.Column('time_spent_seconds', sa.Integer, nullable=False, server_default='0'),
        sa.Column('started_at', sa.DateTime, nullable=True),
        sa.Column('submitted_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=True),
        sa.Column('scoring_status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('ai_score', sa.Float, nullable=True),
        sa.Column('manual_score', sa.Float, nullable=True),
        sa.Column('final_score', sa.Float, nullable=True),
        sa.Column('ai_feedback', postgresql.JSONB, nullable=True),
        # One attempt per slot; target of INSERT ... ON CONFLICT
        sa.UniqueConstraint('session_question_id', name='uq_question_attempts_session_question'),
    )
    op.create_index('ix_question_attempts_user_submitted', 'question_attempts', ['user_id', 'submitted_at'])
    op.create_index('ix_question_attempts_session', 'question_attempts', ['test_session_id'])

    op.create_foreign_key(
        'fk_test_session_questions_attempt',
        'test_session_questions',
        'question_attempts',
        ['question_attempt_id'],
        ['id'],
        ondelete='SET NULL',
    )


def downgrade() -> None:
    op.drop_constraint('fk_test_session_questions_attempt', 'test_session_questions', type_='foreignkey')
    op.drop_table('question_attempts')
    op.drop_table('test_session_questions')
    op.drop_table('test_sessions')
    op.drop_table('question_media')
    op.drop_table('question_options')
    op.drop_table('media')
    op.drop_table('questions')
    op.drop_table('question_types')
    op.drop_table('sections')
    op.drop_table('exams')
    op.drop_table('users')
    op.execute("DROP TYPE question_selection_mode")
    op.execute("DROP TYPE session_status")
    op.execute("DROP TYPE session_type")

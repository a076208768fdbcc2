"""initial contest schema: identities, companions, sessions, contests, trivia

Revision ID: 4c2a9e71b0d3
Revises:
Create Date: 2025-10-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e71b0d3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'operator',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
    )
    op.create_index('ix_operator_username', 'operator', ['username'], unique=True)

    op.create_table(
        'employee_code',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('holder_name', sa.String(length=128), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_employee_code_code', 'employee_code', ['code'], unique=True)

    op.create_table(
        'identity',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('biometric_ref', sa.String(length=64), nullable=False),
        sa.Column('display_name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True, unique=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('employee_code', sa.String(length=32), nullable=True),
        sa.Column('photo_ref', sa.String(length=512), nullable=True),
        sa.Column('point_balance', sa.Integer(), nullable=False),
        sa.Column('is_companion', sa.Boolean(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('enrolled_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('point_balance >= 0', name='ck_identity_point_balance'),
    )
    op.create_index('ix_identity_biometric_ref', 'identity', ['biometric_ref'], unique=True)
    op.create_index('ix_identity_employee_code', 'identity', ['employee_code'], unique=True)

    op.create_table(
        'companion_link',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('principal_id', sa.Integer(), sa.ForeignKey('identity.id'), nullable=False, unique=True),
        sa.Column('companion_id', sa.Integer(), sa.ForeignKey('identity.id'), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('principal_id <> companion_id', name='ck_companion_link_distinct'),
    )

    op.create_table(
        'participant_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('identity_id', sa.Integer(), sa.ForeignKey('identity.id'), nullable=False),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_participant_session_token', 'participant_session', ['token'], unique=True)
    op.create_index('ix_participant_session_identity_id', 'participant_session', ['identity_id'])

    op.create_table(
        'contest',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(length=32), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.CheckConstraint('points_awarded >= 0', name='ck_contest_points_awarded'),
    )
    op.create_index('ix_contest_code', 'contest', ['code'], unique=True)

    op.create_table(
        'participation',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identity_id', sa.Integer(), sa.ForeignKey('identity.id'), nullable=False),
        sa.Column('contest_id', sa.Integer(), sa.ForeignKey('contest.id'), nullable=False),
        sa.Column('exclusive_contest_id', sa.Integer(), sa.ForeignKey('contest.id'), nullable=True, unique=True),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('award_count', sa.Integer(), nullable=False),
        sa.Column('match_confidence', sa.Float(), nullable=True),
        sa.Column('awarded_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('identity_id', 'contest_id', name='uq_participation_identity_contest'),
    )
    op.create_index('ix_participation_identity_id', 'participation', ['identity_id'])
    op.create_index('ix_participation_contest_id', 'participation', ['contest_id'])

    op.create_table(
        'trivia',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('window_start', sa.DateTime(), nullable=False),
        sa.Column('window_end', sa.DateTime(), nullable=False),
        sa.Column('points_max', sa.Integer(), nullable=False),
        sa.Column('points_min', sa.Integer(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.CheckConstraint('points_max >= points_min', name='ck_trivia_points_order'),
        sa.CheckConstraint('points_min >= 0', name='ck_trivia_points_min'),
        sa.CheckConstraint('window_end > window_start', name='ck_trivia_window'),
    )
    op.create_index('ix_trivia_window_start', 'trivia', ['window_start'])

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trivia_id', sa.Integer(), sa.ForeignKey('trivia.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('option_a', sa.String(length=255), nullable=False),
        sa.Column('option_b', sa.String(length=255), nullable=False),
        sa.Column('option_c', sa.String(length=255), nullable=False),
        sa.Column('option_d', sa.String(length=255), nullable=False),
        sa.Column('correct_label', sa.String(length=1), nullable=False),
    )
    op.create_index('ix_question_trivia_id', 'question', ['trivia_id'])

    op.create_table(
        'trivia_response',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identity_id', sa.Integer(), sa.ForeignKey('identity.id'), nullable=False),
        sa.Column('trivia_id', sa.Integer(), sa.ForeignKey('trivia.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('chosen_label', sa.String(length=1), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('answered_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('identity_id', 'trivia_id', name='uq_trivia_response_identity_trivia'),
    )
    op.create_index('ix_trivia_response_identity_id', 'trivia_response', ['identity_id'])
    op.create_index('ix_trivia_response_trivia_id', 'trivia_response', ['trivia_id'])


def downgrade():
    for table in (
        'trivia_response',
        'question',
        'trivia',
        'participation',
        'contest',
        'participant_session',
        'companion_link',
        'identity',
        'employee_code',
        'operator',
    ):
        op.drop_table(table)

"""Live call coaching schema

Revision ID: 001_call_coaching
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_call_coaching'
down_revision = None
branch_labels = None
depends_on = None

checklist_category = sa.Enum(
    'requirements', 'site_conditions', 'timeline', 'budget', 'other', name='checklistcategory'
)
call_status = sa.Enum('ringing', 'in_progress', 'completed', 'missed', 'failed', name='callstatus')
call_direction = sa.Enum('inbound', 'outbound', name='calldirection')
speaker = sa.Enum('staff', 'customer', name='speaker')
prompt_type = sa.Enum('alert', 'reminder', 'suggestion', name='prompttype')


def upgrade() -> None:
    op.create_table(
        'sales_checklist_items',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', checklist_category, nullable=False),
        sa.Column('keywords', sa.JSON(), nullable=False),
        sa.Column('suggested_response', sa.Text(), nullable=True),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_sales_checklist_items_is_active', 'sales_checklist_items', ['is_active'])

    op.create_table(
        'call_sessions',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('status', call_status, nullable=False),
        sa.Column('direction', call_direction, nullable=False),
        sa.Column('phone_number', sa.String(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('last_evaluated_sequence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_evaluated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_call_sessions_status', 'call_sessions', ['status'])

    op.create_table(
        'call_transcript_segments',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('call_id', sa.String(), sa.ForeignKey('call_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('speaker', speaker, nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('call_id', 'sequence', name='uq_transcript_call_sequence'),
    )
    op.create_index('ix_call_transcript_segments_call_id', 'call_transcript_segments', ['call_id'])

    op.create_table(
        'call_checklist_status',
        sa.Column('call_id', sa.String(), sa.ForeignKey('call_sessions.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('checklist_item_id', sa.String(), primary_key=True),
        sa.Column('is_covered', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('covered_at_sequence', sa.Integer(), nullable=True),
        sa.Column('detected_text', sa.Text(), nullable=True),
        sa.Column('covered_at', sa.DateTime(), nullable=True),
        sa.Column('manually_covered', sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        'call_coaching_prompts',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('call_id', sa.String(), sa.ForeignKey('call_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('prompt_type', prompt_type, nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('related_checklist_item_id', sa.String(), nullable=True),
        sa.Column('trigger_text', sa.Text(), nullable=True),
        sa.Column('created_at_sequence', sa.Integer(), nullable=False),
        sa.Column('was_acknowledged', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_call_coaching_prompts_call_id', 'call_coaching_prompts', ['call_id'])


def downgrade() -> None:
    op.drop_index('ix_call_coaching_prompts_call_id', table_name='call_coaching_prompts')
    op.drop_table('call_coaching_prompts')
    op.drop_table('call_checklist_status')
    op.drop_index('ix_call_transcript_segments_call_id', table_name='call_transcript_segments')
    op.drop_table('call_transcript_segments')
    op.drop_index('ix_call_sessions_status', table_name='call_sessions')
    op.drop_table('call_sessions')
    op.drop_index('ix_sales_checklist_items_is_active', table_name='sales_checklist_items')
    op.drop_table('sales_checklist_items')

    bind = op.get_bind()
    for enum_type in (prompt_type, speaker, call_direction, call_status, checklist_category):
        enum_type.drop(bind, checkfirst=True)

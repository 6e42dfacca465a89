"""Create broker, lead, automation and settings tables

Revision ID: 000_initial_tables
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '000_initial_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Broker first (no foreign keys)
    op.create_table('broker',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('slug', sa.String(length=120), nullable=True),
        sa.Column('preferred_language', sa.String(length=5), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('slug')
    )

    op.create_table('lead',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('broker_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('external_id', sa.String(length=200), nullable=True),
        sa.Column('source', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=40), nullable=False),
        sa.Column('intent', sa.String(length=100), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('budget', sa.String(length=100), nullable=True),
        sa.Column('timeline', sa.String(length=100), nullable=True),
        sa.Column('property_type', sa.String(length=100), nullable=True),
        sa.Column('desired_city', sa.String(length=200), nullable=True),
        sa.Column('financing', sa.String(length=100), nullable=True),
        sa.Column('urgency', sa.String(length=20), nullable=True),
        sa.Column('recommended_action', sa.String(length=200), nullable=True),
        sa.Column('ai_summary', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('language', sa.String(length=5), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['broker_id'], ['broker.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone')
    )
    op.create_index('ix_lead_broker_id', 'lead', ['broker_id'])
    op.create_index('ix_lead_email', 'lead', ['email'])
    op.create_index('ix_lead_external_id', 'lead', ['external_id'])

    op.create_table('lead_message',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lead_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('sender', sa.String(length=20), nullable=False),
        sa.Column('direction', sa.String(length=10), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('channel', sa.String(length=30), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['lead_id'], ['lead.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_lead_message_lead_id', 'lead_message', ['lead_id'])
    op.create_index('ix_lead_message_timestamp', 'lead_message', ['timestamp'])

    op.create_table('automation_job',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('broker_id', sa.Integer(), nullable=True),
        sa.Column('lead_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('language', sa.String(length=5), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('claimed_by', sa.String(length=100), nullable=True),
        sa.Column('claimed_at', sa.DateTime(), nullable=True),
        sa.Column('executed_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['broker_id'], ['broker.id'], ),
        sa.ForeignKeyConstraint(['lead_id'], ['lead.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_automation_job_broker_id', 'automation_job', ['broker_id'])
    op.create_index('ix_automation_job_lead_id', 'automation_job', ['lead_id'])
    op.create_index('idx_automation_job_due', 'automation_job', ['status', 'scheduled_for'])

    op.create_table('ai_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('broker_id', sa.Integer(), nullable=True),
        sa.Column('provider', sa.String(length=30), nullable=False),
        sa.Column('api_key', sa.String(length=255), nullable=True),
        sa.Column('default_model', sa.String(length=100), nullable=False),
        sa.Column('strong_model', sa.String(length=100), nullable=False),
        sa.Column('temperature', sa.Float(), nullable=False),
        sa.Column('max_tokens', sa.Integer(), nullable=False),
        sa.Column('system_prompt', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['broker_id'], ['broker.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('broker_id')
    )

    op.create_table('ai_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('broker_id', sa.Integer(), nullable=True),
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.Column('prompt_preview', sa.Text(), nullable=True),
        sa.Column('response_preview', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ai_log_broker_id', 'ai_log', ['broker_id'])
    op.create_index('ix_ai_log_created_at', 'ai_log', ['created_at'])

    op.create_table('whatsapp_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('broker_id', sa.Integer(), nullable=True),
        sa.Column('provider', sa.String(length=30), nullable=False),
        sa.Column('api_token', sa.String(length=512), nullable=True),
        sa.Column('phone_number_id', sa.String(length=64), nullable=True),
        sa.Column('business_account_id', sa.String(length=64), nullable=True),
        sa.Column('verify_token', sa.String(length=255), nullable=False),
        sa.Column('app_secret', sa.String(length=255), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['broker_id'], ['broker.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('broker_id')
    )

    op.create_table('automation_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('broker_id', sa.Integer(), nullable=True),
        sa.Column('welcome_enabled', sa.Boolean(), nullable=False),
        sa.Column('pre_call_enabled', sa.Boolean(), nullable=False),
        sa.Column('reminder_enabled', sa.Boolean(), nullable=False),
        sa.Column('post_call_enabled', sa.Boolean(), nullable=False),
        sa.Column('reactivation_enabled', sa.Boolean(), nullable=False),
        sa.Column('welcome_delay_minutes', sa.Integer(), nullable=False),
        sa.Column('reminder_before_minutes', sa.Integer(), nullable=False),
        sa.Column('reactivation_days', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['broker_id'], ['broker.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('broker_id')
    )

    op.create_table('funnel_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('broker_id', sa.Integer(), nullable=False),
        sa.Column('funnel_slug', sa.String(length=120), nullable=False),
        sa.Column('hero_title', sa.String(length=255), nullable=True),
        sa.Column('hero_subtitle', sa.Text(), nullable=True),
        sa.Column('target_area', sa.String(length=255), nullable=True),
        sa.Column('primary_language', sa.String(length=5), nullable=False),
        sa.Column('realtor_headline', sa.String(length=255), nullable=True),
        sa.Column('realtor_bio_short', sa.Text(), nullable=True),
        sa.Column('profile_photo_url', sa.String(length=500), nullable=True),
        sa.Column('brand_color', sa.String(length=20), nullable=True),
        sa.Column('calendly_url', sa.String(length=500), nullable=True),
        sa.Column('show_testimonials', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['broker_id'], ['broker.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('broker_id'),
        sa.UniqueConstraint('funnel_slug')
    )

    op.create_table('webhook_event',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('channel', sa.String(length=30), nullable=False),
        sa.Column('broker_id', sa.Integer(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_webhook_event_channel', 'webhook_event', ['channel'])


def downgrade():
    op.drop_table('webhook_event')
    op.drop_table('funnel_settings')
    op.drop_table('automation_settings')
    op.drop_table('whatsapp_settings')
    op.drop_table('ai_log')
    op.drop_table('ai_settings')
    op.drop_table('automation_job')
    op.drop_table('lead_message')
    op.drop_table('lead')
    op.drop_table('broker')

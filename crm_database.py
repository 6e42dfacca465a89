# crm_database.py

from extensions import db
from utils.datetime_utils import utc_now


# --- Tenant ---
class Broker(db.Model):
    __tablename__ = 'broker'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=True)
    preferred_language = db.Column(db.String(5), nullable=False, default='es')  # en | es | pt
    timezone = db.Column(db.String(64), nullable=False, default='America/New_York')
    created_at = db.Column(db.DateTime, default=utc_now)

    leads = db.relationship('Lead', backref='broker', lazy=True)

    # Tenant-owned settings rows go with the broker
    ai_settings = db.relationship('AISettings', uselist=False, cascade="all, delete-orphan")
    whatsapp_settings = db.relationship('WhatsAppSettings', uselist=False, cascade="all, delete-orphan")
    automation_settings = db.relationship('AutomationSettings', uselist=False, cascade="all, delete-orphan")
    funnel_settings = db.relationship('FunnelSettings', uselist=False, cascade="all, delete-orphan")


# --- Leads ---
class Lead(db.Model):
    __tablename__ = 'lead'

    id = db.Column(db.Integer, primary_key=True)
    broker_id = db.Column(db.Integer, db.ForeignKey('broker.id'), nullable=True, index=True)
    name = db.Column(db.String(200), nullable=False, default='New Lead')
    # One phone number maps to one lead across all brokers
    phone = db.Column(db.String(32), unique=True, nullable=True)
    email = db.Column(db.String(200), nullable=True, index=True)
    external_id = db.Column(db.String(200), nullable=True, index=True)  # social sender id
    source = db.Column(db.String(30), nullable=False, default='manual')

    # Free text on purpose: New, In Qualification, Qualified, Hot, Not Interested, Follow-up...
    status = db.Column(db.String(40), nullable=False, default='New')

    # AI-derived fields
    intent = db.Column(db.String(100), nullable=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    budget = db.Column(db.String(100), nullable=True)
    timeline = db.Column(db.String(100), nullable=True)
    property_type = db.Column(db.String(100), nullable=True)
    desired_city = db.Column(db.String(200), nullable=True)
    financing = db.Column(db.String(100), nullable=True)
    urgency = db.Column(db.String(20), nullable=True)
    recommended_action = db.Column(db.String(200), nullable=True)
    ai_summary = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    language = db.Column(db.String(5), nullable=True)
    tags = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    messages = db.relationship('LeadMessage', backref='lead', lazy=True,
                               cascade="all, delete-orphan",
                               order_by='LeadMessage.timestamp')
    automation_jobs = db.relationship('AutomationJob', backref='lead', lazy=True,
                                      cascade="all, delete-orphan")


class LeadMessage(db.Model):
    """Append-only conversation entry."""
    __tablename__ = 'lead_message'

    id = db.Column(db.Integer, primary_key=True)
    lead_id = db.Column(db.Integer, db.ForeignKey('lead.id'), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default='user')  # user | assistant
    sender = db.Column(db.String(20), nullable=False, default='lead')  # lead | ai | broker | automation
    direction = db.Column(db.String(10), nullable=False, default='inbound')  # inbound | outbound
    content = db.Column(db.Text, nullable=False)
    channel = db.Column(db.String(30), nullable=True)
    timestamp = db.Column(db.DateTime, default=utc_now, index=True)


# --- Automation queue ---
class AutomationJob(db.Model):
    __tablename__ = 'automation_job'
    __table_args__ = (
        db.Index('idx_automation_job_due', 'status', 'scheduled_for'),
    )

    id = db.Column(db.Integer, primary_key=True)
    broker_id = db.Column(db.Integer, db.ForeignKey('broker.id'), nullable=True, index=True)
    lead_id = db.Column(db.Integer, db.ForeignKey('lead.id'), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)  # welcome | pre_call | reminder | post_call | reactivation
    status = db.Column(db.String(20), nullable=False, default='pending')  # pending | claimed | executed | failed
    scheduled_for = db.Column(db.DateTime, nullable=False)
    payload = db.Column(db.JSON, nullable=True)
    language = db.Column(db.String(5), nullable=True)

    attempts = db.Column(db.Integer, nullable=False, default=0)
    claimed_by = db.Column(db.String(100), nullable=True)
    claimed_at = db.Column(db.DateTime, nullable=True)
    executed_at = db.Column(db.DateTime, nullable=True)
    last_error = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now)


# --- Per-tenant settings ---
class AISettings(db.Model):
    """AI configuration; the row with broker_id NULL is the platform default."""
    __tablename__ = 'ai_settings'

    id = db.Column(db.Integer, primary_key=True)
    broker_id = db.Column(db.Integer, db.ForeignKey('broker.id'), unique=True, nullable=True)
    provider = db.Column(db.String(30), nullable=False, default='gemini')
    api_key = db.Column(db.String(255), nullable=True)
    default_model = db.Column(db.String(100), nullable=False, default='gemini-flash-latest')
    strong_model = db.Column(db.String(100), nullable=False, default='gemini-pro-latest')
    temperature = db.Column(db.Float, nullable=False, default=0.2)
    max_tokens = db.Column(db.Integer, nullable=False, default=600)
    system_prompt = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)


class AILog(db.Model):
    """Truncated prompt/response audit trail, one row per model call."""
    __tablename__ = 'ai_log'

    id = db.Column(db.Integer, primary_key=True)
    broker_id = db.Column(db.Integer, nullable=True, index=True)
    model = db.Column(db.String(100), nullable=True)
    prompt_preview = db.Column(db.Text, nullable=True)
    response_preview = db.Column(db.Text, nullable=True)
    success = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utc_now, index=True)


class WhatsAppSettings(db.Model):
    __tablename__ = 'whatsapp_settings'

    id = db.Column(db.Integer, primary_key=True)
    broker_id = db.Column(db.Integer, db.ForeignKey('broker.id'), unique=True, nullable=True)
    provider = db.Column(db.String(30), nullable=False, default='cloud-api')  # cloud-api | 360dialog
    api_token = db.Column(db.String(512), nullable=True)
    phone_number_id = db.Column(db.String(64), nullable=True)
    business_account_id = db.Column(db.String(64), nullable=True)
    verify_token = db.Column(db.String(255), nullable=False, default='flowrealtors_verify_token')
    app_secret = db.Column(db.String(255), nullable=True)
    enabled = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)


class AutomationSettings(db.Model):
    __tablename__ = 'automation_settings'

    id = db.Column(db.Integer, primary_key=True)
    broker_id = db.Column(db.Integer, db.ForeignKey('broker.id'), unique=True, nullable=True)
    welcome_enabled = db.Column(db.Boolean, nullable=False, default=True)
    pre_call_enabled = db.Column(db.Boolean, nullable=False, default=True)
    reminder_enabled = db.Column(db.Boolean, nullable=False, default=True)
    post_call_enabled = db.Column(db.Boolean, nullable=False, default=True)
    reactivation_enabled = db.Column(db.Boolean, nullable=False, default=True)
    welcome_delay_minutes = db.Column(db.Integer, nullable=False, default=0)
    reminder_before_minutes = db.Column(db.Integer, nullable=False, default=60)
    reactivation_days = db.Column(db.Integer, nullable=False, default=3)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)


class FunnelSettings(db.Model):
    __tablename__ = 'funnel_settings'

    id = db.Column(db.Integer, primary_key=True)
    broker_id = db.Column(db.Integer, db.ForeignKey('broker.id'), unique=True, nullable=False)
    funnel_slug = db.Column(db.String(120), unique=True, nullable=False)
    hero_title = db.Column(db.String(255), nullable=True)
    hero_subtitle = db.Column(db.Text, nullable=True)
    target_area = db.Column(db.String(255), nullable=True)
    primary_language = db.Column(db.String(5), nullable=False, default='es')
    realtor_headline = db.Column(db.String(255), nullable=True)
    realtor_bio_short = db.Column(db.Text, nullable=True)
    profile_photo_url = db.Column(db.String(500), nullable=True)
    brand_color = db.Column(db.String(20), nullable=True, default='#000000')
    calendly_url = db.Column(db.String(500), nullable=True)
    show_testimonials = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utc_now)


# --- Inbound webhook ledger ---
class WebhookEvent(db.Model):
    __tablename__ = 'webhook_event'

    id = db.Column(db.Integer, primary_key=True)
    channel = db.Column(db.String(30), nullable=False, index=True)
    broker_id = db.Column(db.Integer, nullable=True)
    payload = db.Column(db.JSON)  # raw body, kept for reprocessing
    processed = db.Column(db.Boolean, default=False)
    processed_at = db.Column(db.DateTime, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now)

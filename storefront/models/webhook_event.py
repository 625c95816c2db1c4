# storefront/models/webhook_event.py
from storefront.extensions import db
from storefront.timeutil import utcnow


class WebhookEvent(db.Model):
    __tablename__ = "webhook_event"
    __table_args__ = (db.Index("ix_webhook_event_provider_created_at", "provider", "created_at"),)

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(32), nullable=False)
    event_id = db.Column(db.String(191), unique=True, nullable=False)
    payload = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

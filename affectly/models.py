from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone

db = SQLAlchemy()

FREE = "free"
PREMIUM = "premium"

PENDING = "pending"
VERIFIED = "verified"
FAILED = "failed"


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(db.Model):
    __tablename__ = "profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(255))
    subscription_tier = db.Column(db.String(20), nullable=False, default=FREE)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    @property
    def is_premium(self):
        return self.subscription_tier == PREMIUM

    def to_dict(self):
        return {
            "userId": self.user_id,
            "email": self.email,
            "fullName": self.full_name,
            "subscriptionTier": self.subscription_tier,
            "createdAt": self.created_at.isoformat() + "Z" if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() + "Z" if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Profile user_id={self.user_id} tier={self.subscription_tier}>"


class JournalEntry(db.Model):
    __tablename__ = "journal_entries"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("profiles.user_id"), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)

    # {"label": "POSITIVE", "score": 0.85}; None when the classifier failed
    sentiment = db.Column(db.JSON, nullable=True)
    # [{"label": "joy", "score": 0.7}, ...] strongest first
    emotions = db.Column(db.JSON, nullable=False, default=list)
    mood_score = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    @property
    def sentiment_label(self):
        return (self.sentiment or {}).get("label", "")

    def to_dict(self, emotion_detail="advanced"):
        emotions = self.emotions or []
        if emotion_detail == "basic":
            # Free tier sees the top three labels without scores
            emotions = [{"label": e["label"]} for e in emotions[:3]]
        return {
            "id": self.id,
            "content": self.content,
            "sentiment": self.sentiment,
            "emotions": emotions,
            "moodScore": float(self.mood_score) if self.mood_score is not None else None,
            "createdAt": self.created_at.isoformat() + "Z" if self.created_at else None,
        }

    def __repr__(self):
        return f"<JournalEntry id={self.id}>"


class Subscriber(db.Model):
    __tablename__ = "subscribers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(255), nullable=False)
    subscribed = db.Column(db.Boolean, nullable=False, default=False)
    subscription_tier = db.Column(db.String(20), nullable=False, default=FREE)
    subscription_end = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime, default=utcnow, nullable=False)


class PaymentTransaction(db.Model):
    __tablename__ = "payment_transactions"

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(255))
    amount_minor_units = db.Column(db.Integer)
    status = db.Column(db.String(20), nullable=False, default=PENDING)  # pending, verified, failed
    user_id = db.Column(db.String(64))
    subscription_end = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<PaymentTransaction reference={self.reference} status={self.status}>"

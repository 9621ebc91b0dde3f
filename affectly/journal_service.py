import io
import csv
import logging

from affectly import analytics
from affectly.entitlements import ADVANCED, day_window, ensure_can_create_entry, visible_features
from affectly.errors import ClassifierError, FeatureLocked, ValidationError
from affectly.models import JournalEntry, utcnow
from affectly.sentiment_service import NEUTRAL_ANALYSIS

logger = logging.getLogger(__name__)

CSV_HEADER = ["Date", "Content", "Sentiment", "Mood Score", "Emotions"]


class JournalService:
    """Write path and read-side analytics for one store and classifier."""

    def __init__(self, store, classifier, clock=utcnow, day_offset_minutes=0):
        self.store = store
        self.classifier = classifier
        self.clock = clock
        self.day_offset_minutes = day_offset_minutes

    def todays_entry_count(self, user_id, now=None):
        start, end = day_window(now or self.clock(), self.day_offset_minutes)
        return self.store.count_by_user_and_date_range(user_id, start, end)

    def create_entry(self, user_id, content):
        content = (content or "").strip()
        if not content:
            raise ValidationError("Missing 'content' text")

        profile = self.store.get_profile(user_id)
        now = self.clock()
        # Re-read on every write; a stale count would let a session overrun
        ensure_can_create_entry(profile, self.todays_entry_count(user_id, now))

        try:
            analysis = self.classifier.analyze(content)
        except ClassifierError as e:
            logger.warning(f"Classifier unavailable, saving entry for {user_id} unanalyzed: {e}")
            analysis = NEUTRAL_ANALYSIS

        sentiment = analysis.sentiment
        entry = JournalEntry(
            user_id=user_id,
            content=content,
            sentiment=sentiment,
            emotions=list(analysis.emotions),
            mood_score=sentiment["score"] if sentiment else 0.0,
            created_at=now,
        )
        self.store.insert(entry)
        return entry

    def list_entries(self, user_id, limit=None):
        return self.store.query_by_user(user_id, limit=limit)

    def features(self, user_id):
        profile = self.store.get_profile(user_id)
        features = visible_features(profile)
        return {
            **features.to_dict(),
            "subscriptionTier": profile.subscription_tier,
            "entriesToday": self.todays_entry_count(user_id),
        }

    def update_profile(self, user_id, full_name):
        if full_name is None:
            raise ValidationError("Missing 'fullName'")
        return self.store.update_profile(user_id, full_name=full_name.strip(), updated_at=self.clock())

    # ---------- Dashboard ----------

    def get_dashboard_stats(self, user_id):
        entries = self.store.query_by_user(user_id)
        return {
            "totalEntries": len(entries),
            "averageMood": analytics.average_mood(entries),
            "streakDays": analytics.compute_streak(entries, self.clock()),
            # None means no emotion data, not a detected neutral mood
            "topEmotion": analytics.most_common_emotion(entries),
        }

    def get_mood_trend(self, user_id):
        entries = self.store.query_by_user(user_id, limit=analytics.TREND_WINDOW)
        return analytics.mood_trend(entries, offset_minutes=self.day_offset_minutes)

    def get_emotion_distribution(self, user_id):
        profile = self.store.get_profile(user_id)
        if visible_features(profile).emotion_detail != ADVANCED:
            raise FeatureLocked("Upgrade to Premium to see detailed emotion analysis.")
        return analytics.emotion_distribution(self.store.query_by_user(user_id))

    def export_csv(self, user_id):
        profile = self.store.get_profile(user_id)
        if not visible_features(profile).export_enabled:
            raise FeatureLocked("Data export is available on Premium only.")

        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(CSV_HEADER)
        for entry in self.store.query_by_user(user_id):
            writer.writerow([
                entry.created_at.isoformat(),
                entry.content,
                entry.sentiment_label,
                entry.mood_score if entry.mood_score is not None else "",
                ";".join(e["label"] for e in entry.emotions or []),
            ])
        return buf.getvalue()

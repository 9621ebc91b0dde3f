import csv
import io
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from affectly.errors import FeatureLocked, NotFound, QuotaExceeded, StoreError, ValidationError
from affectly.journal_service import JournalService
from affectly.models import JournalEntry
from conftest import NOW, FakeClassifier


@pytest.fixture
def service(store, classifier):
    store.create_profile("u1", "ada@example.com", "Ada")
    return JournalService(store, classifier, clock=lambda: NOW)


def test_create_entry_saves_analysis(service, store):
    entry = service.create_entry("u1", "  Had a lovely walk.  ")

    saved = store.query_by_user("u1")
    assert [e.id for e in saved] == [entry.id]
    assert saved[0].content == "Had a lovely walk."
    assert saved[0].sentiment == {"label": "POSITIVE", "score": 0.85}
    assert saved[0].mood_score == 0.85
    assert saved[0].created_at == NOW


def test_sixth_entry_of_the_day_is_refused_for_free_user(service, classifier):
    for i in range(5):
        service.create_entry("u1", f"entry {i}")

    with pytest.raises(QuotaExceeded):
        service.create_entry("u1", "one too many")
    assert classifier.calls == 5


def test_yesterdays_entries_do_not_count(service, store):
    for i in range(5):
        store.insert(JournalEntry(user_id="u1", content=f"old {i}", emotions=[], mood_score=0.5,
                                  created_at=NOW - timedelta(days=1)))

    assert service.todays_entry_count("u1") == 0
    service.create_entry("u1", "fresh start")


def test_premium_user_has_no_quota(service, store):
    store.update_profile("u1", subscription_tier="premium")
    for i in range(8):
        service.create_entry("u1", f"entry {i}")
    assert service.todays_entry_count("u1") == 8


def test_classifier_failure_still_saves_entry(store):
    store.create_profile("u2", "bob@example.com")
    service = JournalService(store, FakeClassifier(fail=True), clock=lambda: NOW)

    entry = service.create_entry("u2", "Words I do not want to lose")

    assert entry.id is not None
    assert entry.sentiment is None
    assert entry.emotions == []
    assert entry.mood_score == 0.0


def test_empty_content_rejected(service):
    with pytest.raises(ValidationError):
        service.create_entry("u1", "   ")


def test_unknown_user(service):
    with pytest.raises(NotFound):
        service.create_entry("ghost", "hello")


def test_dashboard_stats(service, store):
    for days in (2, 1, 0):
        store.insert(JournalEntry(
            user_id="u1", content=f"day {days}", mood_score=0.6 + days / 10,
            emotions=[{"label": "joy", "score": 0.9}],
            sentiment={"label": "POSITIVE", "score": 0.6 + days / 10},
            created_at=NOW - timedelta(days=days, hours=1),
        ))

    stats = service.get_dashboard_stats("u1")

    assert stats == {"totalEntries": 3, "averageMood": 0.7, "streakDays": 3, "topEmotion": "joy"}


def test_dashboard_stats_without_entries(service):
    assert service.get_dashboard_stats("u1") == {
        "totalEntries": 0, "averageMood": 0, "streakDays": 0, "topEmotion": None,
    }


def test_mood_trend_and_distribution(service, store):
    store.update_profile("u1", subscription_tier="premium")
    service.create_entry("u1", "first")
    service.create_entry("u1", "second")

    assert service.get_mood_trend("u1").to_list() == [
        {"date": "2026-10-19", "mood": 0.85},
        {"date": "2026-10-19", "mood": 0.85},
    ]
    assert dict(service.get_emotion_distribution("u1")) == {"joy": 2, "optimism": 2}


def test_emotion_distribution_is_premium_only(service):
    service.create_entry("u1", "happy day")
    with pytest.raises(FeatureLocked):
        service.get_emotion_distribution("u1")


def test_mood_trend_uses_the_quota_day(store, classifier):
    # 22:30 UTC on the 18th is already the 19th at UTC+3
    late_evening = datetime(2026, 10, 18, 22, 30)
    store.create_profile("u3", "cy@example.com")
    service = JournalService(store, classifier, clock=lambda: late_evening, day_offset_minutes=180)

    service.create_entry("u3", "Could not sleep")

    assert service.todays_entry_count("u3") == 1
    assert [p.date for p in service.get_mood_trend("u3")] == [date(2026, 10, 19)]


def test_store_failure_surfaces_and_saves_nothing(service, store, monkeypatch):
    def broken_commit(self):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(Session, "commit", broken_commit)
    with pytest.raises(StoreError):
        service.create_entry("u1", "Will this survive?")
    monkeypatch.undo()

    assert store.query_by_user("u1") == []
    assert service.todays_entry_count("u1") == 0


def test_export_requires_premium(service):
    with pytest.raises(FeatureLocked):
        service.export_csv("u1")


def test_export_csv_rows(service, store):
    store.update_profile("u1", subscription_tier="premium")
    service.create_entry("u1", "Good day, mostly")

    rows = list(csv.reader(io.StringIO(service.export_csv("u1"))))

    assert rows[0] == ["Date", "Content", "Sentiment", "Mood Score", "Emotions"]
    assert rows[1] == ["2026-10-19T12:00:00", "Good day, mostly", "POSITIVE", "0.85", "joy;optimism"]


def test_update_profile_name(service, store):
    service.update_profile("u1", "  Ada Lovelace ")
    profile = store.get_profile("u1")
    assert profile.full_name == "Ada Lovelace"
    assert profile.updated_at == NOW

"""Streak and mood analytics over a snapshot of a user's entries.

Entries arrive the way the store returns them: newest first. Nothing in
this module reads the clock; ``now`` is always passed in.
"""
from collections import namedtuple
from datetime import timedelta
from itertools import islice

TREND_WINDOW = 30

TrendPoint = namedtuple("TrendPoint", ["date", "mood"])
EmotionCount = namedtuple("EmotionCount", ["label", "count"])


def compute_streak(entries, now):
    """Consecutive days ending today, matched greedily from the newest entry.

    Entry ``i`` continues the streak only if it is exactly ``i`` whole days
    old, so a second entry on the same day or any gap ends the count.
    """
    streak = 0
    for position, entry in enumerate(entries):
        days_diff = (now - entry.created_at) // timedelta(days=1)
        if days_diff != position:
            break
        streak += 1
    return streak


class MoodTrend:
    """Chronological mood points for the most recent entries.

    Iterable any number of times; points are produced on demand. Dates are
    the user's calendar day, UTC shifted by ``offset_minutes`` the same way
    the daily quota window is.
    """

    def __init__(self, entries, limit=TREND_WINDOW, offset_minutes=0):
        self._entries = list(islice(entries, limit))
        self._offset = timedelta(minutes=offset_minutes)

    def __iter__(self):
        for entry in reversed(self._entries):
            local_date = (entry.created_at + self._offset).date()
            yield TrendPoint(date=local_date, mood=entry.mood_score or 0)

    def __len__(self):
        return len(self._entries)

    def to_list(self):
        return [{"date": point.date.isoformat(), "mood": point.mood} for point in self]


def mood_trend(entries, limit=TREND_WINDOW, offset_minutes=0):
    return MoodTrend(entries, limit, offset_minutes)


def _emotion_counts(entries):
    counts = {}
    for entry in entries:
        for emotion in entry.emotions or []:
            counts[emotion["label"]] = counts.get(emotion["label"], 0) + 1
    return counts


def emotion_distribution(entries):
    return [EmotionCount(label, count) for label, count in _emotion_counts(entries).items()]


def most_common_emotion(entries, default=None):
    """Label with the highest count; ``default`` when no entry has emotions.

    Ties go to the label that reached the maximum first while folding over
    the entries in order.
    """
    counts = {}
    best, best_count = default, 0
    for entry in entries:
        for emotion in entry.emotions or []:
            label = emotion["label"]
            counts[label] = counts.get(label, 0) + 1
            if counts[label] > best_count:
                best, best_count = label, counts[label]
    return best


def average_mood(entries):
    if not entries:
        return 0.0
    total = sum(entry.mood_score or 0 for entry in entries)
    return round(total / len(entries), 2)

"""Tier policy: daily entry quota and the features each tier may see.

Everything here is a pure function of a profile snapshot, an entry count
and an explicit ``now``; the caller re-reads the count from the store on
every check.
"""
import logging
from collections import namedtuple
from datetime import datetime, timedelta

from affectly.errors import QuotaExceeded
from affectly.models import PREMIUM

logger = logging.getLogger(__name__)

FREE_DAILY_ENTRY_LIMIT = 5
UNLIMITED = None

BASIC = "basic"
ADVANCED = "advanced"


class Features(namedtuple("Features", ["daily_limit", "emotion_detail", "export_enabled"])):
    __slots__ = ()

    @property
    def unlimited(self):
        return self.daily_limit is UNLIMITED

    def to_dict(self):
        return {
            "dailyLimit": "unlimited" if self.unlimited else self.daily_limit,
            "emotionDetail": self.emotion_detail,
            "exportEnabled": self.export_enabled,
        }


FREE_FEATURES = Features(daily_limit=FREE_DAILY_ENTRY_LIMIT, emotion_detail=BASIC, export_enabled=False)
PREMIUM_FEATURES = Features(daily_limit=UNLIMITED, emotion_detail=ADVANCED, export_enabled=True)


def _tier(profile):
    return getattr(profile, "subscription_tier", None)


def visible_features(profile):
    if _tier(profile) == PREMIUM:
        return PREMIUM_FEATURES
    return FREE_FEATURES


def can_create_entry(profile, todays_entry_count):
    if _tier(profile) == PREMIUM:
        return True
    return todays_entry_count < FREE_DAILY_ENTRY_LIMIT


def ensure_can_create_entry(profile, todays_entry_count):
    if not can_create_entry(profile, todays_entry_count):
        logger.info(f"Quota reached for {getattr(profile, 'user_id', '?')}: {todays_entry_count} entries today")
        raise QuotaExceeded(
            f"Free users can only create {FREE_DAILY_ENTRY_LIMIT} entries per day. "
            "Upgrade to Premium for unlimited entries."
        )


def day_window(now, offset_minutes=0):
    """[start, end) of the calendar day containing ``now``, as naive UTC.

    ``offset_minutes`` shifts UTC into the user's local day (e.g. +180 for
    UTC+3) so the boundaries fall on local midnight.
    """
    offset = timedelta(minutes=offset_minutes)
    local = now + offset
    start_local = datetime(local.year, local.month, local.day)
    start = start_local - offset
    return start, start + timedelta(days=1)

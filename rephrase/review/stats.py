"""Aggregate practice statistics: streak, running score, sentence count."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rephrase.storage import BlobStore
from .spaced_repetition import as_utc, utcnow

USER_STATS_KEY = 'userStats'

_BAND_LABELS = (
    (8.5, 'Expert User'),
    (8.0, 'Very Good User'),
    (7.0, 'Good User'),
    (6.0, 'Competent User'),
    (5.0, 'Modest User'),
)


def band_label(score: float) -> str:
    for floor, label in _BAND_LABELS:
        if score >= floor:
            return label
    return 'Limited User'


class UserStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    streak: int = Field(0, ge=0)
    total_score: float = Field(0.0, alias='totalScore', ge=0)
    sentence_count: int = Field(0, alias='sentenceCount', ge=0)
    last_active_date: Optional[datetime] = Field(None, alias='lastActiveDate')

    @property
    def average_band(self) -> float:
        return self.total_score / self.sentence_count if self.sentence_count > 0 else 0.0

    def touch_streak(self, now: Optional[datetime] = None) -> None:
        """Advance the daily streak by calendar day.

        First activity starts the streak at 1; the next calendar day adds one;
        a skipped day resets it to 1; the same day leaves it unchanged.
        """
        now = as_utc(now) if now else utcnow()
        if self.last_active_date is None:
            self.streak = 1
            return
        days = (now.date() - as_utc(self.last_active_date).date()).days
        if days > 1:
            self.streak = 1
        elif days == 1:
            self.streak += 1

    def refresh_streak(self, now: Optional[datetime] = None) -> bool:
        """Drop a lapsed streak back to 1 without recording activity.

        Applied whenever stats are loaded or read, so a missed day shows up
        before the next score. Returns True when the streak changed.
        """
        if self.last_active_date is None:
            return False
        now = as_utc(now) if now else utcnow()
        days = (now.date() - as_utc(self.last_active_date).date()).days
        if days > 1 and self.streak != 1:
            self.streak = 1
            return True
        return False

    def record_score(self, band: float, now: Optional[datetime] = None) -> None:
        now = as_utc(now) if now else utcnow()
        self.total_score += band
        self.sentence_count += 1
        self.touch_streak(now)
        self.last_active_date = now


def load_stats(store: BlobStore, key: str = USER_STATS_KEY, now: Optional[datetime] = None) -> UserStats:
    """Load stored stats, resetting (and re-saving) a streak that lapsed since last use."""
    blob = store.get(key)
    if not blob:
        return UserStats()
    try:
        stats = UserStats.model_validate_json(blob)
    except ValidationError as e:
        raise ValueError(f'user stats blob failed validation: {e.error_count()} error(s)') from e
    if stats.refresh_streak(now):
        save_stats(store, stats, key)
    return stats


def save_stats(store: BlobStore, stats: UserStats, key: str = USER_STATS_KEY) -> None:
    store.set(key, stats.model_dump_json(by_alias=True).encode('utf-8'))

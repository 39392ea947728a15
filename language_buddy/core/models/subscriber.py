"""
Subscriber-related data models.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class LanguageSkill(BaseModel):
    """A language the subscriber speaks or learns."""

    model_config = ConfigDict(extra="forbid")

    name: str
    level: Optional[str] = None
    assessed: bool = False
    struggles: List[str] = Field(default_factory=list)


class SubscriberProfile(BaseModel):
    """Profile fields gathered during onboarding."""

    model_config = ConfigDict(extra="forbid")

    name: str = "New User"
    speaking_languages: List[LanguageSkill] = Field(default_factory=list)
    learning_languages: List[LanguageSkill] = Field(default_factory=list)
    timezone: Optional[str] = None
    personality: str = "A friendly language buddy talking about everything"
    mistake_tolerance: str = "normal"


class Digest(BaseModel):
    """Summary of a past conversation."""

    model_config = ConfigDict(extra="forbid")

    topic: str
    summary: str
    timestamp: datetime


class StreakData(BaseModel):
    """Consecutive-day practice streak."""

    model_config = ConfigDict(extra="forbid")

    current_streak: int = 0
    longest_streak: int = 0
    last_increment: Optional[date] = None

    def advanced(self, today: date) -> "StreakData":
        """Return the streak after practising on the civil date ``today``."""
        if self.last_increment == today:
            return self.model_copy()
        if self.last_increment is not None and self.last_increment == today - timedelta(days=1):
            current = self.current_streak + 1
        else:
            current = 1
        return StreakData(
            current_streak=current,
            longest_streak=max(self.longest_streak, current),
            last_increment=today,
        )


class SubscriberMetadata(BaseModel):
    """Trial, usage and scheduling metadata."""

    model_config = ConfigDict(extra="forbid")

    signup_timestamp: datetime
    is_premium: bool = False
    conversations_started_today: int = 0
    last_conversation_date: Optional[date] = None
    digests: List[Digest] = Field(default_factory=list)
    streak_data: StreakData = Field(default_factory=StreakData)
    last_proactive_sent_date: Optional[date] = None
    last_nightly_digest_run: Optional[date] = None


class Subscriber(BaseModel):
    """A fully onboarded language learner."""

    model_config = ConfigDict(extra="forbid")

    phone: str
    profile: SubscriberProfile = Field(default_factory=SubscriberProfile)
    metadata: SubscriberMetadata

    @property
    def last_digest_topic(self) -> Optional[str]:
        """Topic of the most recent digest, if any."""
        if not self.metadata.digests:
            return None
        latest = max(self.metadata.digests, key=lambda d: d.timestamp)
        return latest.topic

    @property
    def target_language(self) -> Optional[str]:
        """Name of the first learning language."""
        if not self.profile.learning_languages:
            return None
        return self.profile.learning_languages[0].name

"""
Onboarding-related data models.
"""

from dataclasses import dataclass
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from ..enums import OnboardingStep
from ..exceptions import ConsentRequiredError, StepOrderError


PERSONAL_FIELDS = ("name", "native_languages", "timezone")


class OnboardingTempData(BaseModel):
    """Fields collected while onboarding is in progress."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    native_languages: Optional[List[str]] = None
    timezone: Optional[str] = None
    target_language: Optional[str] = None
    assessment_started: Optional[bool] = None
    messages_in_assessment: Optional[int] = None


class OnboardingState(BaseModel):
    """Onboarding progress for a phone that is not yet a subscriber."""

    model_config = ConfigDict(extra="forbid")

    phone: str
    current_step: OnboardingStep = OnboardingStep.GDPR_CONSENT
    gdpr_consented: bool = False
    temp_data: OnboardingTempData = Field(default_factory=OnboardingTempData)
    version: int = 0

    def give_consent(self) -> None:
        """Record affirmative GDPR consent."""
        self.gdpr_consented = True

    def record(self, **fields) -> List[str]:
        """Merge non-empty fields into temp_data and return the names that changed.

        Raises ConsentRequiredError if a personal field is given before consent.
        """
        present = {k: v for k, v in fields.items() if v not in (None, "", [])}
        personal = [k for k in present if k in PERSONAL_FIELDS]
        if personal and not self.gdpr_consented:
            raise ConsentRequiredError(
                f"Cannot store {', '.join(personal)} before GDPR consent"
            )

        changed = []
        for key, value in present.items():
            if getattr(self.temp_data, key) != value:
                setattr(self.temp_data, key, value)
                changed.append(key)
        return changed

    def advance_to(self, step: OnboardingStep) -> None:
        """Move to ``step``; moving backwards is rejected."""
        if step.index < self.current_step.index:
            raise StepOrderError(
                f"Cannot move from {self.current_step.value} back to {step.value}"
            )
        self.current_step = step

    @property
    def has_profile(self) -> bool:
        """True once a name and at least one native language are known."""
        return bool(self.temp_data.name) and bool(self.temp_data.native_languages)


class OnboardingExtraction(BaseModel):
    """Structured answer the agent gives for one onboarding turn."""

    model_config = ConfigDict(extra="ignore")

    reply: Optional[str] = None
    consent: Optional[bool] = None
    name: Optional[str] = None
    native_languages: List[str] = Field(default_factory=list)
    timezone: Optional[str] = None
    target_language: Optional[str] = None
    assessment_complete: bool = False
    level: Optional[str] = None

    @field_validator("native_languages", "assessment_complete", mode="before")
    @classmethod
    def _null_to_default(cls, value, info):
        if value is None:
            return [] if info.field_name == "native_languages" else False
        if info.field_name == "native_languages" and isinstance(value, str):
            return [part.strip() for part in value.split(",")]
        return value


@dataclass
class OnboardingResult:
    """Result of advancing onboarding by one message."""
    reply: str
    state: OnboardingState
    completed: bool = False

"""
Onboarding state machine.
"""

import re
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import ValidationError

from ...agents.buddy.prompts import ONBOARDING_FALLBACK_REPLIES, onboarding_system_prompt
from ...config import Settings
from ...core.enums import OnboardingStep
from ...core.exceptions import ConversationAgentError, OnboardingError, OnboardingIncompleteError
from ...core.models import (
    LanguageSkill,
    OnboardingExtraction,
    OnboardingResult,
    OnboardingState,
    SubscriberProfile,
)
from ...utils.logging import get_logger
from ...utils.timezone import ensure_valid_timezone, utc_now
from ..conversation import ConversationService
from ..storage import OnboardingStore
from ..subscriber import SubscriberService

logger = get_logger("buddy.onboarding")

ONBOARDING_COMPLETE_MESSAGE = (
    "🎉 Great! Your Language Buddy profile has been successfully created."
)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_MAX_SAVE_ATTEMPTS = 3


def _normalize_languages(values: List[str]) -> List[str]:
    seen = []
    for value in values:
        name = (value or "").strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


class OnboardingService:
    """Turns free-text turns into a subscriber profile, one step at a time.

    The agent classifies each message and drafts the reply. Transitions
    are decided here and only ever move forward. A turn the agent cannot
    classify leaves the state as it was.
    """

    def __init__(
        self,
        store: OnboardingStore,
        subscribers: SubscriberService,
        conversations: ConversationService,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.subscribers = subscribers
        self.conversations = conversations
        self.settings = settings
        self.clock = clock

    @property
    def min_assessment_messages(self) -> int:
        return self.settings.onboarding_min_assessment_messages

    async def get_state(self, phone: str) -> Optional[OnboardingState]:
        return await self.store.get_state(phone, self.clock())

    async def is_onboarding(self, phone: str) -> bool:
        return await self.get_state(phone) is not None

    async def discard(self, phone: str) -> None:
        """Drop any onboarding in progress for a phone that became a subscriber."""
        await self.store.delete_state(phone)
        await self.conversations.clear_conversation(phone)
        logger.info(f"onboarding: discarded for {phone}")

    async def _extract(self, state: OnboardingState, text: str) -> Optional[OnboardingExtraction]:
        """Ask the agent to classify ``text`` for the current step."""
        system_prompt = onboarding_system_prompt(state, self.min_assessment_messages)
        history = await self.conversations.get_history(state.phone)
        history.append({"role": "user", "content": text})
        try:
            raw = await self.conversations.invoke_agent(history, system_prompt)
        except ConversationAgentError as e:
            logger.error(f"onboarding: agent failed for {state.phone}: {e}")
            return None

        match = _JSON_OBJECT_RE.search(raw)
        if not match:
            logger.warning(f"onboarding: no JSON in agent answer for {state.phone}")
            return None
        try:
            return OnboardingExtraction.model_validate_json(match.group(0))
        except ValidationError as e:
            logger.warning(f"onboarding: invalid extraction for {state.phone}: {e}")
            return None

    def _apply(self, state: OnboardingState, extraction: OnboardingExtraction) -> None:
        """Apply one extraction to ``state`` according to its current step."""
        step = state.current_step

        if step is OnboardingStep.GDPR_CONSENT:
            # Nothing else is stored until consent is given
            if extraction.consent is True:
                state.give_consent()
                state.advance_to(OnboardingStep.PROFILE_GATHERING)

        elif step is OnboardingStep.PROFILE_GATHERING:
            state.record(
                name=(extraction.name or "").strip() or None,
                native_languages=_normalize_languages(extraction.native_languages) or None,
                timezone=ensure_valid_timezone(extraction.timezone) if extraction.timezone else None,
            )
            if state.has_profile:
                state.advance_to(OnboardingStep.TARGET_LANGUAGE)

        elif step is OnboardingStep.TARGET_LANGUAGE:
            target = _normalize_languages([extraction.target_language or ""])
            if target:
                state.record(target_language=target[0])
                state.advance_to(OnboardingStep.EXPLAINING_FEATURES)

        elif step is OnboardingStep.EXPLAINING_FEATURES:
            state.advance_to(OnboardingStep.ASSESSMENT_CONVERSATION)
            state.record(assessment_started=True, messages_in_assessment=0)

        elif step is OnboardingStep.ASSESSMENT_CONVERSATION:
            count = state.temp_data.messages_in_assessment or 0
            state.record(assessment_started=True, messages_in_assessment=count + 1)

    def _missing_for_completion(self, state: OnboardingState) -> List[str]:
        data = state.temp_data
        missing = []
        if state.current_step is not OnboardingStep.ASSESSMENT_CONVERSATION:
            missing.append(f"step is {state.current_step.value}")
        if not state.gdpr_consented:
            missing.append("gdpr consent")
        if not data.name:
            missing.append("name")
        if not data.native_languages:
            missing.append("native languages")
        if not data.target_language:
            missing.append("target language")
        if (data.messages_in_assessment or 0) < self.min_assessment_messages:
            missing.append(
                f"{self.min_assessment_messages} assessment messages "
                f"(have {data.messages_in_assessment or 0})"
            )
        return missing

    async def advance(self, phone: str, incoming_text: str) -> OnboardingResult:
        """Process one inbound message and return the reply and resulting state."""
        loaded = await self.get_state(phone)
        state = loaded or OnboardingState(phone=phone)
        extraction = await self._extract(state, incoming_text)

        if extraction is None:
            if loaded is None:
                await self.store.save_state(state, self.clock())
            return OnboardingResult(
                reply=ONBOARDING_FALLBACK_REPLIES[state.current_step], state=state
            )

        for _ in range(_MAX_SAVE_ATTEMPTS):
            step_before = state.current_step
            candidate = state.model_copy(deep=True)
            try:
                self._apply(candidate, extraction)
            except OnboardingError as e:
                logger.warning(f"onboarding: rejected update for {phone}: {e}")
                candidate = state.model_copy(deep=True)

            if await self.store.save_state(candidate, self.clock()):
                state = candidate
                break
            # Another delivery for this phone saved first; re-apply on top of it
            reloaded = await self.get_state(phone)
            if reloaded is None or await self.subscribers.get_subscriber(phone) is not None:
                logger.info(f"onboarding: {phone} finished or expired meanwhile, turn dropped")
                return OnboardingResult(
                    reply=ONBOARDING_FALLBACK_REPLIES[state.current_step], state=state
                )
            state = reloaded
        else:
            logger.warning(f"onboarding: could not save state for {phone}, keeping previous")
            return OnboardingResult(
                reply=ONBOARDING_FALLBACK_REPLIES[state.current_step], state=state
            )

        if state.current_step is not step_before:
            logger.info(
                f"onboarding: {phone} {step_before.value} -> {state.current_step.value}"
            )

        if (
            state.current_step is OnboardingStep.ASSESSMENT_CONVERSATION
            and extraction.assessment_complete
            and not self._missing_for_completion(state)
        ):
            return await self.complete(phone, level=extraction.level, state=state)

        reply = extraction.reply or ONBOARDING_FALLBACK_REPLIES[state.current_step]
        await self.conversations.append_exchange(phone, incoming_text, reply)
        return OnboardingResult(reply=reply, state=state)

    async def complete(
        self,
        phone: str,
        level: Optional[str] = None,
        state: Optional[OnboardingState] = None,
    ) -> OnboardingResult:
        """Create the subscriber from the onboarding data and drop the onboarding state.

        Raises OnboardingIncompleteError, without touching any state, when
        required data or the minimum assessment exchanges are missing.
        """
        state = state or await self.get_state(phone)
        if state is None:
            raise OnboardingIncompleteError(f"No onboarding in progress for {phone}")

        missing = self._missing_for_completion(state)
        if missing:
            raise OnboardingIncompleteError(
                f"Cannot complete onboarding for {phone}: missing {', '.join(missing)}"
            )

        data = state.temp_data
        profile = SubscriberProfile(
            name=data.name,
            speaking_languages=[LanguageSkill(name=lang) for lang in data.native_languages],
            learning_languages=[
                LanguageSkill(name=data.target_language, level=level, assessed=level is not None)
            ],
            timezone=data.timezone or self.settings.fallback_timezone,
        )
        _, created = await self.subscribers.create_subscriber(phone, profile)
        if not created:
            logger.warning(f"onboarding: subscriber {phone} already existed")

        completed = state.model_copy(deep=True)
        completed.advance_to(OnboardingStep.COMPLETED)
        await self.store.delete_state(phone)
        await self.conversations.clear_conversation(phone)
        logger.info(f"onboarding: completed for {phone} (level={level})")
        return OnboardingResult(reply=ONBOARDING_COMPLETE_MESSAGE, state=completed, completed=True)

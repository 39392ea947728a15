"""
System prompts for the language buddy agent.
"""

from typing import List, Optional

from ...core.enums import OnboardingStep
from ...core.models import ConversationContext, OnboardingState, Subscriber

PRIVACY_URL = "https://prod.languagebuddy.maixnor.com/static/privacy.html"

# Tone bands, by minutes since the last message
RAPID_EXCHANGE_MINUTES = 5
SHORT_BREAK_MINUTES = 60
LONG_GAP_MINUTES = 360
NEW_DAY_MINUTES = 1440

NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 6

TONE_RAPID = "Continue the conversation as normal, it's a rapid exchange."
TONE_SHORT_BREAK = (
    "Acknowledge the short break naturally (e.g. 'Welcome back!') and pick up "
    "where you left off."
)
TONE_LONG_GAP = (
    "Reference the time gap naturally (e.g. 'How was your afternoon?') before "
    "continuing the topic."
)
TONE_NEW_DAY = "Treat this as a new conversation day. Offer a fresh start."
TONE_WELCOME_BACK = "Offer a warm welcome back. If available, reference the previous topic."

NIGHT_CLAUSE = "It is currently late at night/early morning for the user ({time})."
NIGHT_SUGGESTION = (
    "Suggest ending the conversation naturally soon so they can rest, "
    "and keep your messages short."
)

SYSTEM_INITIATION_MESSAGE = (
    "The Conversation is not being initialized by the User, but by an automated "
    "System. Start off with a conversation opener in your next message, then "
    "continue the conversation."
)


def time_gap_instruction(minutes: float) -> str:
    """Pick the tone instruction for the time since the last message.

    Boundary values belong to the higher band: exactly 60 minutes is a
    long gap, not a short break.
    """
    if minutes < RAPID_EXCHANGE_MINUTES:
        return TONE_RAPID
    if minutes < SHORT_BREAK_MINUTES:
        return TONE_SHORT_BREAK
    if minutes < LONG_GAP_MINUTES:
        return TONE_LONG_GAP
    if minutes < NEW_DAY_MINUTES:
        return TONE_NEW_DAY
    return TONE_WELCOME_BACK


def is_night_time(hour: int) -> bool:
    """True for local hours in [22:00, 06:00)."""
    return hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR


def _language_names(languages) -> str:
    names = [lang.name for lang in languages]
    return ", ".join(names) if names else "unknown"


def generate_system_prompt(subscriber: Subscriber, context: ConversationContext) -> str:
    """Build the regular conversation prompt with time-aware tone guidance."""
    profile = subscriber.profile
    target = profile.learning_languages[0] if profile.learning_languages else None
    struggles: List[str] = []
    for lang in profile.learning_languages:
        struggles.extend(lang.struggles)

    lines = [
        "You are Maya, an AI language tutor.",
        f"You are {profile.name}'s personal language learning buddy. You are warm, "
        "encouraging and adapt to their learning needs. Keep your messages short.",
        "",
        "USER PROFILE:",
        f"User's name: {profile.name}",
        f"User's native language(s): {_language_names(profile.speaking_languages)}",
        f"User's target language: {target.name if target else 'not specified'}",
    ]
    if target and target.level:
        lines.append(f"User's current level: {target.level}")
    lines.append(f"User's areas of struggle: {', '.join(struggles) if struggles else 'none'}")
    lines.append(f"Personality preference: {profile.personality}")
    lines.append(f"Mistake tolerance: {profile.mistake_tolerance}")

    lines += ["", "CONVERSATION CONTEXT:"]
    lines.append(
        "Current Date and Time (User's Local Time): "
        f"{context.local_time.strftime('%A, %B %d, %Y %I:%M %p')}"
    )
    if context.conversation_duration_minutes is not None:
        lines.append(f"Conversation started {context.conversation_duration_minutes} minutes ago.")
    if context.time_since_last_message_minutes is not None:
        minutes = context.time_since_last_message_minutes
        lines.append(f"Time since last message: {minutes} minutes.")
        lines.append(time_gap_instruction(minutes))
        if minutes >= NEW_DAY_MINUTES and context.last_digest_topic:
            lines.append(
                f'Previous topic was: "{context.last_digest_topic}". '
                "You can ask if they want to continue or start something new."
            )

    if is_night_time(context.local_time.hour):
        lines.append(NIGHT_CLAUSE.format(time=context.local_time.strftime("%I:%M %p")))
        lines.append(NIGHT_SUGGESTION)

    lines += [
        "",
        "CONVERSATION GUIDELINES:",
        "- Speak primarily in their target language and adapt to their level.",
        "- When they write \"(word)\", briefly translate it, then continue the conversation.",
        "- Explain words in the target language, switch to their native language if they struggle.",
        "- Focus on practical, engaging conversations that prepare them for real-world use.",
    ]
    return "\n".join(lines)


def daily_system_prompt(subscriber: Subscriber, context: ConversationContext) -> str:
    """Prompt for a proactive, bot-initiated conversation."""
    topic_hint = ""
    if context.last_digest_topic:
        topic_hint = (
            f' Yesterday you talked about "{context.last_digest_topic}"; '
            "pick something new unless they want to continue."
        )
    return (
        generate_system_prompt(subscriber, context)
        + "\n\nDAILY CONVERSATION:\n"
        "Open today's practice with a short, friendly message and one engaging "
        "question about everyday life, news or culture." + topic_hint
    )


_STEP_INSTRUCTIONS = {
    OnboardingStep.GDPR_CONSENT: (
        "Greet the user warmly and introduce yourself as Maya, their language learning buddy. "
        "Explain that to personalise the practice you need their name, native languages, "
        f"timezone and the language they want to learn. The privacy statement is at {PRIVACY_URL}. "
        "Ask for explicit consent to process this data under GDPR. "
        "Set \"consent\" to true only for a clear affirmative answer. "
        "Do NOT extract any personal data at this step."
    ),
    OnboardingStep.PROFILE_GATHERING: (
        "Ask for the user's name, the languages they speak natively and their timezone. "
        "Extract \"name\", \"native_languages\" (lowercase language names) and \"timezone\" "
        "when given. Once you know their native language, reply in it."
    ),
    OnboardingStep.TARGET_LANGUAGE: (
        "Ask which language the user wants to learn. Extract \"target_language\" "
        "as a lowercase language name."
    ),
    OnboardingStep.EXPLAINING_FEATURES: (
        "Explain what you can do: daily conversations about any topic and help with specific "
        "skills. Mention that they can write \"(word)\" when they do not know a word. "
        "Explain that a short conversation in their target language will assess their level."
    ),
    OnboardingStep.ASSESSMENT_CONVERSATION: (
        "Hold a natural conversation in the target language, gradually increasing complexity. "
        "Watch grammar, vocabulary, comprehension, spelling and coherence. After at least "
        "{minimum} exchanges, when you are confident about the CEFR level (A1-C2), set "
        "\"assessment_complete\" to true and \"level\" to the level."
    ),
}

_RESPONSE_FORMAT = (
    "Answer ONLY with a JSON object with the keys: "
    "\"reply\" (your message to the user), \"consent\", \"name\", \"native_languages\", "
    "\"timezone\", \"target_language\", \"assessment_complete\", \"level\". "
    "Use null or an empty list for anything the user did not say."
)


def onboarding_system_prompt(state: OnboardingState, min_assessment_messages: int) -> str:
    """Prompt for one onboarding turn at the state's current step."""
    known = state.temp_data.model_dump(exclude_none=True)
    step = state.current_step
    lines = [
        "You are Maya, a friendly and supportive language learning buddy. "
        "You are currently helping a new user get set up.",
        "IMPORTANT: You are in ONBOARDING MODE.",
        f"CURRENT STEP: {step.value}",
        f"KNOWN DATA: {known}",
        _STEP_INSTRUCTIONS.get(step, "").format(minimum=min_assessment_messages),
    ]
    following = step.next()
    if following in _STEP_INSTRUCTIONS and following is not step:
        lines.append(
            "If the user already gave what this step needs, write your reply for the "
            f"next step instead: {_STEP_INSTRUCTIONS[following].format(minimum=min_assessment_messages)}"
        )
    lines.append(_RESPONSE_FORMAT)
    return "\n".join(lines)


ONBOARDING_FALLBACK_REPLIES = {
    OnboardingStep.GDPR_CONSENT: (
        "Hi! I'm Maya, your language buddy. To personalise our practice I need your name, "
        "native languages, timezone and the language you want to learn. Our privacy "
        f"statement is here: {PRIVACY_URL}. Do you agree to this? Reply ACCEPT to continue."
    ),
    OnboardingStep.PROFILE_GATHERING: (
        "Thanks! What's your name, which languages do you speak natively, and what's your timezone?"
    ),
    OnboardingStep.TARGET_LANGUAGE: "Great! Which language would you like to learn?",
    OnboardingStep.EXPLAINING_FEATURES: (
        "We'll chat every day about anything you like. Write \"(word)\" whenever you don't know "
        "a word and I'll explain it. First, a short conversation so I can find your level."
    ),
    OnboardingStep.ASSESSMENT_CONVERSATION: "Tell me a bit more!",
}


def digest_system_prompt() -> str:
    """Prompt for summarising a finished conversation."""
    return (
        "You analyse a language practice conversation between a tutor and a student. "
        "Answer ONLY with a JSON object with the keys \"topic\" (a few words naming what "
        "was talked about) and \"summary\" (two or three sentences on what the student "
        "practised and where they struggled)."
    )


def feature_overview(subscriber: Optional[Subscriber] = None) -> str:
    """Short help text listing the user commands."""
    name = subscriber.profile.name if subscriber else "there"
    return (
        f"Hi {name}! Here is what you can send me:\n"
        "ping - check that I'm awake\n"
        "!clear - start a fresh conversation\n"
        "!digest - summarise our conversation now\n"
        "!me or !profile - show your profile\n"
        "!languages - show your languages\n"
        "!schedule - when I'll write to you next\n"
        "!help - this message"
    )

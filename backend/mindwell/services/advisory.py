"""
Advisory service: personalized interventions, CBT prompts, mood-pattern insight and
community moderation, delegated to a generative text API (Gemini or OpenAI).

Every operation returns JSON parsed into a schema; on any failure (network, timeout,
empty or malformed output) it logs and returns a fixed fallback, so callers never
see an exception from this module.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Protocol

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from prometheus_client import Counter

from mindwell.config import settings
from mindwell.models.intervention import InterventionType
from mindwell.schemas.advisory import CBTPrompt, ModerationResult, MoodInsight, MoodSample, PersonalizedIntervention
from mindwell.services.llm_common import run_llm_call, strip_code_fence

logger = logging.getLogger(__name__)

ADVISORY_FALLBACKS = Counter(
    "mindwell_advisory_fallback_total",
    "Advisory calls answered with the static fallback",
    ["operation"],
)

FALLBACK_INTERVENTION = PersonalizedIntervention(
    type="breathing",
    title="Gentle Breathing",
    content=(
        "Let's take a moment to breathe together. Find a comfortable position "
        "and follow along with this simple breathing exercise."
    ),
    duration=3,
    instructions=[
        "Breathe in slowly for 4 counts",
        "Hold your breath for 4 counts",
        "Exhale slowly for 6 counts",
        "Repeat this cycle 5 times",
    ],
)

FALLBACK_CBT_PROMPT = CBTPrompt(
    question="What's one thought that's been weighing on you today?",
    follow_up="Is this thought helpful or unhelpful right now?",
    reframing_technique="What would you tell a good friend who had this same thought?",
)

FALLBACK_INSIGHT = MoodInsight(
    pattern="Building your mood history to identify patterns",
    recommendation="Keep tracking your daily moods to gain insights over time",
    confidence=0.5,
)

MODERATION_UNAVAILABLE_REASON = "Moderation is temporarily unavailable; please try again later."
DEFAULT_UNSAFE_REASON = "Content may violate community guidelines"
DEFAULT_CONFIDENCE = 0.7

INTERVENTION_SYSTEM = (
    "You are a specialized mental health assistant that creates personalized, evidence-based "
    "micro-interventions. Always prioritize safety and provide gentle, supportive guidance."
)
CBT_SYSTEM = "You are a CBT-trained mental health assistant that creates gentle, evidence-based thought examination exercises."
INSIGHT_SYSTEM = (
    "You are a mental health analytics assistant that identifies patterns in mood data "
    "and provides evidence-based recommendations."
)
MODERATION_SYSTEM = (
    "You are a content moderator for a mental health support community. Flag content that contains "
    "self-harm, suicide ideation, harassment, or inappropriate content. Allow supportive, helpful content."
)


class AdvisoryUnavailable(RuntimeError):
    """Raised by a backend that cannot produce a completion."""


class TextBackend(Protocol):
    async def complete_json(self, prompt: str, system_instruction: str, temperature: float) -> str: ...


class AdvisoryProvider(Protocol):
    """Capability used by the route layer; production uses AdvisoryService, tests inject a stub."""

    async def generate_intervention(
        self, mood: str, intensity: int, recent_moods: list[str], user_name: str
    ) -> PersonalizedIntervention: ...

    async def generate_cbt_prompt(self, mood: str, intensity: int, user_name: str) -> CBTPrompt: ...

    async def analyze_mood_pattern(self, history: list[MoodSample]) -> MoodInsight: ...

    async def moderate_content(self, text: str) -> ModerationResult: ...


SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}


class GeminiBackend:
    def __init__(self, api_key: str, model_name: str):
        if not api_key:
            raise AdvisoryUnavailable("GOOGLE_GEMINI_API_KEY is not set")
        genai.configure(api_key=api_key)
        self.model_name = model_name

    async def complete_json(self, prompt: str, system_instruction: str, temperature: float) -> str:
        model = genai.GenerativeModel(
            self.model_name,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": 1024,
                "response_mime_type": "application/json",
            },
            safety_settings=SAFETY_SETTINGS,
            system_instruction=system_instruction,
        )
        response = await run_llm_call(lambda: model.generate_content(prompt))
        if not response or not response.text:
            raise ValueError("Empty response from Gemini")
        return response.text


class OpenAIBackend:
    def __init__(self, api_key: str, model_name: str):
        if not api_key:
            raise AdvisoryUnavailable("OPENAI_API_KEY is not set")
        from openai import OpenAI

        self.client = OpenAI(api_key=api_key)
        self.model_name = model_name

    async def complete_json(self, prompt: str, system_instruction: str, temperature: float) -> str:
        def _call():
            return self.client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": system_instruction},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=temperature,
            )

        response = await run_llm_call(_call)
        text = response.choices[0].message.content if response and response.choices else None
        if not text:
            raise ValueError("Empty response from OpenAI")
        return text


class StaticBackend:
    """No network access: every operation answers with its fallback."""

    def __init__(self, reason: str = "advisory provider disabled"):
        self.reason = reason

    async def complete_json(self, prompt: str, system_instruction: str, temperature: float) -> str:
        raise AdvisoryUnavailable(self.reason)


def _load_object(text: str) -> dict[str, Any]:
    data = json.loads(strip_code_fence(text))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _text(data: dict[str, Any], *keys: str, default: str) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return default


def _normalize_type(raw: Any) -> str:
    """Map the model's intervention type to a known InterventionType; unknown becomes custom."""
    if not isinstance(raw, str) or not raw.strip():
        return InterventionType.breathing.value
    value = raw.strip().lower()
    try:
        return InterventionType(value).value
    except ValueError:
        return InterventionType.custom.value


def _clamp_confidence(raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(raw)))


def parse_intervention(text: str) -> PersonalizedIntervention:
    data = _load_object(text)
    duration = data.get("duration")
    if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration <= 0:
        duration = FALLBACK_INTERVENTION.duration
    steps = data.get("instructions")
    steps = [s.strip() for s in steps if isinstance(s, str) and s.strip()] if isinstance(steps, list) else []
    if not steps:
        steps = ["Breathe slowly", "Focus on the present", "Be kind to yourself"]
    return PersonalizedIntervention(
        type=_normalize_type(data.get("type")),
        title=_text(data, "title", default="Take a Moment"),
        content=_text(data, "content", default="Take a few deep breaths and be gentle with yourself."),
        duration=int(round(duration)),
        instructions=steps,
    )


def parse_cbt_prompt(text: str) -> CBTPrompt:
    data = _load_object(text)
    return CBTPrompt(
        question=_text(data, "question", default="What's one thought that's been on your mind today?"),
        follow_up=_text(
            data, "follow_up", "followUp", default="What evidence do you have for and against this thought?"
        ),
        reframing_technique=_text(
            data,
            "reframing_technique",
            "reframingTechnique",
            default="Try viewing this situation from a friend's perspective - what would you tell them?",
        ),
    )


def parse_insight(text: str) -> MoodInsight:
    data = _load_object(text)
    return MoodInsight(
        pattern=_text(data, "pattern", default="Your mood shows natural variation throughout the week"),
        recommendation=_text(
            data, "recommendation", default="Continue regular check-ins to better understand your patterns"
        ),
        confidence=_clamp_confidence(data.get("confidence")),
    )


def parse_moderation(text: str) -> ModerationResult:
    data = _load_object(text)
    safe = data.get("safe")
    if not isinstance(safe, bool):
        raise ValueError(f"Moderation verdict must be a boolean, got {safe!r}")
    reason = data.get("reason") if isinstance(data.get("reason"), str) else None
    if not safe and not reason:
        reason = DEFAULT_UNSAFE_REASON
    return ModerationResult(safe=safe, reason=None if safe else reason)


def summarize_history(history: list[MoodSample]) -> list[dict[str, Any]]:
    """Reduce history to what pattern analysis needs: mood, intensity, weekday, hour."""
    return [
        {
            "mood": s.mood,
            "intensity": s.intensity,
            "day_of_week": s.date.strftime("%A"),
            "hour": s.date.hour,
        }
        for s in history
    ]


class AdvisoryService:
    def __init__(self, backend: TextBackend):
        self.backend = backend

    async def generate_intervention(
        self, mood: str, intensity: int, recent_moods: list[str], user_name: str
    ) -> PersonalizedIntervention:
        prompt = (
            f"Create a personalized 2-5 minute micro-intervention for {user_name}, who is currently feeling "
            f"{mood} at intensity {intensity}/5.\n"
            f"Recent moods: {', '.join(recent_moods) or 'none yet'}\n"
            "It must be evidence-based (CBT, mindfulness, breathing or grounding), practical and non-judgmental.\n"
            'Respond with JSON: {"type": "breathing|cbt|meditation|grounding", "title": "...", '
            '"content": "...", "duration": minutes, "instructions": ["step 1", "step 2", "step 3"]}'
        )
        try:
            text = await self.backend.complete_json(prompt, INTERVENTION_SYSTEM, 0.7)
            return parse_intervention(text)
        except Exception as e:
            logger.warning("Intervention generation failed, using fallback: %s", e)
            ADVISORY_FALLBACKS.labels(operation="intervention").inc()
            return FALLBACK_INTERVENTION.model_copy(deep=True)

    async def generate_cbt_prompt(self, mood: str, intensity: int, user_name: str) -> CBTPrompt:
        prompt = (
            f"Create a gentle CBT-inspired thought examination prompt for {user_name}, who is feeling "
            f"{mood} at intensity {intensity}/5. Help identify the thought, examine it and reframe it.\n"
            'Respond with JSON: {"question": "...", "follow_up": "...", "reframing_technique": "..."}'
        )
        try:
            text = await self.backend.complete_json(prompt, CBT_SYSTEM, 0.7)
            return parse_cbt_prompt(text)
        except Exception as e:
            logger.warning("CBT prompt generation failed, using fallback: %s", e)
            ADVISORY_FALLBACKS.labels(operation="cbt_prompt").inc()
            return FALLBACK_CBT_PROMPT.model_copy(deep=True)

    async def analyze_mood_pattern(self, history: list[MoodSample]) -> MoodInsight:
        prompt = (
            "Analyze this mood history and describe the key pattern with one actionable recommendation:\n"
            f"{json.dumps(summarize_history(history))}\n"
            'Respond with JSON: {"pattern": "...", "recommendation": "...", "confidence": number between 0 and 1}'
        )
        try:
            text = await self.backend.complete_json(prompt, INSIGHT_SYSTEM, 0.3)
            return parse_insight(text)
        except Exception as e:
            logger.warning("Mood pattern analysis failed, using fallback: %s", e)
            ADVISORY_FALLBACKS.labels(operation="insight").inc()
            return FALLBACK_INSIGHT.model_copy(deep=True)

    async def moderate_content(self, text: str) -> ModerationResult:
        prompt = (
            "Moderate this content for a mental health support community:\n"
            f"{json.dumps(text)}\n"
            "Flag self-harm or suicide ideation, harassment or bullying, and otherwise harmful content.\n"
            'Respond with JSON: {"safe": true or false, "reason": "explanation if not safe"}'
        )
        try:
            raw = await self.backend.complete_json(prompt, MODERATION_SYSTEM, 0.1)
            return parse_moderation(raw)
        except Exception as e:
            logger.warning("Moderation failed (fail_closed=%s): %s", settings.moderation_fail_closed, e)
            ADVISORY_FALLBACKS.labels(operation="moderation").inc()
            if settings.moderation_fail_closed:
                return ModerationResult(safe=False, reason=MODERATION_UNAVAILABLE_REASON)
            return ModerationResult(safe=True)


def build_backend(provider: str) -> TextBackend:
    """Backend for the configured provider; a missing key degrades to StaticBackend."""
    provider = (provider or "").strip().lower()
    try:
        if provider == "gemini":
            return GeminiBackend(settings.google_gemini_api_key, settings.gemini_model)
        if provider == "openai":
            return OpenAIBackend(settings.openai_api_key, settings.openai_model)
    except AdvisoryUnavailable as e:
        logger.warning("Advisory provider %r unavailable, answering with fallbacks: %s", provider, e)
        return StaticBackend(str(e))
    if provider != "static":
        logger.warning("Unknown advisory provider %r, answering with fallbacks", provider)
    return StaticBackend()


@lru_cache
def get_advisory() -> AdvisoryProvider:
    """FastAPI dependency: the process-wide advisory service."""
    return AdvisoryService(build_backend(settings.advisory_provider))

"""Deterministic intent classification for inbound chat messages.

Each candidate intent is scored against weighted regex indicators:

- primary indicators (+3): strong, intent-specific phrasing ("draw", "video of")
- secondary indicators (+1): supporting vocabulary ("portrait", "fps")
- negative indicators (-2): vocabulary that points at a different intent

The best-scoring intent wins unless nothing scored, or a second intent also
carries primary evidence, in which case the message is treated as unclear
and the caller asks for clarification instead of guessing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field

Intent = Literal["generate-image", "generate-audio", "generate-video", "chat", "unclear"]
GenerationIntent = Literal["generate-image", "generate-audio", "generate-video"]

PRIMARY_WEIGHT = 3
SECONDARY_WEIGHT = 1
NEGATIVE_WEIGHT = -2

HIGH_CONFIDENCE = 0.95
MEDIUM_CONFIDENCE = 0.85
AMBIGUOUS_CONFIDENCE = 0.5

CLARIFYING_QUESTION = (
    "I'm not sure what you'd like me to do. Would you like me to generate an image, "
    "create audio, or make a video? For example, try 'generate an image of a sunset' "
    "or 'say hello world'."
)
AMBIGUOUS_QUESTION = (
    "Your request could mean more than one kind of media ({options}). "
    "Please ask for one at a time, for example 'generate an image of ...'."
)


class ClassificationResult(BaseModel):
    intent: Intent
    confidence: float = Field(ge=0.0, le=1.0)
    raw_message: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    clarifying_question: str | None = None


@dataclass(frozen=True)
class Indicators:
    primary: tuple[re.Pattern[str], ...]
    secondary: tuple[re.Pattern[str], ...] = ()
    negative: tuple[re.Pattern[str], ...] = ()


@dataclass
class IntentScore:
    intent: Intent
    score: int = 0
    primary_hits: int = 0
    signals: list[str] = field(default_factory=list)


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern) for pattern in patterns)


IMAGE_INDICATORS = Indicators(
    primary=_compile(
        r"\b(generate|create|make|produce|render)\s+(an?\s+)?(image|picture|photo|photograph)\b",
        r"\b(image|picture|photo|photograph)\s+of\b",
        r"\b(draw|sketch|paint|illustrate|doodle)\b",
        r"\b(artwork|art\s+of|digital\s+art|illustration\s+of|painting\s+of)\b",
        r"\bwhat\s+does\s+.+\s+look\s+like\b",
        r"\bshow\s+me\s+what\s+.+\s+looks?\s+like\b",
        r"\bvisualize\b",
        r"\brender\s+(an?\s+)?(image|picture|scene)\b",
    ),
    secondary=_compile(
        r"\bportrait\b",
        r"\blandscape\b",
        r"\bstyle\s+of\b",
        r"\bin\s+(the\s+)?style\b",
        r"\bdepict(ing)?\b",
        r"\billustrat(ed|ion)\b",
    ),
    negative=_compile(
        r"\bvideo\b",
        r"\banimated?\b",
        r"\banimation\b",
        r"\bmotion\b",
        r"\bsay\b",
        r"\bspeak\b",
        r"\bread\s+(this|it|aloud|out)",
        r"\b(audio|voice|speech)\b",
        r"\btts\b",
        r"\btext\s+to\s+speech\b",
    ),
)

AUDIO_INDICATORS = Indicators(
    primary=_compile(
        r"\b(say|speak|pronounce|utter)\s+[\"']?\w",
        r"\bread\s+(this|it|aloud|out\s+loud|the\s+(?!(?:file|files|directory|folder|code|logs?)\b)\w+)\b",
        r"\btext\s+to\s+speech\b",
        r"\btts\s+\w",
        r"\b(generate|create|make|produce)\s+(an?\s+)?(audio|voice|speech)\b",
        r"\bnarrate\b",
        r"\bvoice\s+synthesis\b",
        r"\bspeech\s+synthesis\b",
        r"\b(want|would\s+like)\s+to\s+hear\b",
    ),
    secondary=_compile(
        r"\baudio\b",
        r"\bvoice\b",
        r"\bspeech\b",
        r"\bsound\b",
        r"\bout\s+loud\b",
        r"\baloud\b",
        r"\blisten\b",
    ),
    negative=_compile(
        r"\bimage\b",
        r"\bpicture\b",
        r"\bphoto\b",
        r"\bdraw\b",
        r"\bpaint\b",
        r"\bsketch\b",
        r"\bvideo\b",
        r"\banimate\b",
        r"\banimation\b",
    ),
)

VIDEO_INDICATORS = Indicators(
    primary=_compile(
        r"\b(generate|create|make|produce)\s+(a\s+)?video\b",
        r"\bvideo\s+of\b",
        r"\banimate\s+\w",
        r"\banimation\s+of\b",
        r"\banimated\s+(gif|video|clip)\b",
        r"\b(generate|create|make)\s+(a\s+)?gif\b",
        r"\bgif\s+of\b",
        r"\bmake\s+(it|this)\s+move\b",
        r"\bput\s+(it|this)?\s*in\s+motion\b",
        r"\bin\s+motion\b",
        r"\bmotion\s+(graphics|picture|video)\b",
        r"\bfootage\s+of\b",
        r"\b(video\s+)?clip\s+of\b",
    ),
    secondary=_compile(
        r"\bduration\b",
        r"\bfps\b",
        r"\bseconds?\s+(long|video)\b",
        r"\bframes?\b",
        r"\bscene\b",
    ),
    negative=_compile(
        r"\bimage\b",
        r"\bpicture\b",
        r"\bphoto\b",
        r"\bsay\b",
        r"\bspeak\b",
        r"\bread\s+(this|it)",
        r"\b(audio|voice)\b",
    ),
)

CHAT_INDICATORS = Indicators(
    primary=_compile(
        r"\b(read|open|show|list|edit|write|create|delete|search)\s+(the\s+|this\s+|a\s+|my\s+|all\s+)?"
        r"(file|files|directory|directories|folder|folders|repo|repository|project)\b",
        r"\b(run|execute)\s+(the\s+|a\s+|this\s+|my\s+)?(command|script|tests?|build|linter)\b",
        r"\bgit\s+(status|diff|log|commit|branch)\b",
        r"\b(debug|refactor|fix)\s+(the\s+|this\s+|my\s+)?(bug|code|function|error|test)\b",
        r"\b(explain|review)\s+(the\s+|this\s+|my\s+)?(code|function|class|module|error|diff)\b",
        r"\bstatus\s+of\s+(my\s+|the\s+)?(task|generation|job)\b",
    ),
    secondary=_compile(
        r"\?\s*$",
        r"\b(code|python|javascript|typescript|function|stack\s*trace|error|file)\b",
        r"\b(terminal|shell|command\s+line)\b",
    ),
    negative=_compile(
        r"\b(image|picture|photo|video|animation|gif|audio|voice|speech)\b",
        r"\blooks?\s+like\b",
        r"\b(draw|sketch|paint|animate|narrate|say|speak)\b",
    ),
)

INDICATORS: dict[str, Indicators] = {
    "generate-image": IMAGE_INDICATORS,
    "generate-audio": AUDIO_INDICATORS,
    "generate-video": VIDEO_INDICATORS,
    "chat": CHAT_INDICATORS,
}

INTENT_LABELS: dict[str, str] = {
    "generate-image": "an image",
    "generate-audio": "audio",
    "generate-video": "a video",
    "chat": "a chat reply",
}

_PROMPT_END = r"(?=\s+(?:please|now)\b|\s*[.!?]?\s*$)"

IMAGE_PROMPT_PATTERNS = _compile(
    r"(?i)\b(?:image|picture|photo|photograph|art|artwork|illustration|painting|sketch|portrait|landscape)"
    r"\s+of\s+(.+?)(?=\s+(?:in\s+the\s+style|with|showing|please)\b|\s*[.!?]?\s*$)",
    r"(?i)\b(?:draw|sketch|paint|illustrate)\s+(?:me\s+)?(?:an?\s+)?(.+?)" + _PROMPT_END,
    r"(?i)\b(?:generate|create|make|produce|render)\s+(?:an?\s+)?(?:image|picture|photo)\s+"
    r"(?:of|for|showing)\s+(.+?)" + _PROMPT_END,
    r"(?i)\bvisualize\s+(.+?)" + _PROMPT_END,
    r"(?i)\bwhat\s+does\s+(.+?)\s+look\s+like",
    r"(?i)\bshow\s+me\s+what\s+(.+?)\s+looks?\s+like",
    r"(?i)\bshow\s+me\s+(?:an?\s+)?(?:image|picture)\s+(?:of\s+)?(.+?)" + _PROMPT_END,
)

AUDIO_TEXT_PATTERNS = _compile(
    r"(?i)\b(?:say|speak|pronounce|utter)\s+(.+?)" + _PROMPT_END,
    r"(?i)\bread\s+(?:me\s+)?(.+?)(?=\s+(?:please|now|aloud|out\s+loud)\b|\s*[.!?]?\s*$)",
    r"(?i)\b(?:tts|text\s+to\s+speech)\s+(.+)",
    r"(?i)\b(?:generate|create|make)\s+(?:an?\s+)?(?:audio|voice|speech)\s+(?:of|for|saying)\s+(.+?)"
    + _PROMPT_END,
    r"(?i)\bnarrate\s+(.+?)" + _PROMPT_END,
    r"(?i)\b(?:voice|speech)\s+synthesis\s+(?:of\s+)?(.+?)" + _PROMPT_END,
    r"(?i)\b(?:want|would\s+like)\s+to\s+hear\s+(.+?)" + _PROMPT_END,
)

VIDEO_PROMPT_PATTERNS = _compile(
    r"(?i)\bvideo\s+of\s+(.+?)" + _PROMPT_END,
    r"(?i)\banimation\s+of\s+(.+?)" + _PROMPT_END,
    r"(?i)\banimate\s+(.+?)" + _PROMPT_END,
    r"(?i)\bgif\s+of\s+(.+?)" + _PROMPT_END,
    r"(?i)\b(?:generate|create|make|produce)\s+(?:a\s+)?(?:video|animation|gif)\s+"
    r"(?:of|for|showing)\s+(.+?)" + _PROMPT_END,
    r"(?i)\b(?:footage|clip)\s+of\s+(.+?)" + _PROMPT_END,
    r"(?i)\bmake\s+(.+?)\s+move\b",
    r"(?i)\bput\s+(.+?)\s+in\s+motion\b",
)

_QUOTED = re.compile(r"\"([^\"]+)\"|'([^']+)'")
_DURATION = re.compile(r"(\d+)\s*seconds?\b")


@dataclass(frozen=True)
class NormalizedInput:
    original: str
    cleaned: str
    lowercase: str
    quoted: str | None


def normalize(message: str) -> NormalizedInput:
    cleaned = " ".join(message.split())
    match = _QUOTED.search(cleaned)
    quoted = (match.group(1) or match.group(2)) if match else None
    return NormalizedInput(
        original=message, cleaned=cleaned, lowercase=cleaned.lower(), quoted=quoted
    )


def score_intent(text: str, intent: Intent, indicators: Indicators) -> IntentScore:
    result = IntentScore(intent=intent)
    for pattern in indicators.primary:
        if pattern.search(text):
            result.score += PRIMARY_WEIGHT
            result.primary_hits += 1
            result.signals.append(f"primary: {pattern.pattern[:40]}")
    for pattern in indicators.secondary:
        if pattern.search(text):
            result.score += SECONDARY_WEIGHT
            result.signals.append(f"secondary: {pattern.pattern[:40]}")
    for pattern in indicators.negative:
        if pattern.search(text):
            result.score += NEGATIVE_WEIGHT
            result.signals.append(f"negative: {pattern.pattern[:40]}")
    return result


def classify(message: str) -> ClassificationResult:
    """Classify ``message`` into a closed intent set. Never raises."""
    if not isinstance(message, str):
        message = "" if message is None else str(message)
    normalized = normalize(message)
    ranked = _ranked_scores(normalized)
    best = ranked[0]
    runner_up = ranked[1]

    if best.score <= 0:
        return ClassificationResult(
            intent="unclear",
            confidence=0.0,
            raw_message=message,
            clarifying_question=CLARIFYING_QUESTION,
        )

    if runner_up.score == best.score or runner_up.primary_hits > 0:
        options = " or ".join(INTENT_LABELS[item.intent] for item in (best, runner_up))
        return ClassificationResult(
            intent="unclear",
            confidence=AMBIGUOUS_CONFIDENCE,
            raw_message=message,
            clarifying_question=AMBIGUOUS_QUESTION.format(options=options),
        )

    confidence = HIGH_CONFIDENCE if best.score >= PRIMARY_WEIGHT else MEDIUM_CONFIDENCE
    return ClassificationResult(
        intent=best.intent,
        confidence=confidence,
        raw_message=message,
        parameters=extract_parameters(best.intent, normalized),
    )


def extract_parameters(intent: Intent, normalized: NormalizedInput) -> dict[str, Any]:
    if intent == "generate-image":
        return {"prompt": _first_capture(IMAGE_PROMPT_PATTERNS, normalized.cleaned) or normalized.cleaned}
    if intent == "generate-audio":
        text = normalized.quoted or _first_capture(AUDIO_TEXT_PATTERNS, normalized.cleaned)
        return {"text": text or normalized.cleaned}
    if intent == "generate-video":
        parameters: dict[str, Any] = {
            "prompt": _first_capture(VIDEO_PROMPT_PATTERNS, normalized.cleaned) or normalized.cleaned
        }
        duration = _DURATION.search(normalized.lowercase)
        if duration:
            parameters["duration"] = int(duration.group(1))
        return parameters
    if intent == "chat":
        return {"message": normalized.cleaned}
    return {}


def supported_intents() -> list[GenerationIntent]:
    return ["generate-image", "generate-audio", "generate-video"]


def debug_scores(message: str) -> dict[str, dict[str, Any]]:
    normalized = normalize(message)
    return {
        item.intent: {"score": item.score, "signals": item.signals}
        for item in _score_all(normalized)
    }


def _score_all(normalized: NormalizedInput) -> list[IntentScore]:
    return [
        score_intent(normalized.lowercase, intent, indicators)
        for intent, indicators in INDICATORS.items()
    ]


def _ranked_scores(normalized: NormalizedInput) -> list[IntentScore]:
    # Stable sort keeps declaration order among equal scores; ties are rejected anyway.
    return sorted(_score_all(normalized), key=lambda item: item.score, reverse=True)


def _first_capture(patterns: tuple[re.Pattern[str], ...], text: str) -> str:
    for pattern in patterns:
        match = pattern.search(text)
        if not match:
            continue
        prompt = _clean_prompt(match.group(1))
        if prompt:
            return prompt
    return ""


def _clean_prompt(text: str) -> str:
    stripped = text.strip().strip("\"'").strip()
    return " ".join(stripped.split())

"""Intent classification for inbound messages."""

from media_orchestrator.intent.classifier import (
    ClassificationResult,
    Intent,
    classify,
    debug_scores,
    supported_intents,
)

__all__ = ["ClassificationResult", "Intent", "classify", "debug_scores", "supported_intents"]

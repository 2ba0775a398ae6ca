"""finassist cognition -- intent detection and usefulness scoring."""

from .intents import (
    DEFAULT_RULES,
    Intent,
    IntentClassifier,
    IntentMatch,
    IntentRule,
    detect_intent,
)
from .usefulness import (
    MAX_USEFULNESS,
    UsefulnessScorer,
    answers_the_question,
    score_usefulness,
)

__all__ = [
    "DEFAULT_RULES",
    "Intent",
    "IntentClassifier",
    "IntentMatch",
    "IntentRule",
    "MAX_USEFULNESS",
    "UsefulnessScorer",
    "answers_the_question",
    "detect_intent",
    "score_usefulness",
]

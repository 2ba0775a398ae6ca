"""Heuristic usefulness scoring for candidate responses.

The skill engine uses the score (0-5) as its admission gate: a stage's
response is returned only when its usefulness meets the skill's
``min_usefulness``. Any callable with the :data:`UsefulnessScorer` shape can
be injected in place of :func:`score_usefulness`.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from finassist.assistant.schema import ChatResponse

UsefulnessScorer = Callable[[ChatResponse, Optional[str]], float]

MAX_USEFULNESS = 5.0

_WORD = re.compile(r"[a-z0-9$%]+")

_STOPWORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "your", "with", "this",
    "that", "what", "whats", "how", "why", "when", "where", "which", "who",
    "can", "should", "would", "could", "does", "did", "have", "has", "had",
    "was", "were", "will", "about", "tell", "explain", "there", "much",
    "many", "any", "from", "into", "its", "our", "they", "them", "get",
})


def _terms(text: str) -> set[str]:
    return {
        w for w in _WORD.findall(text.lower())
        if len(w) > 2 and w not in _STOPWORDS
    }


def answers_the_question(response: ChatResponse, question: str) -> bool:
    """True when the response shares at least one salient term with *question*."""
    asked = _terms(question)
    if not asked:
        return True
    said = _terms(response.message)
    if response.details:
        said |= _terms(response.details)
    return bool(asked & said)


def score_usefulness(response: ChatResponse, question: Optional[str] = None) -> float:
    """Rate *response* from 0 to 5.

    One point each for: a non-trivial message, a substantive message or
    details, at least one card, at least one action, and (when the question
    is given) topical overlap with the question. Without a question the
    overlap point is granted, so scores stay comparable across callers.
    """
    message = (response.message or "").strip()
    if not message:
        return 0.0

    score = 0.0
    if len(message) > 10:
        score += 1
    if len(message) >= 80 or response.details:
        score += 1
    if response.cards:
        score += 1
    if response.actions:
        score += 1
    if question is None or answers_the_question(response, question):
        score += 1

    return min(score, MAX_USEFULNESS)

"""
Per-question execution cache.

Admitted responses are cached under a key derived from the normalised
question and a fingerprint of the user's context, so a repeated question
with unchanged data skips the cascade. Entries expire after their TTL and
the cache is bounded, evicting the oldest entry first.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

from finassist.assistant.schema import ChatContext, ChatResponse
from finassist.config.settings import settings

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")


def _amount(item: dict[str, Any], *keys: str) -> float:
    for key in keys:
        value = item.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return 0.0


def context_fingerprint(context: ChatContext) -> dict[str, Any]:
    """Summarise the parts of *context* an answer may depend on.

    Totals are rounded to whole units so float noise does not split keys,
    while a real change in balances or spending invalidates cached answers.
    """
    return {
        "user_id": context.user_id,
        "locale": context.locale,
        "currency": context.currency,
        "accounts": len(context.accounts),
        "budgets": len(context.budgets),
        "goals": len(context.goals),
        "transactions": len(context.transactions),
        "recurring": len(context.recurring_expenses),
        "balance_total": round(sum(_amount(a, "balance") for a in context.accounts)),
        "budget_spent": round(sum(_amount(b, "spent") for b in context.budgets)),
        "goal_saved": round(sum(_amount(g, "current_amount", "current") for g in context.goals)),
        "session_actions": sorted(context.session_actions),
    }


def normalise_question(question: str) -> str:
    return _WS.sub(" ", question.strip().lower())


def make_cache_key(question: str, context: ChatContext) -> str:
    """SHA-256 over the normalised question and the context fingerprint."""
    payload = json.dumps(
        {"q": normalise_question(question), "ctx": context_fingerprint(context)},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    key: str
    response: ChatResponse
    skill_id: str
    timestamp: float
    ttl_ms: float
    usefulness: float = 0.0

    def is_valid(self, now: float) -> bool:
        return (now - self.timestamp) * 1000 < self.ttl_ms


class ExecutionCache:
    """Bounded TTL cache of admitted responses.

    Parameters
    ----------
    max_size:
        Capacity; the oldest entry is evicted when a new key would exceed it.
    default_ttl_ms:
        TTL used when :meth:`set` is called without one.
    clock:
        Seconds-since-epoch source, injectable for tests.
    """

    def __init__(
        self,
        max_size: Optional[int] = None,
        default_ttl_ms: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_size = max_size if max_size is not None else settings.SKILL_CACHE_MAX_SIZE
        self.default_ttl_ms = (
            default_ttl_ms if default_ttl_ms is not None else settings.SKILL_CACHE_TTL_MS
        )
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for *key*, evicting it if expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_valid(self._clock()):
                del self._entries[key]
                logger.debug("Cache entry for skill '%s' expired", entry.skill_id)
                return None
            return entry

    def set(
        self,
        key: str,
        response: ChatResponse,
        ttl_ms: Optional[float] = None,
        skill_id: str = "",
        usefulness: float = 0.0,
    ) -> CacheEntry:
        entry = CacheEntry(
            key=key,
            response=response,
            skill_id=skill_id,
            timestamp=self._clock(),
            ttl_ms=ttl_ms if ttl_ms is not None else self.default_ttl_ms,
            usefulness=usefulness,
        )
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            while len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = entry
        return entry

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def clear_for_skill(self, skill_id: str) -> int:
        """Drop every entry produced by *skill_id*; returns how many."""
        with self._lock:
            doomed = [k for k, e in self._entries.items() if e.skill_id == skill_id]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "keys": list(self._entries.keys()),
            }

    def __len__(self) -> int:
        return len(self._entries)

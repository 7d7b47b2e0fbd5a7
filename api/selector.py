"""Quotation selection for chat replies.

Given a user message and the ids already shown in the conversation, pick at
most one quotation in three tiers, first success wins:

1. direct match: a record whose text contains the message;
2. concept match: records mentioning any expanded keyword, best score wins;
3. fallback: a random record from a small eligible pool.

Selection never raises. Store failures skip to the next tier and an expired
deadline ends selection with ``None``.
"""
import random
import threading
import time
from contextlib import contextmanager
from typing import Iterable, List, Optional, Sequence, Tuple

from api import config
from api.events import log_selection_event
from api.lexicon import expand_terms, tokenize
from api.store import QuotationStoreError

TERM_WEIGHT = 1.0
ADDRESSEE_BONUS = 1.5

TIER_DIRECT = "direct"
TIER_CONCEPT = "concept"
TIER_RANDOM = "random"

_RNG = random.Random()


class Deadline:
    """Time budget for one selection, with an explicit cancel signal.

    Tiers check it before they start. A query running when ``cancel()`` is
    called is interrupted through the callback registered by ``on_cancel``.
    """

    def __init__(self, timeout_sec: Optional[float] = None):
        self._expires_at = time.monotonic() + timeout_sec if timeout_sec is not None else None
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List = []

    def cancel(self) -> None:
        with self._lock:
            self._cancelled.set()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    @contextmanager
    def on_cancel(self, callback):
        with self._lock:
            fire_now = self._cancelled.is_set()
            if not fire_now:
                self._callbacks.append(callback)
        if fire_now:
            callback()
        try:
            yield
        finally:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

    def remaining(self) -> Optional[float]:
        if self._cancelled.is_set():
            return 0.0
        if self._expires_at is None:
            return None
        return max(self._expires_at - time.monotonic(), 0.0)

    def remaining_ms(self) -> Optional[int]:
        remaining = self.remaining()
        if remaining is None:
            return None
        return int(remaining * 1000)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


class _Timeout(Exception):
    pass


def _eligible(rows: Iterable[dict], excluded: set) -> List[dict]:
    return [row for row in rows if row.get("id") not in excluded]


def _run_tier(tier: str, query, deadline: Optional[Deadline]) -> List[dict]:
    if deadline is not None and deadline.expired:
        raise _Timeout(tier)
    try:
        return query()
    except QuotationStoreError as exc:
        if deadline is not None and deadline.expired:
            raise _Timeout(tier) from exc
        log_selection_event("store_error", {"tier": tier, "error": str(exc)})
        return []


def score_candidate(candidate: dict, terms: Sequence[str]) -> float:
    addressee = (candidate.get("addressee") or "").lower()
    haystack = "\n".join(
        [
            (candidate.get("text") or "").lower(),
            addressee,
            (candidate.get("section_title") or "").lower(),
        ]
    )
    score = sum(TERM_WEIGHT for term in terms if term in haystack)
    if any(term in addressee for term in terms):
        score += ADDRESSEE_BONUS
    return score


def best_candidate(candidates: Sequence[dict], terms: Sequence[str]) -> Optional[dict]:
    best = None
    best_score = None
    for candidate in candidates:
        score = score_candidate(candidate, terms)
        # strict comparison keeps the first of equal scores
        if best_score is None or score > best_score:
            best, best_score = candidate, score
    return best


def _direct_match(store, message: str, excluded: set, deadline) -> Optional[dict]:
    if not message.strip():
        return None
    rows = _run_tier(
        TIER_DIRECT,
        lambda: store.find_containing(message, sorted(excluded), config.DIRECT_MATCH_LIMIT, deadline),
        deadline,
    )
    rows = _eligible(rows, excluded)
    return rows[0] if rows else None


def _concept_match(store, message: str, excluded: set, deadline) -> Tuple[Optional[dict], List[str]]:
    terms = [term.lower() for term in expand_terms(tokenize(message))]
    if not terms:
        return None, terms
    rows = _run_tier(
        TIER_CONCEPT,
        lambda: store.find_any_term(terms, sorted(excluded), config.CANDIDATE_LIMIT, deadline),
        deadline,
    )
    return best_candidate(_eligible(rows, excluded), terms), terms


def _random_pick(store, excluded: set, rng, deadline) -> Optional[dict]:
    rng = rng or _RNG
    rows = _run_tier(
        TIER_RANDOM,
        lambda: store.list_eligible(sorted(excluded), config.FALLBACK_POOL_SIZE, deadline),
        deadline,
    )
    rows = _eligible(rows, excluded)
    if not rows:
        return None
    return rows[rng.randrange(len(rows))]


def pick_random(store, exclude_ids: Iterable[str] = (), rng=None, deadline: Optional[Deadline] = None) -> Optional[dict]:
    try:
        return _random_pick(store, set(exclude_ids or ()), rng, deadline)
    except _Timeout:
        log_selection_event("selection_timeout", {"tier": TIER_RANDOM})
        return None


def select_quotation(
    store,
    message: str,
    exclude_ids: Iterable[str] = (),
    rng=None,
    deadline: Optional[Deadline] = None,
) -> Optional[dict]:
    message = message or ""
    excluded = set(exclude_ids or ())
    start = time.perf_counter()
    tier = None
    selected = None
    terms: List[str] = []
    try:
        selected = _direct_match(store, message, excluded, deadline)
        if selected:
            tier = TIER_DIRECT
        else:
            selected, terms = _concept_match(store, message, excluded, deadline)
            if selected:
                tier = TIER_CONCEPT
            else:
                selected = _random_pick(store, excluded, rng, deadline)
                tier = TIER_RANDOM if selected else None
    except _Timeout as exc:
        log_selection_event("selection_timeout", {"tier": str(exc), "exclude_count": len(excluded)})
        return None

    elapsed_ms = int((time.perf_counter() - start) * 1000)
    if selected is None:
        log_selection_event(
            "quotation_none",
            {"exclude_count": len(excluded), "terms": len(terms), "elapsed_ms": elapsed_ms},
        )
        return None
    log_selection_event(
        "quotation_selected",
        {
            "tier": tier,
            "quotation_id": selected["id"],
            "exclude_count": len(excluded),
            "terms": len(terms),
            "elapsed_ms": elapsed_ms,
        },
    )
    return selected

"""
Pattern Store - Learned Tool-Use Memory

Remembers which tool sequences solved which requests:
- observe_success: record a successful exchange and reinforce its tools
- observe_failure: record a failed attempt (and the tools that should have
  been used)
- suggest_tools: propose the best known tool sequence for a new request
- consolidate: evict low-value patterns so memory stays bounded

Patterns are indexed by query keywords. Each tool also keeps an exponential
moving average of its success rate. State is persisted through a pluggable
Persistence backend on a best-effort basis: storage failures are logged and
the store keeps working in memory. When called from a running event loop the
write is handed to a single background thread, so the loop never waits on
disk I/O and writes still land in order.
"""

import asyncio
import json
import logging
import threading
import time
import uuid
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, List, Any, Sequence, Tuple, Union, Protocol

from ai.provider import ToolCallRequest
from config import (
    MAX_PATTERNS,
    CONSOLIDATION_FACTOR,
    EMA_ALPHA,
    NEUTRAL_SUCCESS_RATE,
    SUCCESS_PATTERN_CONFIDENCE,
    FAILURE_PATTERN_CONFIDENCE,
    MIN_RETAINED_CONFIDENCE,
    USAGE_BOOST,
    REFLECTION_WINDOW_DAYS,
)
from utils import extract_query_keywords

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60
TOP_TOOLS_LIMIT = 5
CONSOLIDATION_ADVICE_RATIO = 0.8
HEALTHY_SUCCESS_RATE = 70.0


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class PatternOutcome(Enum):
    """Whether a pattern records a success or a failure."""
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class ToolStep:
    """One step of a learned tool sequence (position is the 0-based call order)."""
    tool: str
    args: Dict[str, Any] = field(default_factory=dict)
    position: int = 0


@dataclass(frozen=True)
class ErrorContext:
    """What went wrong in a failed exchange."""
    attempted_tools: Tuple[str, ...] = ()
    error_message: str = ""


@dataclass
class LearningPattern:
    """
    A learned association between query keywords and a tool sequence.

    Attributes:
        id: Unique pattern identifier
        query: The original request
        keywords: Up to 5 ordered, unique keywords extracted from the query
        tool_sequence: Tools used (or that should have been used), in order
        confidence: How much the pattern is trusted (0.0 - 1.0)
        usage_count: Times the pattern was returned as a suggestion
        timestamp: Creation time (epoch seconds)
    """
    id: str
    query: str
    keywords: Tuple[str, ...]
    tool_sequence: Tuple[ToolStep, ...]
    confidence: float
    usage_count: int = 0
    timestamp: float = field(default_factory=time.time)

    outcome = PatternOutcome.SUCCESS

    @property
    def rank(self) -> float:
        """Ranking score: confidence boosted by usage."""
        return self.confidence * (1 + self.usage_count * USAGE_BOOST)

    @property
    def tool_names(self) -> List[str]:
        return [step.tool for step in self.tool_sequence]


@dataclass
class SuccessPattern(LearningPattern):
    """Tool sequence that produced a good answer."""

    outcome = PatternOutcome.SUCCESS


@dataclass
class FailurePattern(LearningPattern):
    """Failed exchange; tool_sequence holds the tools that should have been used."""

    error_context: ErrorContext = field(default_factory=ErrorContext)

    outcome = PatternOutcome.FAILURE


AnyPattern = Union[SuccessPattern, FailurePattern]


# ============================================================================
# PERSISTENCE
# ============================================================================

class Persistence(Protocol):
    """Storage backend for the pattern store state."""

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored state, or None if nothing has been saved yet."""
        ...

    def save(self, state: Dict[str, Any]) -> None:
        ...


class JsonFilePersistence:
    """Stores the pattern store state as a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None

        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, state: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(state, f, ensure_ascii=False, indent=2)


def _pattern_to_dict(pattern: AnyPattern) -> Dict[str, Any]:
    data = {
        "id": pattern.id,
        "outcome": pattern.outcome.value,
        "query": pattern.query,
        "keywords": list(pattern.keywords),
        "tool_sequence": [
            {"tool": s.tool, "args": s.args, "position": s.position}
            for s in pattern.tool_sequence
        ],
        "confidence": pattern.confidence,
        "usage_count": pattern.usage_count,
        "timestamp": pattern.timestamp,
    }
    if isinstance(pattern, FailurePattern):
        data["error_context"] = {
            "attempted_tools": list(pattern.error_context.attempted_tools),
            "error_message": pattern.error_context.error_message,
        }
    return data


def _pattern_from_dict(data: Dict[str, Any]) -> AnyPattern:
    common = dict(
        id=data["id"],
        query=data["query"],
        keywords=tuple(data.get("keywords", [])),
        tool_sequence=tuple(
            ToolStep(tool=s["tool"], args=s.get("args") or {}, position=s.get("position", i))
            for i, s in enumerate(data.get("tool_sequence", []))
        ),
        confidence=float(data["confidence"]),
        usage_count=int(data.get("usage_count", 0)),
        timestamp=float(data.get("timestamp", time.time())),
    )

    if data.get("outcome") == PatternOutcome.FAILURE.value:
        ctx = data.get("error_context") or {}
        return FailurePattern(
            error_context=ErrorContext(
                attempted_tools=tuple(ctx.get("attempted_tools", [])),
                error_message=ctx.get("error_message", ""),
            ),
            **common,
        )

    return SuccessPattern(**common)


def _new_pattern_id() -> str:
    return f"pattern_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


# ============================================================================
# PATTERN STORE
# ============================================================================

class PatternStore:
    """
    Bounded, keyword-indexed memory of tool-use outcomes.

    All public methods are serialized by a single re-entrant lock, so one
    store can be shared between conversations.

    Example:
        >>> store = PatternStore()
        >>> _ = store.observe_success("read the config file", [ToolCallRequest("read_file", {"path": "config.py"})])
        >>> store.suggest_tool_names("read config")
        ['read_file']
    """

    def __init__(
        self,
        persistence: Optional[Persistence] = None,
        max_patterns: int = MAX_PATTERNS,
    ):
        """
        Initialize the store and load any persisted state.

        Args:
            persistence: Storage backend (None keeps everything in memory)
            max_patterns: Capacity restored by consolidation
        """
        self.persistence = persistence
        self.max_patterns = max_patterns
        self._patterns: List[AnyPattern] = []
        self._success_rates: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._writer: Optional[ThreadPoolExecutor] = None

        self._load()

    # ------------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------------

    def observe_success(
        self,
        query: str,
        tool_calls: Sequence[ToolCallRequest],
    ) -> Optional[SuccessPattern]:
        """
        Record the tool calls of a successful exchange.

        Args:
            query: The user's request
            tool_calls: Successful tool calls, in call order

        Returns:
            The new pattern, or None when there were no tool calls
        """
        if not tool_calls:
            logger.debug("No tool calls to learn from, skipping success pattern")
            return None

        sequence = tuple(
            ToolStep(
                tool=call.name,
                args=dict(call.arguments) if isinstance(call.arguments, dict) else {},
                position=index,
            )
            for index, call in enumerate(tool_calls)
        )

        pattern = SuccessPattern(
            id=_new_pattern_id(),
            query=query,
            keywords=tuple(extract_query_keywords(query)),
            tool_sequence=sequence,
            confidence=SUCCESS_PATTERN_CONFIDENCE,
        )

        with self._lock:
            self._update_success_rates([s.tool for s in sequence], success=True)
            self._add_pattern(pattern)

        logger.info(f"👁️  Learned success pattern: {' → '.join(pattern.tool_names)}")
        return pattern

    def observe_failure(
        self,
        query: str,
        attempted_tools: Sequence[str],
        correct_tools: Sequence[str] = (),
        error_message: str = "",
    ) -> FailurePattern:
        """
        Record a failed attempt.

        Args:
            query: The user's request
            attempted_tools: Tools that were tried and failed
            correct_tools: Tools that should have been used (may be empty)
            error_message: What went wrong

        Returns:
            The new pattern
        """
        pattern = FailurePattern(
            id=_new_pattern_id(),
            query=query,
            keywords=tuple(extract_query_keywords(query)),
            tool_sequence=tuple(
                ToolStep(tool=tool, args={}, position=index)
                for index, tool in enumerate(correct_tools)
            ),
            confidence=FAILURE_PATTERN_CONFIDENCE,
            error_context=ErrorContext(
                attempted_tools=tuple(attempted_tools),
                error_message=error_message,
            ),
        )

        with self._lock:
            self._update_success_rates(attempted_tools, success=False)
            self._add_pattern(pattern)

        logger.info(f"📖 Learned from failure: {', '.join(attempted_tools) or 'no tools'}")
        return pattern

    # ------------------------------------------------------------------------
    # Suggestion
    # ------------------------------------------------------------------------

    def suggest_tools(self, query: str) -> List[ToolStep]:
        """
        Suggest the best known tool sequence for a request.

        Only success patterns sharing at least one keyword are candidates.
        They are ranked by confidence × (1 + usage_count × 0.1); the winner's
        usage_count is incremented.

        Args:
            query: The user's request

        Returns:
            Tool steps of the best pattern, or [] when nothing matches
        """
        keywords = set(extract_query_keywords(query))
        if not keywords:
            return []

        with self._lock:
            matches = [
                p for p in self._patterns
                if p.outcome == PatternOutcome.SUCCESS and keywords.intersection(p.keywords)
            ]
            if not matches:
                return []

            best = sorted(matches, key=lambda p: p.rank, reverse=True)[0]
            best.usage_count += 1
            self._save()

        logger.info(f"💡 Suggested tools: {best.tool_names} (pattern {best.id})")
        return list(best.tool_sequence)

    def suggest_tool_names(self, query: str) -> List[str]:
        """Same as suggest_tools, returning just the tool names."""
        return [step.tool for step in self.suggest_tools(query)]

    def success_rate(self, tool: str) -> float:
        """EMA success rate of a tool (0.5 for tools never seen)."""
        with self._lock:
            return self._success_rates.get(tool, NEUTRAL_SUCCESS_RATE)

    @property
    def patterns(self) -> Tuple[AnyPattern, ...]:
        """Snapshot of all patterns, most recent or highest ranked first."""
        with self._lock:
            return tuple(replace(p) for p in self._patterns)

    def __len__(self) -> int:
        with self._lock:
            return len(self._patterns)

    # ------------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------------

    def consolidate(self) -> None:
        """
        Restore the capacity bound.

        Drops unused low-confidence patterns, re-sorts by rank (stable) and
        keeps the best max_patterns.
        """
        with self._lock:
            before = len(self._patterns)

            kept = [
                p for p in self._patterns
                if not (p.usage_count == 0 and p.confidence < MIN_RETAINED_CONFIDENCE)
            ]
            kept.sort(key=lambda p: p.rank, reverse=True)
            self._patterns = kept[:self.max_patterns]

            logger.info(f"🗜️  Consolidated patterns: {before} → {len(self._patterns)}")
            self._save()

    def get_stats(self) -> Dict[str, Any]:
        """
        Summary of the store contents.

        Returns:
            Dict with total/success/failure counts, average confidence and the
            five most used tools
        """
        with self._lock:
            total = len(self._patterns)
            successes = sum(1 for p in self._patterns if p.outcome == PatternOutcome.SUCCESS)
            avg_confidence = (
                sum(p.confidence for p in self._patterns) / total if total else 0.0
            )
            usage = self._tool_usage(self._patterns)

        return {
            "total_patterns": total,
            "success_patterns": successes,
            "failure_patterns": total - successes,
            "avg_confidence": avg_confidence,
            "most_used_tools": [tool for tool, _ in usage.most_common(TOP_TOOLS_LIMIT)],
        }

    def generate_reflection(self, now: Optional[float] = None) -> Dict[str, Any]:
        """
        Summarize what was learned over the last seven days.

        Args:
            now: Reference time in epoch seconds (defaults to the current time)

        Returns:
            Dict with success_rate, top_tools, analysis, learnings and
            action_items
        """
        now = time.time() if now is None else now
        window = REFLECTION_WINDOW_DAYS * SECONDS_PER_DAY

        with self._lock:
            recent = [p for p in self._patterns if now - p.timestamp < window]
            memory_size = len(self._patterns)
            unique_queries = len({",".join(p.keywords) for p in self._patterns})

        successes = sum(1 for p in recent if p.outcome == PatternOutcome.SUCCESS)
        failures = len(recent) - successes
        success_rate = (successes / len(recent)) * 100 if recent else 0.0

        top_tools = [
            f"{tool} ({count}x)"
            for tool, count in self._tool_usage(recent).most_common(TOP_TOOLS_LIMIT)
        ]

        analysis = "\n".join([
            f"Total Patterns: {len(recent)}",
            f"Success: {successes} ({success_rate:.1f}%)",
            f"Failures: {failures}",
            "",
            "Top Tools Used:",
            *top_tools,
            "",
            f"Memory Size: {memory_size}/{self.max_patterns}",
        ])

        return {
            "period_days": REFLECTION_WINDOW_DAYS,
            "success_rate": success_rate,
            "top_tools": top_tools,
            "analysis": analysis,
            "learnings": [
                f"Success rate: {success_rate:.1f}%",
                f"Most effective tool: {top_tools[0] if top_tools else 'N/A'}",
                f"Pattern diversity: {unique_queries} unique queries",
            ],
            "action_items": [
                "Increase observation of successful tool patterns"
                if success_rate < HEALTHY_SUCCESS_RATE
                else "Maintain current learning rate",
                "Schedule pattern consolidation"
                if memory_size > self.max_patterns * CONSOLIDATION_ADVICE_RATIO
                else "Memory capacity healthy",
            ],
        }

    # ------------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------------

    def to_state(self) -> Dict[str, Any]:
        """Serializable snapshot of the whole store."""
        with self._lock:
            return {
                "patterns": [_pattern_to_dict(p) for p in self._patterns],
                "success_rates": dict(self._success_rates),
            }

    def _load(self) -> None:
        if self.persistence is None:
            return

        try:
            state = self.persistence.load()
            if not state:
                return

            with self._lock:
                self._patterns = [_pattern_from_dict(d) for d in state.get("patterns", [])]
                self._success_rates = {
                    tool: float(rate) for tool, rate in state.get("success_rates", {}).items()
                }
            logger.info(f"📚 Loaded {len(self._patterns)} patterns")

        except Exception as e:
            logger.error(f"❌ Failed to load pattern store: {e}. Starting empty.", exc_info=True)
            self._patterns = []
            self._success_rates = {}
            return

        # Stored state may predate a lower capacity
        if len(self._patterns) > self.max_patterns * CONSOLIDATION_FACTOR:
            self.consolidate()

    def flush(self) -> None:
        """Block until every pending background write has finished."""
        with self._lock:
            writer = self._writer
        if writer is not None:
            writer.submit(lambda: None).result()

    def _save(self) -> None:
        if self.persistence is None:
            return

        state = self.to_state()

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No event loop in this thread, nothing to block
            self._write(state)
            return

        with self._lock:
            if self._writer is None:
                self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pattern-store-")
            self._writer.submit(self._write, state)

    def _write(self, state: Dict[str, Any]) -> None:
        try:
            self.persistence.save(state)
        except Exception as e:
            logger.error(f"❌ Failed to save pattern store: {e}", exc_info=True)

    def _add_pattern(self, pattern: AnyPattern) -> None:
        self._patterns.insert(0, pattern)

        if len(self._patterns) > self.max_patterns * CONSOLIDATION_FACTOR:
            self.consolidate()
        else:
            self._save()

    def _update_success_rates(self, tools: Sequence[str], success: bool) -> None:
        target = 1.0 if success else 0.0
        for tool in tools:
            current = self._success_rates.get(tool, NEUTRAL_SUCCESS_RATE)
            self._success_rates[tool] = EMA_ALPHA * target + (1 - EMA_ALPHA) * current

    @staticmethod
    def _tool_usage(patterns: Sequence[AnyPattern]) -> Counter:
        usage: Counter = Counter()
        for p in patterns:
            usage.update(p.tool_names)
        return usage

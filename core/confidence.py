"""
Confidence Gate - Response Quality Scoring

Scores a candidate answer along three weighted dimensions and decides whether
it should be revised:
- relevance: keyword overlap with the prompt (+ workspace/tool mentions)
- consistency: keyword overlap with the last few responses of the session
- integrity: structural quality signals (code blocks, length, structure)

The weighted total is mapped through a sigmoid so that mid-range scores are
spread across the logistic curve's sensitive region:

    confidence = sigmoid(total × 10 − 5)

evaluate() is pure. record_metric() keeps a bounded history of evaluations and
forwards each one to the learning event sink.
"""

import logging
import math
import re
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Deque, Tuple

from config import (
    REVISION_THRESHOLD,
    METRICS_HISTORY_SIZE,
    CONSISTENCY_WINDOW,
    RELEVANCE_WEIGHT,
    CONSISTENCY_WEIGHT,
    INTEGRITY_WEIGHT,
    INTEGRITY_BASELINE,
    INTEGRITY_SIGNAL_BONUS,
    INTEGRITY_CLEAN_BONUS,
    MIN_MEANINGFUL_LENGTH,
    MAX_MEANINGFUL_LENGTH,
    EXPLANATION_LENGTH,
    REVISION_NOTE_TEMPLATE,
    REASONING_TEMPLATE,
    STATUS_ACCEPTED,
    STATUS_REVISE,
    RECOMMEND_ACCEPT,
    RECOMMEND_REVISE,
    format_prompt,
)
from core.events import LearningEventSink, CONFIDENCE_EVENT
from utils import extract_content_keywords

logger = logging.getLogger(__name__)

WORKSPACE_BONUS = 0.1
TOOL_MENTION_BONUS = 0.1
EMPTY_RESPONSE_CONSISTENCY = 0.5
NEUTRAL_AVERAGE_CONFIDENCE = 0.5

CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
STRUCTURE_RE = re.compile(r"\n\n|^#+\s", re.MULTILINE)
ERROR_INDICATOR_RE = re.compile(r"error|undefined|null reference|failed", re.IGNORECASE)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class Exchange:
    """One earlier prompt/response pair of the session."""
    prompt: str
    response: str


@dataclass(frozen=True)
class ConfidenceAnalysis:
    """
    Verdict of the confidence gate.

    Attributes:
        confidence: Sigmoid-normalized confidence (0.0 - 1.0)
        relevance: Prompt/response keyword match (0.0 - 1.0)
        consistency: Match with recent session responses (0.0 - 1.0)
        integrity: Structural quality (0.0 - 1.0)
        total_score: Weighted score before the sigmoid
        needs_revision: True if confidence is below the threshold
        reasoning: Human-readable summary of the scores and verdict
        revised_prompt: Restructured prompt, only when revision is needed
    """
    confidence: float
    relevance: float
    consistency: float
    integrity: float
    total_score: float
    needs_revision: bool
    reasoning: str
    revised_prompt: Optional[str] = None


@dataclass(frozen=True)
class EvaluationMetric:
    """One recorded evaluation."""
    timestamp: datetime
    confidence: float
    relevance: float
    consistency: float
    integrity: float
    was_revised: bool
    response_length: int


# ============================================================================
# SCORING FUNCTIONS
# ============================================================================

def sigmoid(x: float) -> float:
    """
    Logistic function 1 / (1 + e^-x).

    Evaluated in a form that never overflows for large |x|; sigmoid(0) is
    exactly 0.5.
    """
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def score_relevance(
    response: str,
    prompt: str,
    workspace_context: Optional[str] = None,
    tools_used: Optional[Sequence[str]] = None,
) -> float:
    prompt_keywords = extract_content_keywords(prompt)
    if not prompt_keywords:
        return 1.0

    response_keywords = set(extract_content_keywords(response))
    overlap = sum(1 for kw in prompt_keywords if kw in response_keywords)
    score = overlap / len(prompt_keywords)

    if workspace_context and workspace_context in response:
        score += WORKSPACE_BONUS
    if tools_used and any(tool in response for tool in tools_used):
        score += TOOL_MENTION_BONUS

    return min(score, 1.0)


def score_consistency(response: str, session_history: Sequence[Exchange]) -> float:
    if not session_history:
        return 1.0

    current = extract_content_keywords(response)
    if not current:
        return EMPTY_RESPONSE_CONSISTENCY

    recent = session_history[-CONSISTENCY_WINDOW:]
    total = 0.0
    for exchange in recent:
        previous = extract_content_keywords(exchange.response)
        previous_set = set(previous)
        overlap = sum(1 for kw in current if kw in previous_set)
        total += overlap / max(len(current), len(previous), 1)

    return total / len(recent)


def score_integrity(response: str) -> float:
    """
    Structural quality of a response.

    Baseline 0.3, +0.15 per quality signal (code block, explanation length,
    paragraph/heading structure, meaningful length) and +0.10 for an
    error-free response of meaningful length.
    """
    length = len(response)
    meaningful = MIN_MEANINGFUL_LENGTH <= length <= MAX_MEANINGFUL_LENGTH

    signals = [
        CODE_BLOCK_RE.search(response) is not None,
        length > EXPLANATION_LENGTH,
        STRUCTURE_RE.search(response) is not None,
        meaningful,
    ]

    score = INTEGRITY_BASELINE + INTEGRITY_SIGNAL_BONUS * sum(signals)

    if meaningful and not ERROR_INDICATOR_RE.search(response):
        score += INTEGRITY_CLEAN_BONUS

    return min(score, 1.0)


# ============================================================================
# CONFIDENCE GATE
# ============================================================================

class ConfidenceGate:
    """
    Scores answers and keeps a bounded history of evaluations.

    Example:
        >>> gate = ConfidenceGate()
        >>> analysis = gate.evaluate("Paris is the capital of France.", "What is the capital of France?")
        >>> analysis.needs_revision
        False
    """

    def __init__(
        self,
        threshold: float = REVISION_THRESHOLD,
        event_sink: Optional[LearningEventSink] = None,
        history_size: int = METRICS_HISTORY_SIZE,
    ):
        self.threshold = threshold
        self.event_sink = event_sink
        self._metrics: Deque[EvaluationMetric] = deque(maxlen=history_size)

    def evaluate(
        self,
        current_response: str,
        original_prompt: str,
        session_history: Sequence[Exchange] = (),
        workspace_context: Optional[str] = None,
        tools_used: Optional[Sequence[str]] = None,
    ) -> ConfidenceAnalysis:
        """
        Evaluate a candidate answer.

        Args:
            current_response: The answer to score
            original_prompt: The request it answers
            session_history: Earlier exchanges of the session, oldest first
            workspace_context: Workspace path, rewarded when mentioned
            tools_used: Tool names used to produce the answer

        Returns:
            ConfidenceAnalysis with scores, verdict and reasoning
        """
        relevance = score_relevance(current_response, original_prompt, workspace_context, tools_used)
        consistency = score_consistency(current_response, session_history)
        integrity = score_integrity(current_response)

        total_score = (
            relevance * RELEVANCE_WEIGHT
            + consistency * CONSISTENCY_WEIGHT
            + integrity * INTEGRITY_WEIGHT
        )
        confidence = sigmoid(total_score * 10 - 5)
        needs_revision = confidence < self.threshold

        revised_prompt = None
        if needs_revision:
            revised_prompt = format_prompt(
                REVISION_NOTE_TEMPLATE,
                original_prompt=original_prompt,
                confidence_percent=confidence * 100,
                workspace=workspace_context or "N/A",
            )

        reasoning = format_prompt(
            REASONING_TEMPLATE,
            confidence_percent=confidence * 100,
            total_score=total_score,
            relevance_percent=relevance * 100,
            consistency_percent=consistency * 100,
            integrity_percent=integrity * 100,
            status=STATUS_REVISE if needs_revision else STATUS_ACCEPTED,
            recommendation=RECOMMEND_REVISE if needs_revision else RECOMMEND_ACCEPT,
        )

        logger.debug(
            f"🔍 Confidence {confidence * 100:.1f}% "
            f"(r={relevance:.2f}, c={consistency:.2f}, i={integrity:.2f}), "
            f"revision needed: {needs_revision}"
        )

        return ConfidenceAnalysis(
            confidence=confidence,
            relevance=relevance,
            consistency=consistency,
            integrity=integrity,
            total_score=total_score,
            needs_revision=needs_revision,
            reasoning=reasoning,
            revised_prompt=revised_prompt,
        )

    def record_metric(
        self,
        analysis: ConfidenceAnalysis,
        was_revised: bool,
        response_length: int,
    ) -> EvaluationMetric:
        """
        Append an evaluation to the history and emit it to the event sink.

        The history keeps the most recent evaluations only; the oldest entry
        is dropped when it is full.
        """
        metric = EvaluationMetric(
            timestamp=datetime.now(),
            confidence=analysis.confidence,
            relevance=analysis.relevance,
            consistency=analysis.consistency,
            integrity=analysis.integrity,
            was_revised=was_revised,
            response_length=response_length,
        )
        self._metrics.append(metric)

        if self.event_sink is not None:
            self.event_sink.emit(CONFIDENCE_EVENT, {
                "confidence": metric.confidence,
                "relevance": metric.relevance,
                "consistency": metric.consistency,
                "integrity": metric.integrity,
                "was_revised": was_revised,
                "reasoning": analysis.reasoning,
            })

        logger.info(f"📊 Metric recorded: {metric.confidence * 100:.1f}% (revised: {was_revised})")
        return metric

    def average_confidence(self, last_n: int = 10) -> float:
        """Mean confidence of the last N evaluations (0.5 when none are recorded)."""
        if not self._metrics:
            return NEUTRAL_AVERAGE_CONFIDENCE

        recent = list(self._metrics)[-last_n:]
        return sum(m.confidence for m in recent) / len(recent)

    def reset_metrics(self) -> None:
        self._metrics.clear()
        logger.info("🔄 Metrics history cleared")

    @property
    def metrics(self) -> Tuple[EvaluationMetric, ...]:
        return tuple(self._metrics)


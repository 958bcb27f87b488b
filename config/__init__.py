"""
Configuration module for the agent core.

This module provides centralized configuration management including:
- Application settings (models, API keys, paths)
- Decision thresholds (iteration bound, store capacity, revision threshold)
- Prompt templates

All configurable values should be imported from this module to ensure
consistency across the application.
"""

from .settings import (
    # Paths
    BASE_DIR,
    DATA_DIR,
    PATTERN_STORE_PATH,

    # API Keys
    GOOGLE_API_KEY,

    # LLM Settings
    GEMINI_MODEL,
    TEMPERATURE,
    MAX_TOKENS,
    TOP_P,
    TOP_K,
    MAX_RETRIES,
    RETRY_DELAY,

    # Langfuse Settings
    LANGFUSE_PUBLIC_KEY,
    LANGFUSE_SECRET_KEY,
    LANGFUSE_HOST,
    LANGFUSE_ENABLED,

    # Orchestration
    MAX_ITERATIONS,

    # Pattern Store
    MAX_PATTERNS,
    CONSOLIDATION_FACTOR,
    EMA_ALPHA,
    NEUTRAL_SUCCESS_RATE,
    SUCCESS_PATTERN_CONFIDENCE,
    FAILURE_PATTERN_CONFIDENCE,
    MIN_RETAINED_CONFIDENCE,
    USAGE_BOOST,
    MAX_KEYWORDS,
    REFLECTION_WINDOW_DAYS,
    PATTERN_STOP_WORDS,

    # Confidence Gate
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
    RESPONSE_STOP_WORDS,

    # Request Classifier
    INTENT_MATCH_INCREMENT,
    INTENT_MIN_SCORE,
    INTENT_DEFAULT_SCORE,
    SIMPLE_REQUEST_CONFIDENCE,
    COMPLEXITY_BASE_CONFIDENCE,
    COMPLEXITY_MAX_CONFIDENCE,
    MODERATE_COMPLEXITY_CONFIDENCE,
    MODERATE_COMPLEXITY_STEPS,
    DEFAULT_COMPLEXITY_CONFIDENCE,

    # Debug
    DEBUG,
)

from .prompts import (
    SYSTEM_PROMPT,
    WORKSPACE_PROMPT,
    TOOL_HINT_PROMPT,
    REVISION_NOTE_TEMPLATE,
    REASONING_TEMPLATE,
    STATUS_ACCEPTED,
    STATUS_REVISE,
    RECOMMEND_ACCEPT,
    RECOMMEND_REVISE,
    PROVIDER_UNAVAILABLE_MESSAGE,
    MISSING_CREDENTIAL_MESSAGE,
    format_prompt,
)

__all__ = [
    # Settings
    "BASE_DIR",
    "DATA_DIR",
    "PATTERN_STORE_PATH",
    "GOOGLE_API_KEY",
    "GEMINI_MODEL",
    "TEMPERATURE",
    "MAX_TOKENS",
    "TOP_P",
    "TOP_K",
    "MAX_RETRIES",
    "RETRY_DELAY",
    "LANGFUSE_PUBLIC_KEY",
    "LANGFUSE_SECRET_KEY",
    "LANGFUSE_HOST",
    "LANGFUSE_ENABLED",
    "MAX_ITERATIONS",
    "MAX_PATTERNS",
    "CONSOLIDATION_FACTOR",
    "EMA_ALPHA",
    "NEUTRAL_SUCCESS_RATE",
    "SUCCESS_PATTERN_CONFIDENCE",
    "FAILURE_PATTERN_CONFIDENCE",
    "MIN_RETAINED_CONFIDENCE",
    "USAGE_BOOST",
    "MAX_KEYWORDS",
    "REFLECTION_WINDOW_DAYS",
    "PATTERN_STOP_WORDS",
    "REVISION_THRESHOLD",
    "METRICS_HISTORY_SIZE",
    "CONSISTENCY_WINDOW",
    "RELEVANCE_WEIGHT",
    "CONSISTENCY_WEIGHT",
    "INTEGRITY_WEIGHT",
    "INTEGRITY_BASELINE",
    "INTEGRITY_SIGNAL_BONUS",
    "INTEGRITY_CLEAN_BONUS",
    "MIN_MEANINGFUL_LENGTH",
    "MAX_MEANINGFUL_LENGTH",
    "EXPLANATION_LENGTH",
    "RESPONSE_STOP_WORDS",
    "INTENT_MATCH_INCREMENT",
    "INTENT_MIN_SCORE",
    "INTENT_DEFAULT_SCORE",
    "SIMPLE_REQUEST_CONFIDENCE",
    "COMPLEXITY_BASE_CONFIDENCE",
    "COMPLEXITY_MAX_CONFIDENCE",
    "MODERATE_COMPLEXITY_CONFIDENCE",
    "MODERATE_COMPLEXITY_STEPS",
    "DEFAULT_COMPLEXITY_CONFIDENCE",
    "DEBUG",

    # Prompts
    "SYSTEM_PROMPT",
    "WORKSPACE_PROMPT",
    "TOOL_HINT_PROMPT",
    "REVISION_NOTE_TEMPLATE",
    "REASONING_TEMPLATE",
    "STATUS_ACCEPTED",
    "STATUS_REVISE",
    "RECOMMEND_ACCEPT",
    "RECOMMEND_REVISE",
    "PROVIDER_UNAVAILABLE_MESSAGE",
    "MISSING_CREDENTIAL_MESSAGE",
    "format_prompt",
]

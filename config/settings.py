"""
Application settings and configuration values.

This module centralizes all configuration values including:
- File paths
- API keys and credentials
- Model parameters
- Decision thresholds for the classifier, pattern store and confidence gate

Environment variables are loaded via python-dotenv. Every threshold can be
overridden through the environment or by passing an explicit value to the
component constructor.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================================
# PATHS
# ============================================================================

BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
PATTERN_STORE_PATH = Path(os.getenv("PATTERN_STORE_PATH", str(DATA_DIR / "patterns.json")))

# ============================================================================
# LLM CONFIGURATION
# ============================================================================

# Gemini API Settings
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
# Checked when a provider is constructed, not on import
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")

# Model Parameters
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "8192"))
TOP_P = float(os.getenv("TOP_P", "0.95"))
TOP_K = int(os.getenv("TOP_K", "40"))

# Retry Settings
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY = float(os.getenv("RETRY_DELAY", "1.0"))  # seconds

# ============================================================================
# LANGFUSE OBSERVABILITY
# ============================================================================

LANGFUSE_PUBLIC_KEY = os.getenv("LANGFUSE_PUBLIC_KEY")
LANGFUSE_SECRET_KEY = os.getenv("LANGFUSE_SECRET_KEY")
LANGFUSE_HOST = os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")

# Enable/disable Langfuse tracing
LANGFUSE_ENABLED = os.getenv("LANGFUSE_ENABLED", "true").lower() == "true"

if LANGFUSE_ENABLED and (not LANGFUSE_PUBLIC_KEY or not LANGFUSE_SECRET_KEY):
    LANGFUSE_ENABLED = False

# ============================================================================
# TOOL ORCHESTRATION
# ============================================================================

# Hard bound on provider round-trips per request
MAX_ITERATIONS = int(os.getenv("MAX_ITERATIONS", "5"))

# ============================================================================
# PATTERN STORE
# ============================================================================

MAX_PATTERNS = int(os.getenv("MAX_PATTERNS", "200"))
# Consolidation runs once the store grows past MAX_PATTERNS * CONSOLIDATION_FACTOR
CONSOLIDATION_FACTOR = float(os.getenv("CONSOLIDATION_FACTOR", "1.2"))
EMA_ALPHA = float(os.getenv("EMA_ALPHA", "0.1"))
NEUTRAL_SUCCESS_RATE = 0.5
SUCCESS_PATTERN_CONFIDENCE = float(os.getenv("SUCCESS_PATTERN_CONFIDENCE", "0.8"))
FAILURE_PATTERN_CONFIDENCE = float(os.getenv("FAILURE_PATTERN_CONFIDENCE", "0.5"))
# Unused patterns below this confidence are dropped during consolidation
MIN_RETAINED_CONFIDENCE = float(os.getenv("MIN_RETAINED_CONFIDENCE", "0.5"))
USAGE_BOOST = 0.1
MAX_KEYWORDS = int(os.getenv("MAX_KEYWORDS", "5"))
REFLECTION_WINDOW_DAYS = int(os.getenv("REFLECTION_WINDOW_DAYS", "7"))

# English + Turkish filler words ignored when indexing a query
PATTERN_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by",
    "ne", "nedir", "nasıl", "gibi", "bir", "bu", "ve", "ile",
})

# ============================================================================
# CONFIDENCE GATE
# ============================================================================

REVISION_THRESHOLD = float(os.getenv("REVISION_THRESHOLD", "0.75"))
METRICS_HISTORY_SIZE = int(os.getenv("METRICS_HISTORY_SIZE", "100"))
CONSISTENCY_WINDOW = int(os.getenv("CONSISTENCY_WINDOW", "3"))

# Score weights (must sum to 1.0)
RELEVANCE_WEIGHT = 0.4
CONSISTENCY_WEIGHT = 0.3
INTEGRITY_WEIGHT = 0.3

INTEGRITY_BASELINE = 0.3
INTEGRITY_SIGNAL_BONUS = 0.15
INTEGRITY_CLEAN_BONUS = 0.10
MIN_MEANINGFUL_LENGTH = 50
MAX_MEANINGFUL_LENGTH = 5000
EXPLANATION_LENGTH = 100

RESPONSE_STOP_WORDS = frozenset({
    "this", "that", "with", "from", "have", "will", "your", "they",
    "been", "were", "what", "when", "where", "which", "their", "about",
})

# ============================================================================
# REQUEST CLASSIFIER
# ============================================================================

INTENT_MATCH_INCREMENT = float(os.getenv("INTENT_MATCH_INCREMENT", "0.3"))
INTENT_MIN_SCORE = float(os.getenv("INTENT_MIN_SCORE", "0.3"))
INTENT_DEFAULT_SCORE = float(os.getenv("INTENT_DEFAULT_SCORE", "0.5"))

SIMPLE_REQUEST_CONFIDENCE = 0.9
COMPLEXITY_BASE_CONFIDENCE = float(os.getenv("COMPLEXITY_BASE_CONFIDENCE", "0.7"))
COMPLEXITY_MAX_CONFIDENCE = float(os.getenv("COMPLEXITY_MAX_CONFIDENCE", "0.95"))
MODERATE_COMPLEXITY_CONFIDENCE = 0.6
MODERATE_COMPLEXITY_STEPS = 4
DEFAULT_COMPLEXITY_CONFIDENCE = 0.8

# ============================================================================
# DEVELOPMENT / DEBUG SETTINGS
# ============================================================================

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Print configuration summary on import (only in debug mode)
if DEBUG:
    print("\n" + "="*60)
    print("🔧 Agent Core Configuration Loaded")
    print("="*60)
    print(f"Model: {GEMINI_MODEL}")
    print(f"Max Iterations: {MAX_ITERATIONS}")
    print(f"Max Patterns: {MAX_PATTERNS}")
    print(f"Revision Threshold: {REVISION_THRESHOLD}")
    print(f"Langfuse: {'✅ Enabled' if LANGFUSE_ENABLED else '❌ Disabled'}")
    print(f"Pattern Store: {PATTERN_STORE_PATH}")
    print("="*60 + "\n")

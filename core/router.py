"""
Request Classification Router

Analyzes user requests to determine their intent and estimate how many steps
they will take. Classification is deliberately heuristic: weighted regular
expression probes and keyword families, no language model involved, so it is
pure, fast and deterministic.

Intent types:
- command: Direct instruction to run, open, write or delete something
- idea: Generate something new (the default when nothing else matches)
- reflection: Debugging, analysis, optimization, refactoring
- exploration: Show, list, find, "what is", "how does"
- help: Usage questions about the assistant itself

The result is used for routing and telemetry only; it never gates execution.
"""

import logging
import re
from enum import Enum
from typing import Optional, Dict, List, Any
from dataclasses import dataclass, field

from config import (
    INTENT_MATCH_INCREMENT,
    INTENT_MIN_SCORE,
    INTENT_DEFAULT_SCORE,
    SIMPLE_REQUEST_CONFIDENCE,
    COMPLEXITY_BASE_CONFIDENCE,
    COMPLEXITY_MAX_CONFIDENCE,
    MODERATE_COMPLEXITY_CONFIDENCE,
    MODERATE_COMPLEXITY_STEPS,
    DEFAULT_COMPLEXITY_CONFIDENCE,
)

logger = logging.getLogger(__name__)


# ============================================================================
# INTENT TYPES
# ============================================================================

class IntentType(Enum):
    """Enumeration of possible request intents (declaration order matters for ties)."""

    COMMAND = "command"
    IDEA = "idea"
    REFLECTION = "reflection"
    EXPLORATION = "exploration"
    HELP = "help"


class TaskCategory(Enum):
    """Kind of multi-step work a complex request describes."""

    REFACTOR = "refactor"
    FEATURE = "feature"
    TEST = "test"
    DOCUMENTATION = "documentation"


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class IntentResult:
    """
    Result of intent classification.

    Attributes:
        intent: The classified intent type
        confidence: Winning family's score, clamped to [0, 1]
        entities: Extracted files, commands and technologies
        actions: Verbs detected in the request (read, write, execute, ...)
        scores: Clamped score of every family, for telemetry
    """
    intent: IntentType
    confidence: float = 1.0
    entities: Dict[str, List[str]] = field(default_factory=dict)
    actions: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)


@dataclass
class ComplexityAnalysis:
    """
    Step-complexity estimate for a request.

    Attributes:
        is_complex: Whether the request needs multi-step execution
        confidence: Confidence in the verdict (0.0 - 1.0)
        reason: Short explanation of which rule fired
        estimated_steps: Expected number of steps (only when complex)
        category: Kind of work (only when a keyword family matched)
        recommend_night_orders: Whether continuous mission-context injection
            should be used while executing
        suggested_mission: The request itself, when it is worth tracking
    """
    is_complex: bool
    confidence: float
    reason: str
    estimated_steps: Optional[int] = None
    category: Optional[TaskCategory] = None
    recommend_night_orders: bool = False
    suggested_mission: Optional[str] = None


@dataclass
class AgentSelection:
    """Which agent should handle an intent, and how urgently (0-10)."""
    agent_type: str
    reason: str
    priority: int


# ============================================================================
# INTENT PROBES
# ============================================================================

# English and Turkish vocabulary; every matching probe adds one increment
INTENT_PATTERNS: Dict[IntentType, List[re.Pattern]] = {
    IntentType.COMMAND: [
        re.compile(r"^(çalıştır|run|execute|start|başlat)", re.IGNORECASE),
        re.compile(r"^(oku|read|open|aç)\s+dosya", re.IGNORECASE),
        re.compile(r"^(yaz|write|save|kaydet)\s+dosya", re.IGNORECASE),
        re.compile(r"^(sil|delete|remove|kaldır)\s+dosya", re.IGNORECASE),
        re.compile(r"^(test|kontrol|check)\s+", re.IGNORECASE),
        re.compile(r"(oluştur|create|yap|yaz|ekle)\s+(dosya|file|proje|klasör|folder)", re.IGNORECASE),
        re.compile(r"(dosya|file)\s+(oluştur|create|yap|yaz)", re.IGNORECASE),
        re.compile(r"(kök ağacına|workspace|projede)\s+(yaz|ekle|oluştur)", re.IGNORECASE),
        re.compile(r"yap.*?(python|javascript|typescript|html|css|json)", re.IGNORECASE),
        re.compile(r"(verdiğin|bu)\s+(kodu?|projeyi?)\s+(oluştur|yaz|kaydet)", re.IGNORECASE),
    ],
    IntentType.IDEA: [
        re.compile(
            r"(yap|create|build|kur|ekle|oluştur)\s+"
            r"(proje|project|app|site|uygulama|kod|code|fonksiyon|function|class|component)",
            re.IGNORECASE,
        ),
        re.compile(r"(python|javascript|typescript|react|node)\s+(ile|with|için|for)", re.IGNORECASE),
        re.compile(r"(api|backend|frontend|database|server)", re.IGNORECASE),
        re.compile(r"(web|mobile|desktop)\s+(app|uygulama)", re.IGNORECASE),
    ],
    IntentType.REFLECTION: [
        re.compile(r"(hata|error|bug|sorun|problem|düzelt|fix|çöz)", re.IGNORECASE),
        re.compile(r"(analiz|analyze|incele|kontrol et)", re.IGNORECASE),
        re.compile(r"(performans|optimization|iyileştir)", re.IGNORECASE),
        re.compile(r"(refactor|yeniden yaz)", re.IGNORECASE),
    ],
    IntentType.EXPLORATION: [
        re.compile(r"^(göster|show|listele|list|bul|find)", re.IGNORECASE),
        re.compile(r"^(nedir|what|ne|which|hangi)", re.IGNORECASE),
        re.compile(r"^(nasıl|how|ne şekilde)", re.IGNORECASE),
        re.compile(r"(dokümantasyon|docs|rehber|guide)", re.IGNORECASE),
    ],
    IntentType.HELP: [
        re.compile(r"^(yardım|help|komutlar|commands)", re.IGNORECASE),
        re.compile(r"^(kullanım|usage|örnek|example)", re.IGNORECASE),
        re.compile(r"^(özellikleri|features|neler yapabilir)", re.IGNORECASE),
    ],
}

ACTION_PATTERNS = [
    ("read", re.compile(r"oku|read|open", re.IGNORECASE)),
    ("write", re.compile(r"yaz|write|create", re.IGNORECASE)),
    ("execute", re.compile(r"çalıştır|run|execute", re.IGNORECASE)),
    ("delete", re.compile(r"sil|delete|remove", re.IGNORECASE)),
    ("test", re.compile(r"test|kontrol", re.IGNORECASE)),
]

FILE_EXTENSIONS = (".js", ".ts", ".tsx", ".py")
KNOWN_COMMANDS = {"npm", "git", "node", "python", "pip"}
KNOWN_TECHNOLOGIES = {"react", "node", "express", "typescript", "tailwind", "fastapi", "django"}


# ============================================================================
# COMPLEXITY RULES
# ============================================================================

# Requests matching any of these are single-step regardless of keywords
SIMPLE_PATTERNS = [
    re.compile(r"^(hi|hello|hey|selam|merhaba)\b", re.IGNORECASE),
    re.compile(r"^what is", re.IGNORECASE),
    re.compile(r"^explain", re.IGNORECASE),
    re.compile(r"^how (do|does|can)", re.IGNORECASE),
    re.compile(r"^show me", re.IGNORECASE),
    re.compile(r"^read", re.IGNORECASE),
    re.compile(r"^open", re.IGNORECASE),
    re.compile(r"^list", re.IGNORECASE),
    re.compile(r"add (a |one )?function", re.IGNORECASE),
    re.compile(r"create (a |one )?file", re.IGNORECASE),
    re.compile(r"fix (this |the )?bug", re.IGNORECASE),
]


@dataclass(frozen=True)
class KeywordFamily:
    words: tuple
    category: TaskCategory
    steps: int


# Precedence is declaration order: the first family with a matching keyword wins
COMPLEX_KEYWORD_FAMILIES = [
    KeywordFamily(("refactor", "restructure", "reorganize"), TaskCategory.REFACTOR, 5),
    KeywordFamily(("migrate", "upgrade", "convert to"), TaskCategory.REFACTOR, 6),
    KeywordFamily(("implement", "build", "create", "add"), TaskCategory.FEATURE, 4),
    KeywordFamily(("integrate", "connect with"), TaskCategory.FEATURE, 5),
    KeywordFamily(("authentication", "auth system", "jwt"), TaskCategory.REFACTOR, 6),
    KeywordFamily(("database", "api", "backend"), TaskCategory.FEATURE, 5),
    KeywordFamily(("theme", "styling", "design system"), TaskCategory.FEATURE, 4),
    KeywordFamily(("test suite", "e2e test", "integration test"), TaskCategory.TEST, 4),
    KeywordFamily(("document", "documentation"), TaskCategory.DOCUMENTATION, 3),
]

MULTI_CLAUSE_RE = re.compile(r"\b(and|then|after|also|plus)\b", re.IGNORECASE)
WHOLE_SCOPE_RE = re.compile(r"\b(entire|whole|all|complete|full)\b", re.IGNORECASE)
ACTION_VERB_RE = re.compile(r"\b(create|add|update|delete|fix|test|build)", re.IGNORECASE)

MULTI_CLAUSE_BOOST = 0.2
WHOLE_SCOPE_BOOST = 0.2
LONG_REQUEST_BOOST = 0.1
LONG_REQUEST_WORDS = 10
MULTI_CLAUSE_EXTRA_STEPS = 2
MODERATE_MIN_WORDS = 15


# ============================================================================
# INTENT CLASSIFICATION
# ============================================================================

def classify_intent(text: str) -> IntentResult:
    """
    Classify the intent of a request with weighted regex probes.

    Every matching probe adds INTENT_MATCH_INCREMENT to its family (capped at
    1.0). The highest family wins; a tie that includes IDEA resolves to IDEA,
    other ties resolve by declaration order. When no family reaches
    INTENT_MIN_SCORE the request is treated as a generation task (IDEA with
    INTENT_DEFAULT_SCORE).

    Args:
        text: The user's request

    Returns:
        IntentResult with intent, confidence, entities and actions

    Example:
        >>> classify_intent("run the tests").intent
        <IntentType.COMMAND: 'command'>
    """
    raw_scores: Dict[IntentType, float] = {
        intent: sum(INTENT_MATCH_INCREMENT for p in patterns if p.search(text))
        for intent, patterns in INTENT_PATTERNS.items()
    }

    if max(raw_scores.values()) < INTENT_MIN_SCORE:
        raw_scores[IntentType.IDEA] = INTENT_DEFAULT_SCORE

    scores = {intent: min(score, 1.0) for intent, score in raw_scores.items()}
    best = max(scores.values())
    tied = [intent for intent in IntentType if scores[intent] == best]
    intent = IntentType.IDEA if IntentType.IDEA in tied else tied[0]

    result = IntentResult(
        intent=intent,
        confidence=best,
        entities=_extract_entities(text),
        actions=_extract_actions(text),
        scores={i.value: s for i, s in scores.items()},
    )

    logger.debug(f"🧭 Intent classified: {intent.value} (confidence: {best:.2f})")
    return result


def _extract_entities(text: str) -> Dict[str, List[str]]:
    words = text.lower().split()
    return {
        "files": [w for w in words if w.endswith(FILE_EXTENSIONS)],
        "commands": [w for w in words if w in KNOWN_COMMANDS],
        "technologies": [w for w in words if w in KNOWN_TECHNOLOGIES],
    }


def _extract_actions(text: str) -> List[str]:
    return [action for action, pattern in ACTION_PATTERNS if pattern.search(text)]


# ============================================================================
# COMPLEXITY ANALYSIS
# ============================================================================

def analyze_complexity(text: str) -> ComplexityAnalysis:
    """
    Estimate whether a request needs multi-step execution.

    Rules, in order:
    1. Simple allowlist (greetings, single direct verbs) -> not complex, 0.9
    2. First matching keyword family -> complex, boosted confidence, family
       step estimate (+2 for multi-clause requests)
    3. Long request with conjunctions or several action verbs -> moderately
       complex, 0.6, 4 steps
    4. Otherwise not complex, 0.8

    Args:
        text: The user's request

    Returns:
        ComplexityAnalysis
    """
    for pattern in SIMPLE_PATTERNS:
        if pattern.search(text):
            return ComplexityAnalysis(
                is_complex=False,
                confidence=SIMPLE_REQUEST_CONFIDENCE,
                reason="Single-step request detected",
            )

    lower = text.lower()
    word_count = len(text.split())
    multi_clause = MULTI_CLAUSE_RE.search(text) is not None

    for family in COMPLEX_KEYWORD_FAMILIES:
        for word in family.words:
            if word not in lower:
                continue

            boost = (
                (MULTI_CLAUSE_BOOST if multi_clause else 0.0)
                + (WHOLE_SCOPE_BOOST if WHOLE_SCOPE_RE.search(text) else 0.0)
                + (LONG_REQUEST_BOOST if word_count > LONG_REQUEST_WORDS else 0.0)
            )
            steps = family.steps + (MULTI_CLAUSE_EXTRA_STEPS if multi_clause else 0)

            logger.debug(f"🧩 Complex {family.category.value} task via '{word}' (~{steps} steps)")
            return ComplexityAnalysis(
                is_complex=True,
                confidence=min(COMPLEXITY_MAX_CONFIDENCE, COMPLEXITY_BASE_CONFIDENCE + boost),
                reason=f'Detected complex {family.category.value} task: "{word}"',
                estimated_steps=steps,
                category=family.category,
                recommend_night_orders=True,
                suggested_mission=text,
            )

    distinct_verbs = {v.lower() for v in ACTION_VERB_RE.findall(text)}
    if word_count > MODERATE_MIN_WORDS and (multi_clause or len(distinct_verbs) >= 2):
        return ComplexityAnalysis(
            is_complex=True,
            confidence=MODERATE_COMPLEXITY_CONFIDENCE,
            reason="Multiple actions detected in request",
            estimated_steps=MODERATE_COMPLEXITY_STEPS,
            recommend_night_orders=True,
            suggested_mission=text,
        )

    return ComplexityAnalysis(
        is_complex=False,
        confidence=DEFAULT_COMPLEXITY_CONFIDENCE,
        reason="Single-step or direct request",
    )


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

AGENT_SELECTIONS = {
    IntentType.COMMAND: AgentSelection("executor", "Direct command execution required", 8),
    IntentType.IDEA: AgentSelection("generator", "New feature or project generation needed", 6),
    IntentType.REFLECTION: AgentSelection("analyzer", "Error analysis or problem solving required", 9),
    IntentType.EXPLORATION: AgentSelection("router", "Information gathering and exploration", 5),
    IntentType.HELP: AgentSelection("router", "Help and guidance needed", 7),
}

TASK_TYPES = {
    IntentType.COMMAND: "execution",
    IntentType.IDEA: "generation",
    IntentType.REFLECTION: "analysis",
    IntentType.EXPLORATION: "analysis",
    IntentType.HELP: "analysis",
}

MISSION_PREFIX_RE = re.compile(r"^(please|could you|can you|i want to|i need to|help me)\s+", re.IGNORECASE)
MAX_MISSION_TITLE = 80


def select_agent(intent: IntentType) -> AgentSelection:
    """Pick the agent best suited to an intent."""
    return AGENT_SELECTIONS[intent]


def map_intent_to_task_type(intent: IntentType) -> str:
    """Map an intent to its task type: execution, generation or analysis."""
    return TASK_TYPES[intent]


def extract_mission_title(text: str) -> str:
    """
    Turn a request into a short mission title.

    Strips polite prefixes, capitalizes the first letter and truncates to 80
    characters.

    Example:
        >>> extract_mission_title("please migrate the database to postgres")
        'Migrate the database to postgres'
    """
    title = MISSION_PREFIX_RE.sub("", text).strip()
    title = title[:1].upper() + title[1:]

    if len(title) > MAX_MISSION_TITLE:
        title = title[:MAX_MISSION_TITLE - 3] + "..."

    return title


def create_mission_request(text: str, analysis: ComplexityAnalysis) -> Dict[str, Any]:
    """
    Build a mission request for multi-step execution.

    Args:
        text: The user's request
        analysis: Result of analyze_complexity for the same request

    Returns:
        Dict with "mission" (title) and "context" (category, steps, request,
        confidence)
    """
    category = analysis.category.value if analysis.category else "general"
    steps = analysis.estimated_steps if analysis.estimated_steps is not None else "Unknown"

    context = "\n".join([
        f"Category: {category}",
        f"Estimated steps: {steps}",
        f'Original request: "{text}"',
        f"Complexity confidence: {analysis.confidence * 100:.0f}%",
    ])

    return {"mission": extract_mission_title(text), "context": context}

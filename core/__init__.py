"""
Core Agent Logic Module

This module contains the decision core of the agent:
- Request classification (intent + step complexity)
- Tool orchestration (bounded provider ↔ tool loop)
- Pattern store (learned tool sequences with bounded memory)
- Confidence gate (sigmoid-normalized answer scoring)
"""

from .router import (
    IntentType,
    IntentResult,
    TaskCategory,
    ComplexityAnalysis,
    AgentSelection,
    classify_intent,
    analyze_complexity,
    select_agent,
    map_intent_to_task_type,
    extract_mission_title,
    create_mission_request,
)

from .patterns import (
    PatternOutcome,
    ToolStep,
    ErrorContext,
    LearningPattern,
    SuccessPattern,
    FailurePattern,
    Persistence,
    JsonFilePersistence,
    PatternStore,
)

from .confidence import (
    Exchange,
    ConfidenceAnalysis,
    EvaluationMetric,
    ConfidenceGate,
    sigmoid,
)

from .events import (
    LearningEventSink,
    TOOL_ATTEMPT_EVENT,
    CONFIDENCE_EVENT,
)

from .orchestrator import (
    OrchestratorState,
    ToolExecution,
    OrchestrationResult,
    ToolOrchestrator,
    run_tool_loop,
)

__all__ = [
    # Router
    "IntentType",
    "IntentResult",
    "TaskCategory",
    "ComplexityAnalysis",
    "AgentSelection",
    "classify_intent",
    "analyze_complexity",
    "select_agent",
    "map_intent_to_task_type",
    "extract_mission_title",
    "create_mission_request",

    # Patterns
    "PatternOutcome",
    "ToolStep",
    "ErrorContext",
    "LearningPattern",
    "SuccessPattern",
    "FailurePattern",
    "Persistence",
    "JsonFilePersistence",
    "PatternStore",

    # Confidence
    "Exchange",
    "ConfidenceAnalysis",
    "EvaluationMetric",
    "ConfidenceGate",
    "sigmoid",

    # Events
    "LearningEventSink",
    "TOOL_ATTEMPT_EVENT",
    "CONFIDENCE_EVENT",

    # Orchestrator
    "OrchestratorState",
    "ToolExecution",
    "OrchestrationResult",
    "ToolOrchestrator",
    "run_tool_loop",
]

"""
Prompt templates for the agent core.

This module contains:
- The system prompt sent with every tool-calling exchange
- The tool-suggestion hint built from learned patterns
- The revision note appended to low-confidence prompts
- The reasoning summary template used by the confidence gate

All prompts should be maintained here (not hardcoded in services/core).
"""

# ============================================================================
# SYSTEM PROMPTS
# ============================================================================

SYSTEM_PROMPT = """You are a helpful coding assistant with access to tools for file operations, terminal commands, and code search.

Workflow:
1. Read the user's request carefully
2. Call a tool only when it is needed to answer
3. Inspect each tool result; a result starting with "ERROR:" means the call failed and you may retry with different arguments or a different tool
4. Once you have enough information, stop calling tools and answer

Rules:
- ONLY use the tools you were given
- Never call the same tool twice with the same arguments in one request
- Simple greetings need no tools - just respond
- Keep answers concise and concrete"""

WORKSPACE_PROMPT = """Current workspace: {workspace_path}
You have access to read, write and search files and to execute terminal commands in this workspace using the available tools."""

TOOL_HINT_PROMPT = """Similar requests were solved before with this tool sequence: {tool_sequence}.
Prefer it if it fits, but adapt when the request differs."""

# ============================================================================
# CONFIDENCE GATE TEMPLATES
# ============================================================================

REVISION_NOTE_TEMPLATE = """{original_prompt}

**[Confidence Review Note]**
The previous response had low confidence ({confidence_percent:.1f}%).
Please provide:
1. More context-specific details
2. Code examples if applicable
3. Step-by-step explanation
4. Relevance to workspace: {workspace}"""

REASONING_TEMPLATE = """**Confidence Analysis:**

🎯 **Overall confidence:** {confidence_percent:.1f}% (sigmoid of weighted score {total_score:.2f})

**Components:**
- Relevance: {relevance_percent:.1f}%
- Consistency: {consistency_percent:.1f}%
- Integrity: {integrity_percent:.1f}%

**Status:** {status}

**Recommendation:** {recommendation}"""

STATUS_ACCEPTED = "✅ High confidence"
STATUS_REVISE = "⚠️  Low confidence - revision recommended"
RECOMMEND_ACCEPT = "The response is of acceptable quality."
RECOMMEND_REVISE = "Restructure the response with more detail and code examples."

# ============================================================================
# USER-FACING FALLBACKS
# ============================================================================

PROVIDER_UNAVAILABLE_MESSAGE = (
    "The model provider could not be reached. "
    "Check your network connection and that GOOGLE_API_KEY is set and valid."
)

MISSING_CREDENTIAL_MESSAGE = (
    "No API key configured. Set GOOGLE_API_KEY in your environment or .env file."
)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def format_prompt(template: str, **kwargs) -> str:
    """
    Format a prompt template with provided variables.

    Args:
        template: Prompt template string with {placeholders}
        **kwargs: Variables to substitute into the template

    Returns:
        Formatted prompt string
    """
    try:
        return template.format(**kwargs)
    except KeyError as e:
        raise ValueError(f"Missing required prompt variable: {e}")

"""
LLM Service - Gemini Provider Adapter with Langfuse Observability

This service adapts Google's Gemini API to the ModelProvider protocol used by
the tool orchestrator:
- Conversion of the provider-agnostic history into Gemini contents
- Function calling (tool catalog in, tool calls out)
- Automatic retry logic with exponential backoff
- Langfuse tracing for all LLM calls
- Token usage tracking

Transport failures surface as ProviderUnavailableError; everything else about
the conversation is handled by the orchestrator.
"""

import asyncio
import time
import logging
from typing import Optional, Dict, List, Any, Sequence
from functools import wraps

import google.generativeai as genai
from google.generativeai.types import GenerationConfig, HarmCategory, HarmBlockThreshold
from langfuse import Langfuse
from langfuse.decorators import observe, langfuse_context

from config import (
    GOOGLE_API_KEY,
    GEMINI_MODEL,
    TEMPERATURE,
    MAX_TOKENS,
    TOP_P,
    TOP_K,
    MAX_RETRIES,
    RETRY_DELAY,
    LANGFUSE_PUBLIC_KEY,
    LANGFUSE_SECRET_KEY,
    LANGFUSE_HOST,
    LANGFUSE_ENABLED,
    SYSTEM_PROMPT,
)
from .provider import (
    ConversationTurn,
    MissingCredentialError,
    ProviderResponse,
    ProviderUnavailableError,
    Role,
    ToolCallRequest,
)

logger = logging.getLogger(__name__)

# ============================================================================
# INITIALIZATION
# ============================================================================

# Initialize Langfuse client (if enabled)
_langfuse_client: Optional[Langfuse] = None

if LANGFUSE_ENABLED:
    try:
        _langfuse_client = Langfuse(
            public_key=LANGFUSE_PUBLIC_KEY,
            secret_key=LANGFUSE_SECRET_KEY,
            host=LANGFUSE_HOST,
        )
        logger.info("✅ Langfuse observability initialized")
    except Exception as e:
        logger.warning(f"⚠️  Langfuse initialization failed: {e}. Continuing without tracing.")
        _langfuse_client = None
else:
    logger.info("ℹ️  Langfuse observability disabled")


def get_langfuse_client() -> Optional[Langfuse]:
    """Get the Langfuse client instance."""
    return _langfuse_client


def traced(name: str):
    """
    Wrap a coroutine in a Langfuse observation when tracing is enabled.

    No-op when Langfuse is disabled, so tests and offline runs never touch
    the network.
    """
    def decorator(func):
        if not _langfuse_client:
            return func
        return observe(name=name)(func)
    return decorator


# ============================================================================
# SAFETY SETTINGS
# ============================================================================

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}


# ============================================================================
# GENERATION CONFIGURATION
# ============================================================================

def get_generation_config(
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    top_p: Optional[float] = None,
    top_k: Optional[int] = None,
) -> GenerationConfig:
    """
    Create a generation configuration for Gemini API calls.

    Args:
        temperature: Sampling temperature (0.0 - 2.0). Defaults to config value.
        max_tokens: Maximum tokens to generate. Defaults to config value.
        top_p: Nucleus sampling parameter. Defaults to config value.
        top_k: Top-k sampling parameter. Defaults to config value.

    Returns:
        GenerationConfig object
    """
    return GenerationConfig(
        temperature=temperature if temperature is not None else TEMPERATURE,
        max_output_tokens=max_tokens or MAX_TOKENS,
        top_p=top_p or TOP_P,
        top_k=top_k or TOP_K,
    )


# ============================================================================
# RETRY DECORATOR
# ============================================================================

def is_retryable(error: Exception) -> bool:
    """Rate limits, quota exhaustion, timeouts and 5xx responses are worth retrying."""
    error_msg = str(error).lower()
    return any([
        "rate limit" in error_msg,
        "quota" in error_msg,
        "timeout" in error_msg,
        "503" in error_msg,
        "429" in error_msg,
        "500" in error_msg,
    ])


def retry_on_error(max_retries: int = MAX_RETRIES, delay: float = RETRY_DELAY):
    """
    Decorator to retry coroutine calls on transient provider errors.
    Implements exponential backoff.

    Non-retryable errors, and retryable ones that exhaust the attempts, are
    re-raised as ProviderUnavailableError.

    Args:
        max_retries: Maximum number of attempts
        delay: Initial delay between retries (seconds)
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            retries = 0
            current_delay = delay

            while True:
                try:
                    return await func(*args, **kwargs)

                except ProviderUnavailableError:
                    raise

                except Exception as e:
                    error_type = type(e).__name__

                    if not is_retryable(e) or retries >= max_retries - 1:
                        logger.error(f"❌ {func.__name__} failed: {error_type}: {e}")
                        raise ProviderUnavailableError(f"{error_type}: {e}") from e

                    retries += 1
                    logger.warning(
                        f"⚠️  {func.__name__} failed (attempt {retries}/{max_retries}): "
                        f"{error_type}. Retrying in {current_delay}s..."
                    )

                    await asyncio.sleep(current_delay)
                    current_delay *= 2  # Exponential backoff

        return wrapper
    return decorator


# ============================================================================
# HISTORY CONVERSION
# ============================================================================

def history_to_contents(history: Sequence[ConversationTurn]) -> List[Dict[str, Any]]:
    """
    Convert provider-agnostic turns into Gemini content dicts.

    Consecutive tool-result turns are merged into one content so that every
    function call of an assistant turn is answered in a single block, in order.
    """
    contents: List[Dict[str, Any]] = []
    tool_block: Optional[Dict[str, Any]] = None

    for turn in history:
        if turn.role != Role.TOOL:
            tool_block = None

        if turn.role == Role.USER:
            contents.append({"role": "user", "parts": [turn.content]})

        elif turn.role == Role.ASSISTANT:
            parts: List[Any] = []
            if turn.content:
                parts.append(turn.content)
            for call in turn.tool_calls:
                args = call.arguments if isinstance(call.arguments, dict) else {}
                parts.append(genai.protos.Part(
                    function_call=genai.protos.FunctionCall(name=call.name, args=args)
                ))
            contents.append({"role": "model", "parts": parts or [""]})

        else:
            result = turn.tool_result
            part = genai.protos.Part(
                function_response=genai.protos.FunctionResponse(
                    name=(result.name if result and result.name else "tool"),
                    response={"content": turn.content},
                )
            )
            if tool_block is None:
                tool_block = {"role": "user", "parts": []}
                contents.append(tool_block)
            tool_block["parts"].append(part)

    return contents


def parse_response(response: Any) -> ProviderResponse:
    """Extract text and function calls from a Gemini response."""
    texts: List[str] = []
    tool_calls: List[ToolCallRequest] = []

    if response.candidates:
        candidate = response.candidates[0]

        if candidate.content.parts:
            for index, part in enumerate(candidate.content.parts):
                if getattr(part, "text", None):
                    texts.append(part.text)

                func_call = getattr(part, "function_call", None)
                if func_call and func_call.name:
                    tool_calls.append(ToolCallRequest(
                        name=func_call.name,
                        arguments=dict(func_call.args) if func_call.args else {},
                        id=f"call_{index}",
                    ))

    return ProviderResponse(content="".join(texts), tool_calls=tuple(tool_calls))


# ============================================================================
# GEMINI PROVIDER
# ============================================================================

class GeminiProvider:
    """
    ModelProvider backed by the Gemini API.

    Raises MissingCredentialError on construction when no API key is
    available; all transport errors during send() become
    ProviderUnavailableError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        system_instruction: Optional[str] = SYSTEM_PROMPT,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        """
        Initialize the provider.

        Args:
            api_key: Gemini API key (defaults to GOOGLE_API_KEY)
            model_name: Model to use (defaults to GEMINI_MODEL)
            system_instruction: System prompt sent with every call
            temperature: Sampling temperature override
            max_tokens: Max output tokens override
        """
        api_key = api_key or GOOGLE_API_KEY
        if not api_key:
            raise MissingCredentialError()

        genai.configure(api_key=api_key)
        self.model_name = model_name or GEMINI_MODEL
        self.system_instruction = system_instruction
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _build_model(self, tool_catalog: Optional[List[Dict[str, Any]]]) -> Any:
        return genai.GenerativeModel(
            model_name=self.model_name,
            generation_config=get_generation_config(self.temperature, self.max_tokens),
            safety_settings=SAFETY_SETTINGS,
            system_instruction=self.system_instruction,
            tools=tool_catalog or None,
        )

    @retry_on_error()
    async def _generate(self, model: Any, contents: List[Dict[str, Any]]) -> Any:
        return await model.generate_content_async(contents)

    @traced("gemini_send")
    async def send(
        self,
        history: Sequence[ConversationTurn],
        tool_catalog: Optional[List[Dict[str, Any]]] = None,
    ) -> ProviderResponse:
        """
        Send the conversation to Gemini with function calling enabled.

        Args:
            history: Full ordered conversation history
            tool_catalog: Tool declarations ({name, description, parameters})

        Returns:
            ProviderResponse with text and requested tool calls
        """
        if _langfuse_client:
            langfuse_context.update_current_trace(
                name="llm_call_with_tools",
                metadata={
                    "model": self.model_name,
                    "num_tools": len(tool_catalog or []),
                    "num_turns": len(history),
                },
            )

        model = self._build_model(tool_catalog)
        contents = history_to_contents(history)

        start_time = time.time()
        response = await self._generate(model, contents)
        latency = time.time() - start_time

        result = parse_response(response)

        # Track usage
        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            if _langfuse_client:
                langfuse_context.update_current_observation(
                    usage={
                        "input": usage.prompt_token_count,
                        "output": usage.candidates_token_count,
                        "total": usage.total_token_count,
                    }
                )

            logger.debug(
                f"📊 Tokens: {usage.prompt_token_count} in, "
                f"{usage.candidates_token_count} out, "
                f"🔧 {len(result.tool_calls)} tool calls, "
                f"⏱️  {latency:.2f}s"
            )

        return result

"""
LLM client using LiteLLM for multi-provider support.

Task-based model selection with one fallback model on transient errors.
Tracks (model_version, prompt_version) for reproducibility of analyzer output.

Usage:
    from church_crawler.llm.llm_client import LLMClient, LLMTask

    client = LLMClient(task=LLMTask.STRUCTURE_ANALYSIS)
    response = client.generate("Analyze this homepage...", json_mode=True)
"""

import hashlib
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import litellm
from litellm import completion, completion_cost

from ..config import get_llm_models

# Suppress verbose LiteLLM logging
litellm.suppress_debug_info = True


# =============================================================================
# MODEL CONSTANTS
# =============================================================================

MODEL_GEMINI_25_FLASH = "gemini-2.5-flash"
MODEL_GEMINI_25_PRO = "gemini-2.5-pro"
MODEL_CLAUDE_SONNET_45 = "claude-sonnet-4-5"
MODEL_GPT4O = "gpt-4o"
MODEL_GPT4O_MINI = "gpt-4o-mini"

# =============================================================================
# MODEL REGISTRY - Costs and LiteLLM mapping
# =============================================================================

MODEL_REGISTRY: Dict[str, Dict[str, Any]] = {
    MODEL_GEMINI_25_FLASH: {
        "litellm_name": "gemini/gemini-2.5-flash",
        "provider": "google",
        "cost_per_1m_input": 0.15,
        "cost_per_1m_output": 0.60,
        "context_window": 1_000_000,
        "supports_json_mode": True,
    },
    MODEL_GEMINI_25_PRO: {
        "litellm_name": "gemini/gemini-2.5-pro",
        "provider": "google",
        "cost_per_1m_input": 1.25,
        "cost_per_1m_output": 10.00,
        "context_window": 1_000_000,
        "supports_json_mode": True,
    },
    MODEL_CLAUDE_SONNET_45: {
        "litellm_name": "anthropic/claude-sonnet-4-5",
        "provider": "anthropic",
        "cost_per_1m_input": 3.00,
        "cost_per_1m_output": 15.00,
        "context_window": 200_000,
        "supports_json_mode": False,
    },
    MODEL_GPT4O: {
        "litellm_name": "gpt-4o",
        "provider": "openai",
        "cost_per_1m_input": 2.50,
        "cost_per_1m_output": 10.00,
        "context_window": 128_000,
        "supports_json_mode": True,
    },
    MODEL_GPT4O_MINI: {
        "litellm_name": "gpt-4o-mini",
        "provider": "openai",
        "cost_per_1m_input": 0.15,
        "cost_per_1m_output": 0.60,
        "context_window": 128_000,
        "supports_json_mode": True,
    },
}


def get_model_config(model_name: str) -> Dict[str, Any]:
    """
    Registry entry for a model.

    Unregistered names are passed to LiteLLM as-is ("provider/model" ids
    from the environment), with zero cost and no JSON mode.
    """
    if model_name in MODEL_REGISTRY:
        return MODEL_REGISTRY[model_name]
    provider = model_name.split("/", 1)[0] if "/" in model_name else "unknown"
    return {
        "litellm_name": model_name,
        "provider": provider,
        "cost_per_1m_input": 0.0,
        "cost_per_1m_output": 0.0,
        "context_window": 0,
        "supports_json_mode": False,
    }


# =============================================================================
# TASKS AND PROMPT VERSIONING
# =============================================================================


class LLMTask(Enum):
    """LLM task types of the crawler."""

    STRUCTURE_ANALYSIS = "structure_analysis"
    PEOPLE_EXTRACTION = "people_extraction"


# Prompt versions - increment when prompt templates change
PROMPT_VERSIONS: Dict[str, str] = {
    "structure_analysis": "v1.1.0",
    "people_extraction": "v1.0.0",
}


def get_prompt_version(task_name: str) -> str:
    """Get the current prompt version for a task."""
    return PROMPT_VERSIONS.get(task_name, "v0.0.0")


# =============================================================================
# LLM RESPONSE WITH TRACKING
# =============================================================================


@dataclass
class LLMResponse:
    """Response from any LLM provider with tracking metadata."""

    text: str
    model: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    finish_reason: Optional[str] = None

    # Tracking metadata
    model_version: str = ""  # Fully qualified model name
    prompt_version: str = ""  # Version of the prompt template used
    prompt_hash: str = ""  # SHA256 of actual prompt sent
    timestamp: str = ""  # ISO timestamp of the call
    task: Optional[str] = None

    metadata: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """
    LLM client with task-based model selection and a single fallback.

    The primary model comes from CRAWLER_LLM_MODEL, the fallback from
    CRAWLER_LLM_FALLBACK_MODEL (see config.get_llm_models). A transient
    error on the primary tries the fallback once; a permanent error raises
    immediately.
    """

    def __init__(
        self,
        task: Optional[LLMTask] = None,
        model: Optional[str] = None,
        fallback_models: Optional[List[str]] = None,
        api_keys: Optional[Dict[str, str]] = None,
        logger=None,
    ):
        """
        Initialize LLM client.

        Args:
            task: LLM task type (used for prompt version tracking)
            model: Specific model name (overrides the environment)
            fallback_models: Fallback model names (at most one is used)
            api_keys: Dict of provider -> API key
            logger: Optional logger instance
        """
        self.logger = logger
        self.api_keys = api_keys or {}
        self.task = task

        self._setup_api_keys()

        env_primary, env_fallbacks = get_llm_models()
        self.model_name = model or env_primary
        self.model_config = get_model_config(self.model_name)
        fallbacks = fallback_models if fallback_models is not None else env_fallbacks
        self.fallback_models = [m for m in fallbacks if m != self.model_name][:1]

        if self.logger:
            fallback_str = f" (fallback: {self.fallback_models[0]})" if self.fallback_models else ""
            self.logger.debug(f"LLM client initialized: {self.model_name}{fallback_str}")

    def _setup_api_keys(self):
        """Set API keys in environment for LiteLLM (only if not already set)."""
        key_map = {
            "GEMINI_API_KEY": self.api_keys.get("google") or self.api_keys.get("gemini"),
            "ANTHROPIC_API_KEY": self.api_keys.get("anthropic"),
            "OPENAI_API_KEY": self.api_keys.get("openai"),
        }
        for env_var, value in key_map.items():
            if value and not os.environ.get(env_var):
                os.environ[env_var] = value

    def _is_transient_error(self, error: Exception) -> bool:
        """Check if an error is transient and worth retrying with fallback."""
        error_str = str(error).lower()
        transient_indicators = [
            "rate limit",
            "quota exceeded",
            "too many requests",
            "429",
            "503",
            "502",
            "500",
            "timeout",
            "timed out",
            "connection",
            "temporary",
            "overloaded",
        ]
        return any(indicator in error_str for indicator in transient_indicators)

    def _is_permanent_error(self, error: Exception) -> bool:
        """
        Check if an error is permanent and should NOT trigger fallback.

        Permanent errors include:
        - Authentication/API key errors
        - Invalid request format errors
        - Permission errors
        """
        error_str = str(error).lower()
        error_type = type(error).__name__.lower()

        permanent_indicators = [
            "authentication",
            "invalid api key",
            "api key",
            "unauthorized",
            "401",
            "403",
            "permission denied",
            "invalid request",
            "authenticationerror",
            "invalidrequesterror",
        ]
        return any(indicator in error_str or indicator in error_type for indicator in permanent_indicators)

    def _compute_prompt_hash(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Compute SHA256 hash of the full prompt for tracking."""
        full_prompt = f"{system_prompt or ''}|||{prompt}"
        return hashlib.sha256(full_prompt.encode()).hexdigest()[:16]

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        prompt_version: Optional[str] = None,
        timeout: int = 120,
        task: Optional[LLMTask] = None,
    ) -> LLMResponse:
        """
        Generate text using the configured model, falling back once.

        Args:
            prompt: User prompt
            system_prompt: Optional system instructions
            temperature: Sampling temperature (0.0-1.0)
            max_tokens: Maximum tokens to generate
            json_mode: Request JSON output
            prompt_version: Version string for this prompt template
            timeout: Per-call timeout in seconds
            task: Task this call belongs to (defaults to the client's task)

        Returns:
            LLMResponse with text, tracking metadata, and cost
        """
        prompt_hash = self._compute_prompt_hash(prompt, system_prompt)
        call = dict(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode,
            prompt_version=prompt_version,
            prompt_hash=prompt_hash,
            timeout=timeout,
            task=task or self.task,
        )

        try:
            return self._generate_with_model(self.model_name, **call)
        except Exception as e:
            if self._is_permanent_error(e) or not self.fallback_models or not self._is_transient_error(e):
                if self.logger:
                    self.logger.error(f"LLM error with {self.model_name}: {type(e).__name__}: {e}")
                raise
            if self.logger:
                self.logger.warning(
                    f"TRANSIENT error with {self.model_name}: {type(e).__name__}: {e}. "
                    f"Trying fallback to {self.fallback_models[0]}..."
                )

        return self._generate_with_model(self.fallback_models[0], **call)

    def _generate_with_model(
        self,
        model_name: str,
        prompt: str,
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: Optional[int],
        json_mode: bool,
        prompt_version: Optional[str],
        prompt_hash: str,
        timeout: int,
        task: Optional[LLMTask],
    ) -> LLMResponse:
        """Internal method to generate with a specific model."""
        model_config = get_model_config(model_name)

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": model_config["litellm_name"],
            "messages": messages,
            "temperature": temperature,
            "timeout": timeout,
        }

        # Handle max_tokens (some models have issues with this)
        if max_tokens and model_config["provider"] != "google":
            kwargs["max_tokens"] = max_tokens

        if json_mode and model_config.get("supports_json_mode"):
            kwargs["response_format"] = {"type": "json_object"}

        litellm.drop_params = True

        response = completion(**kwargs)

        # LiteLLM/API might return empty choices
        if not response.choices:
            raise RuntimeError(
                f"LLM API returned empty choices array. "
                f"Model: {model_name}, Response: {getattr(response, 'id', 'unknown')}"
            )

        text = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "prompt_tokens", 0) or 0 if usage else 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0 if usage else 0

        try:
            cost = completion_cost(completion_response=response)
        except Exception:
            cost = (input_tokens / 1_000_000) * model_config["cost_per_1m_input"] + (
                output_tokens / 1_000_000
            ) * model_config["cost_per_1m_output"]

        llm_response = LLMResponse(
            text=text,
            model=model_name,
            provider=model_config["provider"],
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost or 0.0,
            finish_reason=response.choices[0].finish_reason,
            model_version=model_config["litellm_name"],
            prompt_version=prompt_version or get_prompt_version(task.value if task else "unknown"),
            prompt_hash=prompt_hash,
            timestamp=datetime.now(timezone.utc).isoformat(),
            task=task.value if task else None,
            metadata={"raw_response_id": getattr(response, "id", None)},
        )

        if self.logger:
            self.logger.debug(
                f"LLM call: {model_name} | "
                f"Tokens: {llm_response.input_tokens}->{llm_response.output_tokens} | "
                f"Cost: ${llm_response.cost_usd:.6f}"
            )

        return llm_response

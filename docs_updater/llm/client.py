# =============================================================================
# DOCS UPDATER - LLM CLIENT
# =============================================================================
"""
LLM Client Module

Unified interface over the LLM providers used by the pipeline stages
(OpenAI, Anthropic, Ollama). It handles:
1. Provider selection based on configuration
2. Request/response formatting, including JSON-only responses
3. Retries of transient provider failures
4. Token accounting, per pipeline stage

Usage:
    client = LLMClient(provider="openai", api_key="sk-...")
    response = client.complete(
        prompt="Summarize this diff...",
        system="You are a code analyzer.",
        temperature=0.1,
        json_mode=True,
        stage="analyze_code_changes",
    )
"""

import os
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List
from dataclasses import dataclass

import requests

from docs_updater.engine.retry import RetryPolicy


logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class LLMProviderError(LLMError):
    """
    A provider call failed.

    ``transient`` marks failures worth retrying (connection problems,
    timeouts); HTTP statuses are judged by the client's retry policy.
    """

    def __init__(self, message: str, status_code: int = None, transient: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class LLMResponse:
    """
    Standardized response from LLM.

    Attributes:
        content: Generated text content
        model: Model used for generation
        tokens_input: Input tokens used
        tokens_output: Output tokens generated
        finish_reason: Why generation stopped (stop, length, etc.)
    """
    content: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    finish_reason: str = "stop"

    @property
    def total_tokens(self) -> int:
        return self.tokens_input + self.tokens_output


@dataclass
class LLMMessage:
    """A role-tagged message (system, user, assistant)."""
    role: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


# =============================================================================
# BASE LLM PROVIDER
# =============================================================================

class BaseLLMProvider(ABC):
    """Interface implemented by each provider."""

    @abstractmethod
    def complete(
        self,
        messages: List[LLMMessage],
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            messages: Conversation messages
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            json_mode: Ask the provider for a JSON object only

        Returns:
            LLMResponse with generated content

        Raises:
            LLMProviderError: If the provider call fails
        """
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        pass


# =============================================================================
# OPENAI PROVIDER
# =============================================================================

class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions provider."""

    DEFAULT_MODEL = "gpt-4o"

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        base_url: str = None,
        timeout: float = 120.0,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: API key (default: from OPENAI_API_KEY env)
            model: Model to use (default: gpt-4o)
            base_url: Optional custom base URL (for Azure, etc.)
            timeout: Request timeout in seconds
        """
        import openai

        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model or os.environ.get("LLM_MODEL", self.DEFAULT_MODEL)
        self.base_url = base_url

        if not self.api_key:
            raise ValueError("OpenAI API key not provided")

        self._openai = openai
        # Retries are driven by LLMClient's RetryPolicy
        self.client = openai.OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=timeout,
            max_retries=0,
        )

    def complete(
        self,
        messages: List[LLMMessage],
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        create_kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            create_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**create_kwargs)
        except self._openai.APIStatusError as e:
            raise LLMProviderError(f"OpenAI error: {e}", status_code=e.status_code)
        except self._openai.APIConnectionError as e:
            raise LLMProviderError(f"OpenAI connection error: {e}", transient=True)

        choice = response.choices[0]
        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            tokens_input=response.usage.prompt_tokens if response.usage else 0,
            tokens_output=response.usage.completion_tokens if response.usage else 0,
            finish_reason=choice.finish_reason or "stop",
        )

    def get_model_name(self) -> str:
        return self.model


# =============================================================================
# ANTHROPIC PROVIDER
# =============================================================================

class AnthropicProvider(BaseLLMProvider):
    """
    Anthropic Claude provider.

    The Messages API has no JSON response mode; ``json_mode`` is ignored and
    the prompts' own JSON instructions apply.
    """

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        base_url: str = None,
        timeout: float = 120.0,
    ):
        import anthropic

        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model or os.environ.get("LLM_MODEL", self.DEFAULT_MODEL)
        self.base_url = base_url

        if not self.api_key:
            raise ValueError("Anthropic API key not provided")

        self._anthropic = anthropic
        self.client = anthropic.Anthropic(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=timeout,
            max_retries=0,
        )

    def complete(
        self,
        messages: List[LLMMessage],
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        # Extract system message if present
        system = None
        conversation = []

        for msg in messages:
            if msg.role == "system":
                system = msg.content
            else:
                conversation.append(msg.to_dict())

        create_kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": conversation,
        }
        if system:
            create_kwargs["system"] = system

        try:
            response = self.client.messages.create(**create_kwargs)
        except self._anthropic.APIStatusError as e:
            raise LLMProviderError(f"Anthropic error: {e}", status_code=e.status_code)
        except self._anthropic.APIConnectionError as e:
            raise LLMProviderError(f"Anthropic connection error: {e}", transient=True)

        content = ""
        if response.content:
            content = "".join(
                getattr(block, "text", "") for block in response.content
            )

        return LLMResponse(
            content=content,
            model=response.model,
            tokens_input=response.usage.input_tokens,
            tokens_output=response.usage.output_tokens,
            finish_reason=response.stop_reason or "stop",
        )

    def get_model_name(self) -> str:
        return self.model


# =============================================================================
# OLLAMA PROVIDER
# =============================================================================

class OllamaProvider(BaseLLMProvider):
    """
    Ollama local LLM provider. No API key required.

    Requires Ollama to be running: https://ollama.ai
    """

    DEFAULT_MODEL = "llama3.2"
    DEFAULT_BASE_URL = "http://localhost:11434"

    def __init__(
        self,
        model: str = None,
        base_url: str = None,
        api_key: str = None,  # Ignored, kept for interface compatibility
        timeout: float = 300.0,
    ):
        self.model = (
            model
            or os.environ.get("OLLAMA_MODEL")
            or os.environ.get("LLM_MODEL", self.DEFAULT_MODEL)
        )
        self.base_url = (
            base_url or os.environ.get("OLLAMA_BASE_URL", self.DEFAULT_BASE_URL)
        ).rstrip("/")
        self.timeout = timeout

    @staticmethod
    def _estimate_tokens(text: str) -> int:
        # ~4 chars per token for LLaMA-family models
        return len(text) // 4

    def complete(
        self,
        messages: List[LLMMessage],
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if json_mode:
            payload["format"] = "json"

        try:
            response = requests.post(
                f"{self.base_url}/api/chat",
                json=payload,
                timeout=self.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise LLMProviderError(
                f"Cannot reach Ollama at {self.base_url}: {e}", transient=True
            )
        except requests.exceptions.RequestException as e:
            raise LLMProviderError(f"Ollama request failed: {e}")

        if response.status_code == 404:
            raise LLMProviderError(
                f"Model '{self.model}' not found. Run: ollama pull {self.model}",
                status_code=404,
            )
        if response.status_code >= 400:
            raise LLMProviderError(
                f"Ollama HTTP error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        result = response.json()
        content = result.get("message", {}).get("content", "")
        input_text = " ".join(m.content for m in messages)

        finish_reason = result.get("done_reason") or (
            "stop" if result.get("done", True) else "length"
        )

        return LLMResponse(
            content=content,
            model=result.get("model", self.model),
            tokens_input=result.get("prompt_eval_count", self._estimate_tokens(input_text)),
            tokens_output=result.get("eval_count", self._estimate_tokens(content)),
            finish_reason=finish_reason,
        )

    def get_model_name(self) -> str:
        return self.model


# =============================================================================
# LLM CLIENT (MAIN INTERFACE)
# =============================================================================

class LLMClient:
    """
    Unified LLM client that abstracts provider differences.

    Usage:
        client = LLMClient(provider="openai")

        response = client.complete(
            prompt="Plan documentation updates",
            system="You are a documentation planner",
            temperature=0.2,
            json_mode=True,
        )

        response = client.chat([
            LLMMessage("system", "You are a technical writer"),
            LLMMessage("user", "Write the page"),
        ])
    """

    PROVIDERS = {
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
        "ollama": OllamaProvider,
    }

    def __init__(
        self,
        provider: str = None,
        model: str = None,
        api_key: str = None,
        retry_policy: RetryPolicy = None,
        metrics: Any = None,
        **kwargs
    ):
        """
        Initialize LLM client.

        Args:
            provider: Provider name (openai, anthropic, ollama)
            model: Model to use (provider-specific)
            api_key: API key for provider
            retry_policy: Retry schedule for transient failures
            metrics: Optional MetricsCollector for per-stage LLM metrics
            **kwargs: Additional provider-specific options (base_url...)
        """
        self.provider_name = (provider or os.environ.get("LLM_PROVIDER", "openai")).lower()

        provider_class = self.PROVIDERS.get(self.provider_name)
        if not provider_class:
            raise ValueError(f"Unknown LLM provider: {self.provider_name}")

        init_kwargs = {k: v for k, v in kwargs.items() if v is not None}
        if model:
            init_kwargs["model"] = model
        if api_key:
            init_kwargs["api_key"] = api_key

        self._provider = provider_class(**init_kwargs)
        self.retry_policy = retry_policy or RetryPolicy()
        self.metrics = metrics

        # Metrics tracking; complete() runs on worker threads
        self._lock = threading.Lock()
        self._total_tokens_input = 0
        self._total_tokens_output = 0
        self._call_count = 0

    def complete(
        self,
        prompt: str,
        system: str = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
        stage: str = None,
    ) -> LLMResponse:
        """
        Generate a completion for a single user prompt.

        Args:
            prompt: User prompt
            system: Optional system prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            json_mode: Ask for a JSON object only
            stage: Pipeline stage name, used for metrics and logs

        Returns:
            LLMResponse with generated content
        """
        messages = []
        if system:
            messages.append(LLMMessage("system", system))
        messages.append(LLMMessage("user", prompt))

        return self.chat(
            messages,
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=json_mode,
            stage=stage,
        )

    def chat(
        self,
        messages: List[LLMMessage],
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
        stage: str = None,
    ) -> LLMResponse:
        """
        Generate a chat completion, retrying transient failures.

        Raises:
            LLMProviderError: When the last attempt fails or the failure
                is not transient
        """
        start_time = time.time()
        delays = self.retry_policy.delays()
        attempt = 1

        while True:
            try:
                response = self._provider.complete(
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    json_mode=json_mode,
                )
                break
            except LLMProviderError as e:
                delay = next(delays, None) if self._is_retryable(e) else None
                if delay is None:
                    logger.error(f"LLM call failed after {attempt} attempt(s): {e}")
                    self._record(stage, None, time.time() - start_time)
                    raise
                logger.warning(
                    f"LLM call failed (attempt {attempt}): {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                time.sleep(delay)
                attempt += 1

        with self._lock:
            self._call_count += 1
            self._total_tokens_input += response.tokens_input
            self._total_tokens_output += response.tokens_output

        duration = time.time() - start_time
        self._record(stage, response, duration)
        logger.debug(
            f"LLM call completed{f' [{stage}]' if stage else ''}: "
            f"{response.tokens_input}+{response.tokens_output} tokens in {duration:.2f}s"
        )

        return response

    def _is_retryable(self, error: LLMProviderError) -> bool:
        return error.transient or self.retry_policy.should_retry_status(error.status_code)

    def _record(self, stage: Optional[str], response: Optional[LLMResponse], duration: float):
        if self.metrics is None:
            return
        self.metrics.record_llm_call(
            stage=stage or "unknown",
            model=response.model if response else self.get_model(),
            tokens_input=response.tokens_input if response else 0,
            tokens_output=response.tokens_output if response else 0,
            duration=duration,
            success=response is not None,
        )

    def get_model(self) -> str:
        return self._provider.get_model_name()

    def get_metrics(self) -> Dict[str, Any]:
        """Get accumulated metrics."""
        with self._lock:
            calls = self._call_count
            tokens_input = self._total_tokens_input
            tokens_output = self._total_tokens_output
        return {
            "call_count": calls,
            "total_tokens_input": tokens_input,
            "total_tokens_output": tokens_output,
            "total_tokens": tokens_input + tokens_output,
            "provider": self.provider_name,
            "model": self.get_model(),
        }


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def create_llm_client(
    provider: str = None,
    model: str = None,
    **kwargs
) -> LLMClient:
    """
    Factory function to create an LLM client.

    Args:
        provider: Provider name (openai, anthropic, ollama)
        model: Model to use
        **kwargs: Additional options (api_key, base_url, retry_policy, metrics)

    Returns:
        Configured LLMClient
    """
    return LLMClient(provider=provider, model=model, **kwargs)


__all__ = [
    "LLMError",
    "LLMProviderError",
    "LLMResponse",
    "LLMMessage",
    "BaseLLMProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "LLMClient",
    "create_llm_client",
]

"""Generation provider adapter.

Detects which LLM provider an API key belongs to, probes that provider's
candidate models until one responds, and remembers the working model for
all later generation calls.

Both supported providers speak the OpenAI chat completions protocol, so a
single backend class serves them with a provider-specific base URL.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum

import httpx
from openai import APIConnectionError, APIError, AsyncOpenAI

from aifamily.config import GenerationConfig
from aifamily.errors import ConnectionFailedError, GenerationError, UnknownProviderError

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    """LLM providers recognised from the API key format."""
    OPENAI = "openai"
    GROQ = "groq"
    UNKNOWN = "unknown"


class ConnectionState(str, Enum):
    """Lifecycle of the adapter's connection to its provider."""
    UNKNOWN = "unknown"
    PROVIDER_DETECTED = "provider_detected"
    CONNECTION_VERIFIED = "connection_verified"
    CONNECTION_FAILED = "connection_failed"


@dataclass(frozen=True)
class ProviderSpec:
    """Static description of a supported provider."""

    kind: ProviderKind
    display_name: str
    base_url: str
    candidate_models: tuple[str, ...]
    default_model: str


def detect_provider(api_key: str) -> ProviderKind:
    """Classify an API key by prefix. No network call is made."""
    if not api_key:
        return ProviderKind.UNKNOWN

    if api_key.startswith("gsk_"):
        return ProviderKind.GROQ

    if api_key.startswith("sk-"):
        return ProviderKind.OPENAI

    return ProviderKind.UNKNOWN


def provider_specs(config: GenerationConfig | None = None) -> dict[ProviderKind, ProviderSpec]:
    """Build provider specs, taking candidate model lists from config."""
    config = config or GenerationConfig()
    return {
        ProviderKind.OPENAI: ProviderSpec(
            kind=ProviderKind.OPENAI,
            display_name="OpenAI",
            base_url="https://api.openai.com/v1",
            candidate_models=tuple(config.openai_models),
            default_model=config.openai_models[0],
        ),
        ProviderKind.GROQ: ProviderSpec(
            kind=ProviderKind.GROQ,
            display_name="Groq",
            base_url="https://api.groq.com/openai/v1",
            candidate_models=tuple(config.groq_models),
            default_model=config.groq_models[0],
        ),
    }


@dataclass
class LLMResponse:
    """Response from a generation backend."""

    content: str
    model: str
    provider: str
    tokens_used: int | None = None
    latency_ms: int | None = None

    def __str__(self) -> str:
        return f"LLMResponse(provider={self.provider}, model={self.model}, content_length={len(self.content)})"


class GenerationBackend:
    """Protocol for generation backends.

    All backends must implement generate() with this signature.
    """

    async def generate(
        self,
        model: str,
        prompt: str,
        system: str | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate a response from the given model."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release any held resources."""


class OpenAICompatibleBackend(GenerationBackend):
    """
    Backend for providers exposing the OpenAI chat completions API.

    Serves both OpenAI and Groq; the ProviderSpec supplies the base URL.
    """

    def __init__(self, spec: ProviderSpec, api_key: str, timeout: float = 60.0) -> None:
        """Initialize backend.

        Args:
            spec: Provider to talk to.
            api_key: API key for the provider.
            timeout: Request timeout in seconds.
        """
        self.spec = spec
        self.timeout = timeout

        # Create HTTP client with connection pooling
        self._http_client = httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )

        self._client = AsyncOpenAI(
            base_url=spec.base_url,
            api_key=api_key,
            http_client=self._http_client,
        )

    async def generate(
        self,
        model: str,
        prompt: str,
        system: str | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate a response.

        Args:
            model: Model name to use.
            prompt: The user prompt.
            system: Optional system prompt.
            temperature: Sampling temperature. None uses model default.

        Returns:
            LLMResponse with generated content and metadata.

        Raises:
            GenerationError: If the request fails for any reason.
        """
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        start_time = time.time()

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
            )
        except APIConnectionError as e:
            logger.error(f"Failed to connect to {self.spec.display_name} at {self.spec.base_url}: {e}")
            raise GenerationError(f"Connection to {self.spec.display_name} failed: {e}") from e
        except APIError as e:
            logger.error(f"{self.spec.display_name} API error for model {model}: {e}")
            raise GenerationError(f"{self.spec.display_name} API error: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)
        content = response.choices[0].message.content or ""
        tokens_used = response.usage.total_tokens if response.usage else None

        logger.debug(
            f"{self.spec.display_name} response: model={model}, tokens={tokens_used}, latency={latency_ms}ms"
        )

        return LLMResponse(
            content=content,
            model=model,
            provider=self.spec.kind.value,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._http_client.aclose()


class GenerationAdapter:
    """
    Drives text generation for one API key.

    States: UNKNOWN -> PROVIDER_DETECTED -> CONNECTION_VERIFIED or
    CONNECTION_FAILED. The provider is detected once, at construction,
    and the matching backend is held for the adapter's lifetime.

    Example:
        >>> adapter = GenerationAdapter("sk-...")
        >>> await adapter.test_connection()
        True
        >>> adapter.working_model
        'gpt-4o-mini'
    """

    def __init__(
        self,
        api_key: str,
        config: GenerationConfig | None = None,
        backend: GenerationBackend | None = None,
    ) -> None:
        """Initialize adapter.

        Args:
            api_key: API key; its prefix selects the provider.
            config: Candidate model lists, test prompt and timeout.
            backend: Optional backend override, mainly for tests.
        """
        self._config = config or GenerationConfig()
        self._working_model: str | None = None
        self._backend: GenerationBackend | None = None

        self._provider = detect_provider(api_key)
        logger.info(f"Detected API provider: {self._provider.value}")

        if self._provider == ProviderKind.UNKNOWN:
            self._spec: ProviderSpec | None = None
            self._state = ConnectionState.UNKNOWN
            return

        self._spec = provider_specs(self._config)[self._provider]
        self._state = ConnectionState.PROVIDER_DETECTED
        self._backend = backend or OpenAICompatibleBackend(self._spec, api_key, timeout=self._config.timeout)

    @property
    def provider(self) -> ProviderKind:
        return self._provider

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def working_model(self) -> str | None:
        return self._working_model

    def _require_spec(self) -> tuple[ProviderSpec, GenerationBackend]:
        if self._spec is None or self._backend is None:
            raise UnknownProviderError()
        return self._spec, self._backend

    async def test_connection(self) -> bool:
        """Probe candidate models in priority order until one responds.

        Returns:
            True once a working model is found.

        Raises:
            UnknownProviderError: If the key format is not recognised.
            ConnectionFailedError: If every candidate model fails.
        """
        spec, backend = self._require_spec()

        last_error: Exception | None = None

        for model in spec.candidate_models:
            try:
                logger.info(f"Testing connection with {spec.kind.value} model: {model}")
                await backend.generate(model, self._config.test_prompt)
            except Exception as e:
                logger.warning(f"Failed to connect using {spec.kind.value} model {model}: {e}")
                last_error = e
                continue

            logger.info(f"Connection successful with {spec.kind.value} model: {model}")
            self._working_model = model
            self._state = ConnectionState.CONNECTION_VERIFIED
            return True

        self._state = ConnectionState.CONNECTION_FAILED
        logger.error(f"All {spec.kind.value} model connection attempts failed: {last_error}")

        message = (
            f"All {spec.kind.value} model connection attempts failed. "
            f"Please check your {spec.display_name} API key and permissions. "
            "Make sure you have access to the models."
        )
        if last_error is not None and str(last_error):
            message += f" Error: {last_error}"

        raise ConnectionFailedError(message, provider=spec.kind.value, last_error=last_error)

    async def generate(self, prompt: str, system: str | None = None) -> LLMResponse:
        """Generate with the working model, or the provider default if none was verified.

        Raises:
            UnknownProviderError: If the key format is not recognised.
            GenerationError: If the backend fails.
        """
        spec, backend = self._require_spec()
        model = self._working_model or spec.default_model

        logger.info(f"Using {spec.kind.value} model for generation: {model}")

        try:
            return await backend.generate(model, prompt, system=system, temperature=self._config.temperature)
        except GenerationError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error from {spec.display_name} backend: {e}")
            raise GenerationError(f"Unexpected error: {e}") from e

    async def close(self) -> None:
        """Close the backend."""
        if self._backend is not None:
            await self._backend.close()

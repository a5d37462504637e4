"""LiteLLM client wrapper for embedding and completion calls.

All embedding and generation calls in the index/completion pipelines route
through this module. LiteLLM's built-in retry is used (num_retries, exponential
backoff). Failures surface as EmbeddingServiceError / GenerationServiceError.
"""

from __future__ import annotations

import numbers
import os
import urllib.error
import urllib.request

import litellm

from codeagent.errors import EmbeddingServiceError, GenerationServiceError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

_DEFAULT_OLLAMA_BASE = "http://localhost:11434"
_HEALTH_TIMEOUT = 3  # seconds

# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string ('openai' if none)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def is_local(model: str) -> bool:
    """True for models served by a local Ollama instance."""
    return provider_of(model) in ("ollama", "ollama_chat")


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return  # No key required (e.g. ollama)

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def ollama_base_url() -> str:
    return os.environ.get("OLLAMA_API_BASE", _DEFAULT_OLLAMA_BASE).rstrip("/")


def check_service(base_url: str | None = None, timeout: float = _HEALTH_TIMEOUT) -> bool:
    """Return True if the Ollama server at *base_url* answers ``GET /api/tags``."""
    url = f"{(base_url or ollama_base_url()).rstrip('/')}/api/tags"
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:
            return 200 <= resp.status < 300
    except (urllib.error.URLError, OSError, ValueError):
        return False


def complete(
    model: str,
    prompt: str,
    max_tokens: int = 256,
    temperature: float = 0.2,
    context_length: int | None = None,
    num_retries: int = 2,
) -> str:
    """Run one non-streaming completion for *prompt*. Returns the content string.

    Args:
        model: LiteLLM model string (provider/model format).
        prompt: Full prompt text, sent as a single user message.
        max_tokens: Maximum output tokens.
        temperature: Sampling temperature.
        context_length: Context window to request (``num_ctx``, Ollama only).
        num_retries: Number of retries on transient errors (exponential backoff).

    Raises:
        GenerationServiceError: On API failure after retries.
    """
    kwargs: dict = {}
    if context_length and is_local(model):
        kwargs["num_ctx"] = context_length
    try:
        response = litellm.completion(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            stream=False,
            max_tokens=max_tokens,
            temperature=temperature,
            num_retries=num_retries,
            **kwargs,
        )
        return response.choices[0].message.content or ""
    except Exception as exc:
        raise GenerationServiceError(f"Generation failed for model '{model}': {exc}") from exc


def embed(model: str, text: str, num_retries: int = 2) -> list[float]:
    """Call litellm.embedding() and return a validated embedding vector.

    Raises:
        EmbeddingServiceError: If the call fails or the vector is empty or
            contains non-numeric values.
    """
    try:
        response = litellm.embedding(
            model=model,
            input=[text],
            num_retries=num_retries,
        )
        vector = response.data[0]["embedding"]
    except Exception as exc:
        raise EmbeddingServiceError(f"Embedding failed for model '{model}': {exc}") from exc

    if not isinstance(vector, (list, tuple)) or not vector:
        raise EmbeddingServiceError(f"Embedding service returned an empty vector for '{model}'.")
    if not all(isinstance(v, numbers.Real) and not isinstance(v, bool) for v in vector):
        raise EmbeddingServiceError(
            f"Embedding service returned non-numeric values for '{model}'."
        )
    return [float(v) for v in vector]

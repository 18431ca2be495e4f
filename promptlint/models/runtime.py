"""
PromptLint - Generative Provider Runtime
HTTP transports for the supported generative model providers.
"""

import time
import logging
import requests
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass

from ..config import ProviderConfig, ProviderType


logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """A provider call failed or returned nothing usable."""

    def __init__(self, message: str, provider: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


@dataclass
class GenerationResult:
    """Result from a generation request."""
    text: str
    model: str
    provider: str
    duration_ms: float
    prompt_tokens: int = 0         # Input/prompt tokens
    output_tokens: int = 0         # Output tokens

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.output_tokens


class GenerativeProvider(ABC):
    """
    Base transport for one provider.

    Subclasses build the request and parse the response; this class owns
    the HTTP call and turns every failure into a ProviderError. There is
    no retry here: fallback across providers is done by the selector.
    """

    provider_type: ProviderType
    default_model: str = ""

    def __init__(self, config: ProviderConfig, timeout: float = 30.0):
        """
        Initialize the transport.

        Args:
            config: Provider configuration (key, model, base URL).
            timeout: Per-request HTTP timeout in seconds.
        """
        self.config = config
        self.api_key = config.api_key
        self.model = config.model_id or self.default_model
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.provider_type.value

    @abstractmethod
    def build_request(
        self,
        prompt: str,
        system: Optional[str],
        max_tokens: int,
        temperature: float
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """Return (url, headers, JSON payload)."""
        pass

    @abstractmethod
    def parse_response(self, data: Dict[str, Any]) -> Tuple[str, int, int]:
        """Return (text, prompt tokens, output tokens)."""
        pass

    def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 1500,
        temperature: float = 0.7
    ) -> GenerationResult:
        """
        Generate a completion.

        Args:
            prompt: User prompt.
            system: Optional system prompt.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.

        Returns:
            GenerationResult with the response.

        Raises:
            ProviderError: on HTTP errors, timeouts or an empty response.
        """
        url, headers, payload = self.build_request(prompt, system, max_tokens, temperature)

        try:
            start_time = time.time()
            response = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
            duration_ms = (time.time() - start_time) * 1000
        except requests.exceptions.Timeout:
            raise ProviderError("Request timeout", self.name)
        except requests.exceptions.ConnectionError as e:
            raise ProviderError(f"Connection error: {e}", self.name)
        except requests.exceptions.RequestException as e:
            raise ProviderError(str(e), self.name)

        if response.status_code != 200:
            raise ProviderError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                self.name,
                status_code=response.status_code
            )

        try:
            text, prompt_tokens, output_tokens = self.parse_response(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Malformed response: {e}", self.name, status_code=response.status_code)

        if not text or not text.strip():
            raise ProviderError("Empty response", self.name, status_code=response.status_code)

        logger.debug("%s responded in %.0fms (%d output tokens)", self.name, duration_ms, output_tokens)
        return GenerationResult(
            text=text,
            model=self.model,
            provider=self.name,
            duration_ms=duration_ms,
            prompt_tokens=prompt_tokens,
            output_tokens=output_tokens
        )


class ClaudeProvider(GenerativeProvider):
    """Anthropic Messages API."""

    provider_type = ProviderType.CLAUDE
    default_model = "claude-sonnet-4-20250514"
    API_URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"

    def build_request(self, prompt, system, max_tokens, temperature):
        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
            "content-type": "application/json",
        }
        return self.config.base_url or self.API_URL, headers, payload

    def parse_response(self, data):
        text = "".join(block.get("text", "") for block in data["content"] if block.get("type") == "text")
        usage = data.get("usage", {})
        return text, usage.get("input_tokens", 0), usage.get("output_tokens", 0)


class OpenAIProvider(GenerativeProvider):
    """OpenAI Chat Completions API."""

    provider_type = ProviderType.OPENAI
    default_model = "gpt-4o-mini"
    API_URL = "https://api.openai.com/v1/chat/completions"

    def build_request(self, prompt, system, max_tokens, temperature):
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        return self.config.base_url or self.API_URL, headers, payload

    def parse_response(self, data):
        text = data["choices"][0]["message"].get("content") or ""
        usage = data.get("usage", {})
        return text, usage.get("prompt_tokens", 0), usage.get("completion_tokens", 0)


class GeminiProvider(GenerativeProvider):
    """Google Gemini generateContent API."""

    provider_type = ProviderType.GEMINI
    default_model = "gemini-1.5-flash"
    API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"

    def build_request(self, prompt, system, max_tokens, temperature):
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": temperature,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        root = (self.config.base_url or self.API_ROOT).rstrip('/')
        return f"{root}/{self.model}:generateContent", headers, payload

    def parse_response(self, data):
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
        usage = data.get("usageMetadata", {})
        return text, usage.get("promptTokenCount", 0), usage.get("candidatesTokenCount", 0)


class OllamaProvider(GenerativeProvider):
    """Local Ollama chat endpoint. Needs no API key."""

    provider_type = ProviderType.OLLAMA
    default_model = "qwen2.5:7b"
    DEFAULT_BASE_URL = "http://localhost:11434"

    def build_request(self, prompt, system, max_tokens, temperature):
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "format": "json",
            "options": {
                "num_predict": max_tokens,
                "temperature": temperature
            }
        }
        base_url = (self.config.base_url or self.DEFAULT_BASE_URL).rstrip('/')
        return f"{base_url}/api/chat", {"Content-Type": "application/json"}, payload

    def parse_response(self, data):
        text = data.get("message", {}).get("content", "")
        return text, data.get("prompt_eval_count", 0), data.get("eval_count", 0)

    def check_health(self) -> bool:
        """Check if Ollama is running and accessible."""
        base_url = (self.config.base_url or self.DEFAULT_BASE_URL).rstrip('/')
        try:
            response = requests.get(f"{base_url}/api/tags", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False


PROVIDER_CLASSES = {
    ProviderType.CLAUDE: ClaudeProvider,
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.GEMINI: GeminiProvider,
    ProviderType.OLLAMA: OllamaProvider,
}


def create_provider(config: ProviderConfig, timeout: float = 30.0) -> GenerativeProvider:
    """Instantiate the transport for a provider config."""
    return PROVIDER_CLASSES[config.provider](config, timeout=timeout)

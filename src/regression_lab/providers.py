"""HTTP clients and key format checks for the remote text-generation providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import requests

from regression_lab.exceptions import NoContentError, ProviderRequestError
from regression_lab.models import AppConfig, ModelChoice, Provider
from regression_lab.prompts import DEEPSEEK_SYSTEM_PROMPT, PROVIDER_DISPLAY_NAMES

_MIN_KEY_LENGTH = 20


@dataclass(frozen=True)
class ProviderSpec:
    """Endpoint, model table and key format for one provider."""

    base_url: str
    models: dict[ModelChoice, str]
    key_prefixes: tuple[str, ...]

    @property
    def default_model(self) -> ModelChoice:
        return next(iter(self.models))


PROVIDERS: dict[Provider, ProviderSpec] = {
    Provider.GEMINI: ProviderSpec(
        base_url="https://generativelanguage.googleapis.com",
        models={
            ModelChoice.GEMINI_3_PRO: "gemini-3-pro-preview",
            ModelChoice.GEMINI_3_FLASH: "gemini-3-flash-preview",
        },
        key_prefixes=("AIza",),
    ),
    Provider.DEEPSEEK: ProviderSpec(
        base_url="https://api.deepseek.com/v1",
        models={
            ModelChoice.DEEPSEEK_CHAT: "deepseek-chat",
            ModelChoice.DEEPSEEK_REASONER: "deepseek-reasoner",
        },
        key_prefixes=("sk-", "dsk_"),
    ),
}


def provider_models(provider: Provider) -> list[ModelChoice]:
    """Model selectors offered for a provider, default first."""
    return list(PROVIDERS[provider].models)


def resolve_model(provider: Provider, model: ModelChoice) -> str:
    """Remote model id for a selector, falling back to the provider default."""
    spec = PROVIDERS[provider]
    return spec.models.get(model, spec.models[spec.default_model])


def validate_api_key(key: str | None, provider: Provider) -> bool:
    """Syntactic key check; the provider remains the authority on validity."""
    if not key or len(key.strip()) < _MIN_KEY_LENGTH:
        return False
    return key.startswith(PROVIDERS[provider].key_prefixes)


def key_format_hint(provider: Provider) -> str:
    prefixes = " or ".join(f'"{prefix}"' for prefix in PROVIDERS[provider].key_prefixes)
    return f"should start with {prefixes} and be at least {_MIN_KEY_LENGTH} characters"


class ProviderClient(ABC):
    """Single-shot text generation over HTTPS."""

    provider: Provider

    def __init__(
        self,
        *,
        api_key: str,
        timeout_s: int = 60,
        temperature: float = 0.3,
        top_p: float = 0.9,
        max_output_tokens: int = 2000,
        https_proxy: str | None = None,
        ssl_cert_file: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._temperature = temperature
        self._top_p = top_p
        self._max_output_tokens = max_output_tokens
        self._proxies = (
            {"http": https_proxy, "https": https_proxy} if https_proxy else None
        )
        self._verify = ssl_cert_file if ssl_cert_file else True

    @property
    def display_name(self) -> str:
        return PROVIDER_DISPLAY_NAMES[self.provider]

    @property
    def spec(self) -> ProviderSpec:
        return PROVIDERS[self.provider]

    @abstractmethod
    def generate(self, prompt: str, model: ModelChoice) -> str:
        """Send one prompt and return the generated text."""

    def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})
        try:
            response = requests.post(
                url,
                json=payload,
                headers=request_headers,
                timeout=self._timeout_s,
                proxies=self._proxies,
                verify=self._verify,
            )
        except requests.Timeout as exc:
            raise ProviderRequestError(
                f"{self.display_name} network error: request timed out after {self._timeout_s}s"
            ) from exc
        except requests.RequestException as exc:
            # Type name only: str(exc) includes the request URL.
            raise ProviderRequestError(
                f"{self.display_name} network error: {type(exc).__name__}"
            ) from exc

        if not response.ok:
            raise ProviderRequestError(
                f"{self.display_name} API error ({response.status_code}): {response.text}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise NoContentError(f"{self.display_name} returned no content") from exc
        if not isinstance(body, dict):
            raise NoContentError(f"{self.display_name} returned no content")
        return body


class GeminiClient(ProviderClient):
    """Google Generative Language ``generateContent`` client."""

    provider = Provider.GEMINI

    def generate(self, prompt: str, model: ModelChoice) -> str:
        remote_model = resolve_model(self.provider, model)
        url = f"{self.spec.base_url}/v1beta/models/{remote_model}:generateContent"
        body = self._post(
            url,
            {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": self._temperature,
                    "topP": self._top_p,
                    "maxOutputTokens": self._max_output_tokens,
                },
            },
            headers={"x-goog-api-key": self._api_key},
        )
        text = extract_gemini_text(body)
        if not text:
            raise NoContentError(f"{self.display_name} returned no content")
        return text


class DeepSeekClient(ProviderClient):
    """OpenAI-compatible ``chat/completions`` client for DeepSeek."""

    provider = Provider.DEEPSEEK

    def generate(self, prompt: str, model: ModelChoice) -> str:
        body = self._post(
            f"{self.spec.base_url}/chat/completions",
            {
                "model": resolve_model(self.provider, model),
                "messages": [
                    {"role": "system", "content": DEEPSEEK_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "temperature": self._temperature,
                "max_tokens": self._max_output_tokens,
                "stream": False,
            },
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        text = extract_deepseek_text(body)
        if not text:
            raise NoContentError(f"{self.display_name} returned no content")
        return text


_CLIENTS: dict[Provider, type[ProviderClient]] = {
    Provider.GEMINI: GeminiClient,
    Provider.DEEPSEEK: DeepSeekClient,
}


def build_client(provider: Provider, api_key: str, config: AppConfig) -> ProviderClient:
    """Create the client for a provider using request settings from config."""
    return _CLIENTS[provider](
        api_key=api_key,
        timeout_s=config.request_timeout_s,
        temperature=config.temperature,
        top_p=config.top_p,
        max_output_tokens=config.max_output_tokens,
        https_proxy=config.https_proxy,
        ssl_cert_file=config.ssl_cert_file,
    )


def extract_gemini_text(body: dict[str, Any]) -> str | None:
    """Text at ``candidates[0].content.parts[0].text``."""
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    return text if isinstance(text, str) else None


def extract_deepseek_text(body: dict[str, Any]) -> str | None:
    """Text at ``choices[0].message.content``."""
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None

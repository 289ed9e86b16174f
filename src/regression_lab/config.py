"""Configuration loading and the persisted credential store."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from regression_lab.exceptions import CredentialError, MissingRuntimeConfigError
from regression_lab.models import AppConfig, ModelChoice, Provider, StoredCredentials
from regression_lab.providers import key_format_hint, provider_models, validate_api_key

API_KEY_STORE_KEY = "REGRESSION_AI_API_KEY"
PROVIDER_STORE_KEY = "REGRESSION_AI_PROVIDER"
MODEL_STORE_KEY = "REGRESSION_AI_MODEL"
_STORE_KEYS = (API_KEY_STORE_KEY, PROVIDER_STORE_KEY, MODEL_STORE_KEY)

_ENV_TO_CONFIG: dict[str, str] = {
    "REGRESSION_AI_API_KEY": "api_key",
    "REGRESSION_AI_PROVIDER": "provider",
    "REGRESSION_AI_MODEL": "model",
    "REGRESSION_LAB_STORE": "store_path",
    "REGRESSION_LAB_TIMEOUT": "request_timeout_s",
    "HTTPS_PROXY": "https_proxy",
    "SSL_CERT_FILE": "ssl_cert_file",
}

_INT_FIELDS = {"request_timeout_s"}


def load_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
    dotenv_path: Path | None = None,
) -> AppConfig:
    """Load config from defaults, yaml file, .env, env, and explicit overrides."""
    payload: dict[str, Any] = {}
    dotenv_to_load = dotenv_path if dotenv_path is not None else Path(".env")
    load_dotenv(dotenv_path=dotenv_to_load, override=False)

    if config_path is not None:
        if not config_path.exists():
            raise MissingRuntimeConfigError(f"Config file does not exist: {config_path}")
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise MissingRuntimeConfigError("Config file must contain a top-level mapping.")
        payload.update(raw)

    for env_key, config_key in _ENV_TO_CONFIG.items():
        env_value = os.getenv(env_key)
        if env_value is None or env_value == "":
            continue
        payload[config_key] = _coerce_env_value(config_key, env_value)

    if overrides:
        for key, value in overrides.items():
            if value is not None:
                payload[key] = value

    try:
        config = AppConfig(**payload)
    except ValidationError as exc:
        raise MissingRuntimeConfigError(f"Invalid configuration: {exc}") from exc

    offered = provider_models(config.provider)
    if config.model not in offered:
        if "model" in payload:
            raise MissingRuntimeConfigError(
                f"Model '{config.model.value}' is not offered by provider "
                f"'{config.provider.value}'. Choose one of: "
                + ", ".join(model.value for model in offered)
            )
        config = config.model_copy(update={"model": offered[0]})

    if config.ssl_cert_file and not Path(config.ssl_cert_file).exists():
        raise MissingRuntimeConfigError(f"SSL cert file does not exist: {config.ssl_cert_file}")

    return config


def _coerce_env_value(config_key: str, env_value: str) -> Any:
    if config_key in _INT_FIELDS:
        return int(env_value)
    return env_value


class CredentialStore:
    """Local YAML storage for the API key, provider and model selection.

    The three keys are written and cleared together. ``load()`` only returns
    credentials when all three are present and well formed.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> StoredCredentials | None:
        raw = self._read()
        if not all(raw.get(key) for key in _STORE_KEYS):
            return None
        try:
            return StoredCredentials(
                api_key=str(raw[API_KEY_STORE_KEY]),
                provider=raw[PROVIDER_STORE_KEY],
                model=raw[MODEL_STORE_KEY],
            )
        except ValidationError:
            return None

    def save(self, api_key: str, provider: Provider, model: ModelChoice) -> StoredCredentials:
        """Validate the key format and model choice, then persist all three keys."""
        if not validate_api_key(api_key, provider):
            raise CredentialError(
                f"{provider.value} API key format is invalid: {key_format_hint(provider)}.",
                provider=provider.value,
            )
        if model not in provider_models(provider):
            raise MissingRuntimeConfigError(
                f"Model '{model.value}' is not offered by provider '{provider.value}'."
            )
        credentials = StoredCredentials(api_key=api_key.strip(), provider=provider, model=model)
        raw = self._read()
        raw.update(
            {
                API_KEY_STORE_KEY: credentials.api_key,
                PROVIDER_STORE_KEY: credentials.provider.value,
                MODEL_STORE_KEY: credentials.model.value,
            }
        )
        self._write(raw)
        return credentials

    def clear(self) -> None:
        raw = self._read()
        for key in _STORE_KEYS:
            raw.pop(key, None)
        if raw:
            self._write(raw)
        elif self.path.exists():
            self.path.unlink()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise MissingRuntimeConfigError(
                f"Credential store must contain a top-level mapping: {self.path}"
            )
        return raw

    def _write(self, raw: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump(raw, sort_keys=True), encoding="utf-8")

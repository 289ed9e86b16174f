from __future__ import annotations

from pathlib import Path

import pytest

from regression_lab.models import Dataset

_ENV_KEYS = (
    "REGRESSION_AI_API_KEY",
    "REGRESSION_AI_PROVIDER",
    "REGRESSION_AI_MODEL",
    "REGRESSION_LAB_STORE",
    "REGRESSION_LAB_TIMEOUT",
    "HTTPS_PROXY",
    "SSL_CERT_FILE",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def perfect_line() -> Dataset:
    return Dataset.from_pairs([(1, 2), (2, 4), (3, 6)])


@pytest.fixture
def constant_y() -> Dataset:
    return Dataset.from_pairs([(1, 5), (2, 5), (3, 5)])


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "store" / "credentials.yaml"

"""Fixtures shared by the CLI command tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

_ENV_OVERRIDES = (
    "CODEAGENT_EMBEDDING_MODEL",
    "CODEAGENT_GENERATION_MODEL",
    "CODEAGENT_COMPLETION_ENABLED",
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's global config and CODEAGENT_* variables out of CLI runs."""
    monkeypatch.setattr("codeagent.config._GLOBAL_CONFIG_PATH", tmp_path / "global-config.yaml")
    for var in _ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)


def _embedding_response(vector=(0.1, 0.2, 0.3, 0.4)) -> MagicMock:
    resp = MagicMock()
    resp.data = [{"embedding": list(vector)}]
    return resp


@pytest.fixture
def fake_embedding():
    """litellm.embedding stand-in returning a fixed 4-dim vector; fails on 'BOOM'."""

    def _embedding(model, input, **kwargs):
        if "BOOM" in input[0]:
            raise RuntimeError("upstream 500")
        return _embedding_response()

    return _embedding


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "store" / "index.db"

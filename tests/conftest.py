from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def clean_turnkey_env(monkeypatch, tmp_path):
    """Isolate tests from TURNKEY_* variables and any local .env / keys.yaml."""
    for key in list(os.environ):
        if key.startswith("TURNKEY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("turnkey_signer.config.load_dotenv", lambda *a, **k: False)
    # config/keys.yaml resolves against the working directory
    monkeypatch.chdir(tmp_path)

"""Configuration loader for the Turnkey client.

API credentials come from the environment (.env is honoured via
python-dotenv). Signing identities come from config/keys.yaml, with
per-selector environment overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from solders.pubkey import Pubkey

from turnkey_signer.errors import ConfigError
from turnkey_signer.signer.registry import KeyIdentity, KeyRegistry, KeySelector
from turnkey_signer.signer.stamp import StampDigest

log = logging.getLogger("turnkey.config")

# Relative to the working directory the client runs from.
CONFIG_DIR = Path("config")
KEYS_PATH = CONFIG_DIR / "keys.yaml"

REQUIRED_ENV = (
    "TURNKEY_API_PUBLIC_KEY",
    "TURNKEY_API_PRIVATE_KEY",
    "TURNKEY_ORGANIZATION_ID",
)

# Variable names used before selectors existed; still honoured for EXAMPLE_KEY.
_LEGACY_EXAMPLE_ENV = ("TURNKEY_PRIVATE_KEY_ID", "TURNKEY_EXAMPLE_PUBLIC_KEY")


class TurnkeySettings(BaseModel):
    """Process-level client settings."""

    api_public_key: str
    api_private_key: str = Field(repr=False)
    organization_id: str
    base_url: str = "https://api.turnkey.com"
    stamp_digest: StampDigest = StampDigest.RAW
    timeout_seconds: float | None = 30.0


def load_settings() -> TurnkeySettings:
    """Read TURNKEY_* variables. Raises ConfigError naming any that are missing."""
    load_dotenv()

    missing = [name for name in REQUIRED_ENV if not os.environ.get(name)]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    values: dict[str, Any] = {
        "api_public_key": os.environ["TURNKEY_API_PUBLIC_KEY"],
        "api_private_key": os.environ["TURNKEY_API_PRIVATE_KEY"],
        "organization_id": os.environ["TURNKEY_ORGANIZATION_ID"],
    }
    if os.environ.get("TURNKEY_BASE_URL"):
        values["base_url"] = os.environ["TURNKEY_BASE_URL"]
    if os.environ.get("TURNKEY_STAMP_DIGEST"):
        values["stamp_digest"] = os.environ["TURNKEY_STAMP_DIGEST"].strip().lower()
    timeout = os.environ.get("TURNKEY_TIMEOUT_SECONDS", "")
    if timeout:
        values["timeout_seconds"] = None if timeout.lower() == "none" else timeout

    try:
        return TurnkeySettings(**values)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors())
        raise ConfigError(f"Invalid Turnkey settings: {fields}") from None


def _parse_pubkey(value: str, selector: KeySelector) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError:
        raise ConfigError(
            f"Invalid public key for {selector.value}: {value!r}"
        ) from None


def _load_keys_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        log.debug("No keys file at %s", path.resolve())
        return {}
    data = yaml.safe_load(path.read_text()) or {}
    keys = data.get("keys", {}) if isinstance(data, dict) else None
    if not isinstance(keys, dict):
        raise ConfigError(f"{path}: expected a 'keys' mapping")
    return keys


def _env_identity(selector: KeySelector) -> tuple[str, str]:
    prefix = f"TURNKEY_{selector.name}"
    key_id = os.environ.get(f"{prefix}_PRIVATE_KEY_ID", "")
    public_key = os.environ.get(f"{prefix}_PUBLIC_KEY", "")
    if selector is KeySelector.EXAMPLE_KEY:
        key_id = key_id or os.environ.get(_LEGACY_EXAMPLE_ENV[0], "")
        public_key = public_key or os.environ.get(_LEGACY_EXAMPLE_ENV[1], "")
    return key_id, public_key


def load_key_registry(path: Path | None = None) -> KeyRegistry:
    """Build the KeyRegistry from keys.yaml plus environment overrides.

    keys.yaml:
        keys:
          example_key:
            private_key_id: "<turnkey private key id>"
            public_key: "<base58 Solana address>"

    Path resolution: explicit argument, then TURNKEY_KEYS_FILE, then
    config/keys.yaml. Selectors with no configuration are left out;
    resolving one raises UnknownSelectorError.
    """
    load_dotenv()
    if path is None:
        path = Path(os.environ.get("TURNKEY_KEYS_FILE", "") or KEYS_PATH)

    raw_keys = _load_keys_file(path)
    valid = {s.value for s in KeySelector}
    unknown = sorted(set(raw_keys) - valid)
    if unknown:
        raise ConfigError(f"{path}: unknown key selector(s): {', '.join(unknown)}")

    identities: dict[KeySelector, KeyIdentity] = {}
    for selector in KeySelector:
        entry = raw_keys.get(selector.value) or {}
        env_id, env_pub = _env_identity(selector)
        key_id = env_id or str(entry.get("private_key_id", ""))
        public_key = env_pub or str(entry.get("public_key", ""))

        if not key_id and not public_key:
            continue
        if not key_id or not public_key:
            raise ConfigError(
                f"{selector.value}: both private_key_id and public_key are required"
            )
        identities[selector] = KeyIdentity(
            private_key_id=key_id,
            public_key=_parse_pubkey(public_key, selector),
        )

    return KeyRegistry(identities)

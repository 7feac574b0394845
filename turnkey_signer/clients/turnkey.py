"""Turnkey API client: stamped requests and delegated transaction signing.

Flow for sign_transaction:
1. Resolve the KeySelector to a KeyIdentity (Key Registry)
2. Check the identity owns a signature slot in the transaction
3. Submit ACTIVITY_TYPE_SIGN_RAW_PAYLOAD_V2 over the message bytes
4. Decode r||s into a 64-byte Signature
5. Write that slot in place and return a copy of the signed transaction

One request/response round trip per signing call. No polling, no retries.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
from solders.signature import Signature

from turnkey_signer.clients.base import BaseClient
from turnkey_signer.config import TurnkeySettings, load_key_registry, load_settings
from turnkey_signer.errors import MissingResultError
from turnkey_signer.models import (
    ActivityResponse,
    SignRawPayloadIntentV2Parameters,
    SignRawPayloadRequest,
    WhoAmIRequest,
    WhoAmIResponse,
)
from turnkey_signer.signer.injector import (
    AnyTransaction,
    find_signer_index,
    inject_signature,
    message_bytes,
    to_signature,
)
from turnkey_signer.signer.registry import KeyIdentity, KeyRegistry, KeySelector
from turnkey_signer.signer.stamp import STAMP_HEADER, Credential, StampDigest, stamp
from turnkey_signer.utils.encoding import bytes_to_hex, hex_to_bytes

log = logging.getLogger("turnkey.client")

DEFAULT_BASE_URL = "https://api.turnkey.com"
WHOAMI_PATH = "/public/v1/query/whoami"
SIGN_RAW_PAYLOAD_PATH = "/public/v1/submit/sign_raw_payload"


def _timestamp_ms() -> str:
    return str(time.time_ns() // 1_000_000)


class TurnkeyClient:
    """Turnkey public API: whoami, sign_raw_payload, transaction signing.

    Credential, organization and registry are fixed at construction and
    only read afterwards, so one instance can serve concurrent calls.
    """

    def __init__(
        self,
        credential: Credential,
        organization_id: str,
        registry: KeyRegistry,
        base_url: str = DEFAULT_BASE_URL,
        stamp_digest: StampDigest = StampDigest.RAW,
        timeout: float | None = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._credential = credential
        self.organization_id = organization_id
        self.registry = registry
        self.stamp_digest = StampDigest(stamp_digest)
        self._api = BaseClient(
            base_url=base_url,
            timeout=timeout,
            provider_name="turnkey",
            transport=transport,
        )

    @classmethod
    def from_env(
        cls,
        settings: TurnkeySettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> TurnkeyClient:
        """Build a client from TURNKEY_* environment variables and keys.yaml."""
        settings = settings or load_settings()
        return cls(
            credential=Credential(
                api_public_key=settings.api_public_key,
                api_private_key=settings.api_private_key,
            ),
            organization_id=settings.organization_id,
            registry=load_key_registry(),
            base_url=settings.base_url,
            stamp_digest=settings.stamp_digest,
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    def stamp(self, body: str | bytes) -> str:
        """X-Stamp value for an exact request body."""
        return stamp(body, self._credential, self.stamp_digest)

    async def _post(self, path: str, body: str, response_model: Any) -> Any:
        x_stamp = self.stamp(body)
        log.debug("POST %s (%d bytes)", path, len(body))
        return await self._api.post_json(
            path,
            content=body.encode("utf-8"),
            response_model=response_model,
            headers={STAMP_HEADER: x_stamp},
        )

    async def who_am_i(self) -> WhoAmIResponse:
        """Identify the organization and user behind the API key."""
        body = WhoAmIRequest(organization_id=self.organization_id).model_dump_json(by_alias=True)
        return await self._post(WHOAMI_PATH, body, WhoAmIResponse)

    async def sign_payload(self, payload: bytes, identity: KeyIdentity) -> bytes:
        """Have Turnkey sign raw bytes with one identity. Returns r||s bytes."""
        request = SignRawPayloadRequest(
            timestamp_ms=_timestamp_ms(),
            organization_id=self.organization_id,
            parameters=SignRawPayloadIntentV2Parameters(
                sign_with=identity.private_key_id,
                payload=bytes_to_hex(payload),
            ),
        )
        body = request.model_dump_json(by_alias=True)
        response: ActivityResponse = await self._post(
            SIGN_RAW_PAYLOAD_PATH, body, ActivityResponse,
        )

        activity = response.activity
        result = activity.result.sign_raw_payload_result if activity.result else None
        if result is None:
            raise MissingResultError(
                f"Missing SIGN_RAW_PAYLOAD result (activity {activity.id}, "
                f"status {activity.status})"
            )

        log.debug("Activity %s completed with status %s", activity.id, activity.status)
        return hex_to_bytes(result.r + result.s)

    async def sign_transaction(
        self,
        transaction: AnyTransaction,
        selector: KeySelector,
    ) -> tuple[AnyTransaction, Signature]:
        """Sign a transaction's message remotely and fill the signer's slot.

        The slot is written on the caller's transaction. Returns a copy of
        the signed transaction and the signature. On any failure the
        caller's transaction is left as it was.
        """
        identity = self.registry.resolve(selector)
        find_signer_index(transaction, identity.public_key)

        raw = await self.sign_payload(message_bytes(transaction), identity)
        signature = to_signature(raw)
        signed = inject_signature(transaction, identity.public_key, signature)

        log.info("Signed transaction for %s (%s)", KeySelector(selector).value, identity.public_key)
        return signed, signature

    async def close(self) -> None:
        await self._api.close()

    async def __aenter__(self) -> TurnkeyClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

"""Tests for the Turnkey client: stamped requests and delegated signing.

HTTP is simulated with httpx.MockTransport; no network access.
"""

from __future__ import annotations

import json
import time

import httpx
import pytest
from solders.pubkey import Pubkey
from solders.signature import Signature

from tests.mocks.mock_turnkey import (
    ACTIVITY_ID,
    INVALID_ARGUMENT_ERROR,
    ORGANIZATION_ID,
    PRIVATE_KEY_ID,
    SIG_R,
    SIG_S,
    SIGN_RAW_PAYLOAD_EMPTY_RESULT,
    SIGN_RAW_PAYLOAD_NO_RESULT,
    SIGN_RAW_PAYLOAD_SHORT_SIGNATURE,
    SIGN_RAW_PAYLOAD_SUCCESS,
    WHOAMI_SUCCESS,
)
from tests.mocks.transactions import unsigned_transaction
from turnkey_signer.clients.turnkey import SIGN_RAW_PAYLOAD_PATH, WHOAMI_PATH, TurnkeyClient
from turnkey_signer.errors import (
    MissingResultError,
    RemoteMethodError,
    SerializationError,
    SignatureFormatError,
    TransportError,
    UnknownSelectorError,
    UnknownSignerError,
)
from turnkey_signer.signer.registry import KeyIdentity, KeyRegistry, KeySelector
from turnkey_signer.signer.stamp import StampDigest, generate_api_key_pair, verify_stamp

EXPECTED_SIGNATURE = bytes.fromhex(SIG_R + SIG_S)


class FakeTurnkey:
    """Records requests and replays one canned response."""

    def __init__(self, status_code: int = 200, body: dict | None = None, raw: bytes | None = None):
        self.status_code = status_code
        self.body = body
        self.raw = raw
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def make_client(handler, identity_key: Pubkey | None = None, digest=StampDigest.RAW) -> TurnkeyClient:
    identity = KeyIdentity(PRIVATE_KEY_ID, identity_key or Pubkey.new_unique())
    return TurnkeyClient(
        credential=generate_api_key_pair(),
        organization_id=ORGANIZATION_ID,
        registry=KeyRegistry({KeySelector.EXAMPLE_KEY: identity}),
        base_url="https://api.turnkey.test",
        stamp_digest=digest,
        transport=httpx.MockTransport(handler),
    )


class TestSignPayload:
    @pytest.mark.asyncio
    async def test_end_to_end_signature_bytes(self):
        """Payload 01 02 03; remote r=aa*32, s=bb*32 -> 64 bytes r||s."""
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_SUCCESS)
        async with make_client(fake) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            signature = await client.sign_payload(b"\x01\x02\x03", identity)

        assert signature == b"\xaa" * 32 + b"\xbb" * 32
        assert len(signature) == 64

    @pytest.mark.asyncio
    async def test_request_shape(self):
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_SUCCESS)
        before_ms = time.time_ns() // 1_000_000
        async with make_client(fake) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            await client.sign_payload(b"\x01\x02\x03", identity)
        after_ms = time.time_ns() // 1_000_000

        assert len(fake.requests) == 1
        request = fake.last
        assert request.method == "POST"
        assert request.url.path == SIGN_RAW_PAYLOAD_PATH
        assert request.headers["Content-Type"] == "application/json"

        body = json.loads(request.content)
        assert list(body) == ["type", "timestampMs", "organizationId", "parameters"]
        assert body["type"] == "ACTIVITY_TYPE_SIGN_RAW_PAYLOAD_V2"
        assert body["organizationId"] == ORGANIZATION_ID
        assert before_ms <= int(body["timestampMs"]) <= after_ms
        assert body["parameters"] == {
            "signWith": PRIVATE_KEY_ID,
            "payload": "010203",
            "encoding": "PAYLOAD_ENCODING_HEXADECIMAL",
            "hashFunction": "HASH_FUNCTION_NOT_APPLICABLE",
        }

    @pytest.mark.asyncio
    async def test_stamp_covers_exact_sent_bytes(self):
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_SUCCESS)
        async with make_client(fake) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            await client.sign_payload(b"\x01\x02\x03", identity)

        request = fake.last
        assert verify_stamp(request.content, request.headers["X-Stamp"])

    @pytest.mark.asyncio
    async def test_legacy_digest_mode_is_used_when_configured(self):
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_SUCCESS)
        async with make_client(fake, digest=StampDigest.SHA256) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            await client.sign_payload(b"\x01", identity)

        request = fake.last
        assert verify_stamp(request.content, request.headers["X-Stamp"], StampDigest.SHA256)
        assert not verify_stamp(request.content, request.headers["X-Stamp"], StampDigest.RAW)

    @pytest.mark.asyncio
    async def test_fresh_timestamp_and_stamp_per_call(self):
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_SUCCESS)
        async with make_client(fake) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            await client.sign_payload(b"\x01", identity)
            await client.sign_payload(b"\x02", identity)

        first, second = fake.requests
        assert first.headers["X-Stamp"] != second.headers["X-Stamp"]
        assert not verify_stamp(second.content, first.headers["X-Stamp"])


class TestSignPayloadErrors:
    @pytest.mark.asyncio
    async def test_remote_error_propagates_structure(self):
        fake = FakeTurnkey(status_code=400, body=INVALID_ARGUMENT_ERROR)
        async with make_client(fake) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            with pytest.raises(RemoteMethodError) as exc:
                await client.sign_payload(b"\x01", identity)

        err = exc.value
        assert err.status_code == 400
        assert err.code == 3
        assert err.error.message == "invalid request"
        assert err.error.details[0].type_field == "type.googleapis.com/google.rpc.BadRequest"
        assert [(v.field, v.description) for v in err.field_violations] == [
            ("parameters.signWith", "unknown private key"),
            ("timestampMs", "timestamp too old"),
        ]
        assert "Field: parameters.signWith, Description: unknown private key" in str(err)

    @pytest.mark.asyncio
    async def test_unstructured_error_body(self):
        fake = FakeTurnkey(status_code=502, raw=b"<html>bad gateway</html>")
        async with make_client(fake) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            with pytest.raises(SerializationError, match="502"):
                await client.sign_payload(b"\x01", identity)

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            with pytest.raises(TransportError, match="connection refused"):
                await client.sign_payload(b"\x01", identity)

    @pytest.mark.asyncio
    async def test_missing_result(self):
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_NO_RESULT)
        async with make_client(fake) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            with pytest.raises(MissingResultError) as exc:
                await client.sign_payload(b"\x01", identity)

        assert ACTIVITY_ID in str(exc.value)
        assert "ACTIVITY_STATUS_PENDING" in str(exc.value)
        # Terminal: exactly one round trip, no polling
        assert len(fake.requests) == 1

    @pytest.mark.asyncio
    async def test_result_without_sign_raw_payload_result(self):
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_EMPTY_RESULT)
        async with make_client(fake) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            with pytest.raises(MissingResultError):
                await client.sign_payload(b"\x01", identity)

    @pytest.mark.asyncio
    async def test_unexpected_success_shape(self):
        fake = FakeTurnkey(body={"unexpected": True})
        async with make_client(fake) as client:
            identity = client.registry.resolve(KeySelector.EXAMPLE_KEY)
            with pytest.raises(SerializationError):
                await client.sign_payload(b"\x01", identity)


class TestSignTransaction:
    @pytest.mark.asyncio
    async def test_signs_matching_slot(self):
        tx = unsigned_transaction(3)
        signer = tx.message.account_keys[1]
        before = list(tx.signatures)
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_SUCCESS)

        async with make_client(fake, identity_key=signer) as client:
            signed, signature = await client.sign_transaction(tx, KeySelector.EXAMPLE_KEY)

        assert signature == Signature.from_bytes(EXPECTED_SIGNATURE)
        assert signed.signatures[1] == signature
        assert signed.signatures[0] == before[0]
        assert signed.signatures[2] == before[2]
        # The caller's transaction carries the signature too
        assert tx.signatures[1] == signature
        assert tx.signatures[0] == before[0]
        assert tx.signatures[2] == before[2]
        # The signed payload is the transaction's message bytes
        body = json.loads(fake.last.content)
        assert body["parameters"]["payload"] == bytes(tx.message_data()).hex()

    @pytest.mark.asyncio
    async def test_unknown_signer_skips_remote_call(self):
        tx = unsigned_transaction(2)
        before = list(tx.signatures)
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_SUCCESS)

        async with make_client(fake) as client:
            with pytest.raises(UnknownSignerError):
                await client.sign_transaction(tx, KeySelector.EXAMPLE_KEY)

        assert fake.requests == []
        assert list(tx.signatures) == before

    @pytest.mark.asyncio
    async def test_unregistered_selector(self):
        tx = unsigned_transaction(1)
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_SUCCESS)
        async with make_client(fake) as client:
            with pytest.raises(UnknownSelectorError):
                await client.sign_transaction(tx, KeySelector.FEE_PAYER)
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_bad_signature_length(self):
        tx = unsigned_transaction(1)
        before = list(tx.signatures)
        fake = FakeTurnkey(body=SIGN_RAW_PAYLOAD_SHORT_SIGNATURE)

        async with make_client(fake, identity_key=tx.message.account_keys[0]) as client:
            with pytest.raises(SignatureFormatError):
                await client.sign_transaction(tx, KeySelector.EXAMPLE_KEY)

        assert list(tx.signatures) == before

    @pytest.mark.asyncio
    async def test_remote_error_leaves_transaction_unchanged(self):
        tx = unsigned_transaction(1)
        before = list(tx.signatures)
        fake = FakeTurnkey(status_code=400, body=INVALID_ARGUMENT_ERROR)

        async with make_client(fake, identity_key=tx.message.account_keys[0]) as client:
            with pytest.raises(RemoteMethodError):
                await client.sign_transaction(tx, KeySelector.EXAMPLE_KEY)

        assert list(tx.signatures) == before


class TestWhoAmI:
    @pytest.mark.asyncio
    async def test_who_am_i(self):
        fake = FakeTurnkey(body=WHOAMI_SUCCESS)
        async with make_client(fake) as client:
            who = await client.who_am_i()

        assert who.organization_name == "Boar Capital"
        assert who.username == "api-bot"
        request = fake.last
        assert request.url.path == WHOAMI_PATH
        assert json.loads(request.content) == {"organizationId": ORGANIZATION_ID}
        assert verify_stamp(request.content, request.headers["X-Stamp"])


class TestFromEnv:
    @pytest.mark.asyncio
    async def test_from_env(self, monkeypatch):
        credential = generate_api_key_pair()
        signer = Pubkey.new_unique()
        monkeypatch.setenv("TURNKEY_API_PUBLIC_KEY", credential.api_public_key)
        monkeypatch.setenv("TURNKEY_API_PRIVATE_KEY", credential.api_private_key)
        monkeypatch.setenv("TURNKEY_ORGANIZATION_ID", ORGANIZATION_ID)
        monkeypatch.setenv("TURNKEY_STAMP_DIGEST", "sha256")
        monkeypatch.setenv("TURNKEY_EXAMPLE_KEY_PRIVATE_KEY_ID", PRIVATE_KEY_ID)
        monkeypatch.setenv("TURNKEY_EXAMPLE_KEY_PUBLIC_KEY", str(signer))

        async with TurnkeyClient.from_env() as client:
            assert client.organization_id == ORGANIZATION_ID
            assert client.stamp_digest is StampDigest.SHA256
            assert client.registry.resolve(KeySelector.EXAMPLE_KEY).public_key == signer

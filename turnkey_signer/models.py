"""Wire models for the Turnkey public API.

Field names on the wire are camelCase; Python attributes are snake_case.
Outbound models are serialised with ``by_alias=True`` into compact JSON,
which is the exact byte string that gets stamped and sent.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ACTIVITY_TYPE_SIGN_RAW_PAYLOAD_V2 = "ACTIVITY_TYPE_SIGN_RAW_PAYLOAD_V2"
PAYLOAD_ENCODING_HEXADECIMAL = "PAYLOAD_ENCODING_HEXADECIMAL"
HASH_FUNCTION_NOT_APPLICABLE = "HASH_FUNCTION_NOT_APPLICABLE"
SIGNATURE_SCHEME_TK_API_P256 = "SIGNATURE_SCHEME_TK_API_P256"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Outbound ────────────────────────────────────────────────────────


class ApiStamp(_WireModel):
    """Signed envelope carried in the X-Stamp header."""

    public_key: str
    signature: str
    scheme: str = SIGNATURE_SCHEME_TK_API_P256


class SignRawPayloadIntentV2Parameters(_WireModel):
    sign_with: str
    payload: str
    encoding: str = PAYLOAD_ENCODING_HEXADECIMAL
    hash_function: str = HASH_FUNCTION_NOT_APPLICABLE


class SignRawPayloadRequest(_WireModel):
    activity_type: str = Field(default=ACTIVITY_TYPE_SIGN_RAW_PAYLOAD_V2, alias="type")
    timestamp_ms: str
    organization_id: str
    parameters: SignRawPayloadIntentV2Parameters


class WhoAmIRequest(_WireModel):
    organization_id: str


# ── Inbound ─────────────────────────────────────────────────────────


class SignRawPayloadResult(_WireModel):
    r: str
    s: str
    v: str | None = None


class ActivityResult(_WireModel):
    sign_raw_payload_result: SignRawPayloadResult | None = None


class Activity(_WireModel):
    id: str
    organization_id: str
    status: str
    activity_type: str = Field(alias="type")
    result: ActivityResult | None = None


class ActivityResponse(_WireModel):
    activity: Activity


class WhoAmIResponse(_WireModel):
    organization_id: str
    organization_name: str
    user_id: str
    username: str


class FieldViolation(_WireModel):
    field: str
    description: str


class ErrorDetail(_WireModel):
    type_field: str = Field(default="", alias="@type")
    field_violations: list[FieldViolation] = Field(default_factory=list)


class TurnkeyResponseError(_WireModel):
    """Structured error body returned on non-2xx responses."""

    code: int
    message: str
    details: list[ErrorDetail] = Field(default_factory=list)

    def __str__(self) -> str:
        lines = [f"Error Code: {self.code}, Message: {self.message}"]
        for detail in self.details:
            lines.append(f"Detail: {detail.type_field}")
            for violation in detail.field_violations:
                lines.append(
                    f"  Field: {violation.field}, Description: {violation.description}"
                )
        return "\n".join(lines)

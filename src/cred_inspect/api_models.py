"""
cred-inspect HTTP API models.

Request and response bodies for /api/decode and /api/prefill. Response field
names are camelCase on the wire (resolvedClaims, docType, ...).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from . import cbor_utils
from .models import (
    CheckName,
    ClaimSource,
    DecodeResult,
    Disclosure,
    DocumentEnvelope,
    Outcome,
    SegmentKind,
    SelectiveDisclosureEnvelope,
    SimpleEnvelope,
    ValidityAssessment,
    ValidityStatus,
)
from .validity import format_timestamp


# =============================================================================
# Request Models
# =============================================================================

class DecodeRequest(BaseModel):
    """Request body for /api/decode"""
    input: str = ""
    key: Optional[str] = None  # PEM or JWK; blank means no key


# =============================================================================
# Response Models
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ErrorResponse(BaseModel):
    """Body of every non-200 response"""
    error: str


class PrefillResponse(BaseModel):
    """Response for /api/prefill; empty when there is nothing to prefill"""
    credential: str = ""


class TokenSection(BaseModel):
    """Decoded holder-binding token"""
    header: Dict[str, Any]
    payload: Dict[str, Any]
    signature: Optional[str] = None


class DisclosureEntry(_CamelModel):
    index: int
    salt: str
    name: Optional[str]
    value: Any
    is_array_entry: bool = Field(alias="isArrayEntry")
    digest: str
    resolved: bool
    error: Optional[str] = None

    @classmethod
    def from_disclosure(cls, index: int, d: Disclosure) -> "DisclosureEntry":
        fields: Dict[str, Any] = {
            "index": index,
            "salt": d.salt,
            "name": d.name,
            "value": d.value,
            "is_array_entry": d.is_array_entry,
            "digest": d.digest,
            "resolved": d.resolved,
        }
        if d.error is not None:
            fields["error"] = d.error
        return cls(**fields)


class ResolvedClaimEntry(BaseModel):
    value: Any
    source: ClaimSource


class CheckEntry(BaseModel):
    name: CheckName
    outcome: Outcome
    detail: str


class ValiditySection(_CamelModel):
    status: ValidityStatus
    issued_at: Optional[str] = Field(default=None, alias="issuedAt")
    valid_from: Optional[str] = Field(default=None, alias="validFrom")
    expires_at: Optional[str] = Field(default=None, alias="expiresAt")
    checklist: List[CheckEntry]

    @classmethod
    def from_assessment(cls, validity: ValidityAssessment) -> "ValiditySection":
        def stamp(value: Optional[datetime]) -> Optional[str]:
            return format_timestamp(value) if value is not None else None

        return cls(
            status=validity.status,
            issued_at=stamp(validity.issued_at),
            valid_from=stamp(validity.valid_from),
            expires_at=stamp(validity.expires_at),
            checklist=[
                CheckEntry(name=c.name, outcome=c.outcome, detail=c.detail)
                for c in validity.checklist
            ],
        )


class SegmentEntry(BaseModel):
    id: str
    start: int
    end: int
    kind: SegmentKind
    index: Optional[int] = None


class DecodeResponse(_CamelModel):
    """Response for /api/decode

    Only the fields that apply to the detected format are set; serialize with
    exclude_unset so the others are left out.
    """
    format: str
    header: Optional[Dict[str, Any]] = None
    payload: Optional[Dict[str, Any]] = None
    doc_type: Optional[str] = Field(default=None, alias="docType")
    mso: Optional[Dict[str, Any]] = None
    claims: Optional[Dict[str, Any]] = None
    device_auth: Optional[Any] = Field(default=None, alias="deviceAuth")
    disclosures: Optional[List[DisclosureEntry]] = None
    resolved_claims: Optional[Dict[str, ResolvedClaimEntry]] = Field(
        default=None, alias="resolvedClaims"
    )
    key_binding_jwt: Optional[TokenSection] = Field(default=None, alias="keyBindingJWT")
    warnings: Optional[List[str]] = None
    validity: Optional[ValiditySection] = None
    segments: List[SegmentEntry] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: DecodeResult) -> "DecodeResponse":
        envelope = result.envelope
        fields: Dict[str, Any] = {"format": result.format}

        if isinstance(envelope, DocumentEnvelope):
            fields["doc_type"] = envelope.doc_type
            fields["mso"] = cbor_utils.to_json_safe(envelope.metadata_object)
            fields["claims"] = cbor_utils.to_json_safe(envelope.claims_by_namespace)
            if envelope.device_auth is not None:
                fields["device_auth"] = cbor_utils.to_json_safe(envelope.device_auth)
        else:
            fields["header"] = envelope.header
            fields["payload"] = envelope.payload

        if isinstance(envelope, SelectiveDisclosureEnvelope):
            fields["disclosures"] = [
                DisclosureEntry.from_disclosure(i, d)
                for i, d in enumerate(result.disclosures or ())
            ]
            fields["resolved_claims"] = {
                name: ResolvedClaimEntry(value=claim.value, source=claim.source)
                for name, claim in (result.resolved_claims or {}).items()
            }
            if envelope.holder_binding_token is not None:
                fields["key_binding_jwt"] = _token_section(envelope.holder_binding_token)

        if result.warnings:
            fields["warnings"] = list(result.warnings)
        if result.validity is not None:
            fields["validity"] = ValiditySection.from_assessment(result.validity)
        fields["segments"] = [
            SegmentEntry(id=s.id, start=s.start, end=s.end, kind=s.kind, index=s.index)
            for s in result.segments
        ]
        return cls(**fields)

    def to_body(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys and unset fields left out."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


def _token_section(token: SimpleEnvelope) -> TokenSection:
    return TokenSection(
        header=token.header,
        payload=token.payload,
        signature=token.raw_signature or None,
    )

"""Decode pipeline: envelope, disclosures, validity and segments in one pass."""

import logging
from datetime import datetime
from typing import Any, Optional

from . import cbor_utils
from .api_models import DecodeResponse
from .disclosures import resolve
from .envelope import decode
from .mdoc import DocumentParser
from .models import DecodeResult, DocumentEnvelope, SelectiveDisclosureEnvelope
from .segments import build_segments
from .validity import StatusChecker, evaluate
from .verifiers import SignatureVerifier

logger = logging.getLogger(__name__)

# mDOC elements carrying the issuer identity, in lookup order
_DOCUMENT_SUMMARY_ELEMENTS = ("issuing_authority", "issuing_country")
_TOKEN_SUMMARY_CLAIMS = ("iss", "sub", "vct")


def inspect_credential(
    raw: str,
    verify_key: Optional[str] = None,
    now: Optional[datetime] = None,
    document_parser: Optional[DocumentParser] = None,
    signature_verifier: Optional[SignatureVerifier] = None,
    status_checker: Optional[StatusChecker] = None,
    generation: int = 0,
) -> DecodeResult:
    """Decode a credential and assess it.

    Args:
        raw: Credential text as entered
        verify_key: Optional PEM or JWK verification key
        now: Reference time for validity (current time by default)
        document_parser: mDOC parser collaborator
        signature_verifier: Signature collaborator
        status_checker: Status-list collaborator
        generation: Decode cycle the result belongs to

    Returns:
        DecodeResult for this input snapshot

    Raises:
        UnrecognizedFormat: If the input matches no envelope shape
        MalformedEnvelope: If a token's header or payload is unreadable
    """
    envelope = decode(raw, document_parser)
    warnings = list(getattr(envelope, "warnings", ()))

    resolution = None
    disclosures = None
    resolved_claims = None
    if isinstance(envelope, SelectiveDisclosureEnvelope):
        resolution = resolve(envelope)
        disclosures = resolution.disclosures
        resolved_claims = resolution.resolved_claims
        warnings.extend(resolution.warnings)

    validity = evaluate(
        envelope,
        resolution=resolution,
        verify_key=verify_key,
        now=now,
        signature_verifier=signature_verifier,
        status_checker=status_checker,
    )

    logger.debug(
        "decoded %s credential (generation %d, status %s)",
        envelope.format,
        generation,
        validity.status.value,
        extra={"generation": generation, "format": envelope.format},
    )

    return DecodeResult(
        raw=raw,
        envelope=envelope,
        disclosures=disclosures,
        resolved_claims=resolved_claims,
        validity=validity,
        segments=tuple(build_segments(raw, envelope)),
        warnings=tuple(warnings),
        generation=generation,
    )


def to_json(result: DecodeResult) -> dict[str, Any]:
    """Serialize a DecodeResult into the decode-response shape.

    Only the keys that apply to the detected format are present.
    """
    return DecodeResponse.from_result(result).to_body()


def summarize(result: DecodeResult) -> dict[str, Any]:
    """Pick out who issued the credential, to whom, and what it is.

    Returns:
        Mapping with any of iss, sub, vct (tokens) or docType,
        issuing_authority, issuing_country (mDOC)
    """
    envelope = result.envelope
    summary: dict[str, Any] = {}

    if isinstance(envelope, DocumentEnvelope):
        if envelope.doc_type:
            summary["docType"] = envelope.doc_type
        for element in _DOCUMENT_SUMMARY_ELEMENTS:
            for claims in envelope.claims_by_namespace.values():
                if element in claims:
                    summary[element] = cbor_utils.to_json_safe(claims[element])
                    break
        return summary

    claims = {name: c.value for name, c in (result.resolved_claims or {}).items()}
    claims = claims or envelope.payload
    for name in _TOKEN_SUMMARY_CLAIMS:
        value = claims.get(name)
        if isinstance(value, str) and value:
            summary[name] = value
    return summary

"""Validity normalization and the four-check confidence checklist.

JWT and SD-JWT carry epoch seconds (exp, iat, nbf) in the payload; mDOC
carries absolute timestamps (validFrom, validUntil, signed) in the mobile
security object. Both are reduced to timezone-aware datetimes and judged
by the same precedence rules.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Protocol

from . import config
from .disclosures import resolve
from .models import (
    CHECK_ORDER,
    CheckName,
    CheckResult,
    DocumentEnvelope,
    Envelope,
    Outcome,
    Resolution,
    SelectiveDisclosureEnvelope,
    ValidityAssessment,
    ValidityStatus,
)
from .verifiers import DefaultSignatureVerifier, SignatureVerifier, VerificationResult

logger = logging.getLogger(__name__)

NOT_APPLICABLE_JWT = "Not applicable for plain JWT"
NOT_APPLICABLE_MDOC = "Not applicable for mDOC"
NO_KEY_PROVIDED = "No key provided"


class StatusChecker(Protocol):
    """Protocol for a status-list / revocation collaborator."""

    def check(self, envelope: Envelope) -> VerificationResult:
        """Report whether the credential is still in good standing."""


def _from_epoch(value: Any) -> Optional[datetime]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _from_absolute(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def extract_times(
    envelope: Envelope,
) -> tuple[Optional[datetime], Optional[datetime], Optional[datetime]]:
    """Read the format-specific time fields.

    Args:
        envelope: Decoded credential

    Returns:
        Tuple of (issued_at, valid_from, expires_at)
    """
    if isinstance(envelope, DocumentEnvelope):
        mso = envelope.metadata_object
        info = mso.get("validityInfo")
        if not isinstance(info, dict):
            info = mso
        return (
            _from_absolute(info.get("signed")),
            _from_absolute(info.get("validFrom")),
            _from_absolute(info.get("validUntil")),
        )

    payload = envelope.payload
    return (
        _from_epoch(payload.get("iat")),
        _from_epoch(payload.get("nbf")),
        _from_epoch(payload.get("exp")),
    )


def derive_status(
    issued_at: Optional[datetime],
    valid_from: Optional[datetime],
    expires_at: Optional[datetime],
    now: datetime,
) -> ValidityStatus:
    """Derive the validity status, first match wins.

    not-yet-valid, then expired, then expiring (within the horizon), then
    valid. Without any time field the status is indeterminate.
    """
    if issued_at is None and valid_from is None and expires_at is None:
        return ValidityStatus.INDETERMINATE
    if valid_from is not None and valid_from > now:
        return ValidityStatus.NOT_YET_VALID
    if expires_at is not None and expires_at < now:
        return ValidityStatus.EXPIRED
    horizon = now + timedelta(seconds=config.EXPIRING_HORIZON_SECONDS)
    if expires_at is not None and expires_at < horizon:
        return ValidityStatus.EXPIRING
    return ValidityStatus.VALID


def relative_time(when: datetime, now: datetime) -> str:
    """Describe a point in time relative to now, e.g. "in 3 days", "2 hours ago"."""
    diff = (when - now).total_seconds()
    future = diff > 0
    diff = abs(diff)

    minutes = int(diff // 60)
    hours = int(diff // 3600)
    days = int(diff // 86400)
    months = days // 30

    if months >= 2:
        text = f"{months} months"
    elif months == 1:
        text = "1 month"
    elif days >= 2:
        text = f"{days} days"
    elif days == 1:
        text = "1 day"
    elif hours >= 2:
        text = f"{hours} hours"
    elif hours == 1:
        text = "1 hour"
    elif minutes >= 2:
        text = f"{minutes} minutes"
    else:
        text = "1 minute"

    return f"in {text}" if future else f"{text} ago"


def format_timestamp(when: datetime) -> str:
    """ISO-8601 in UTC with a Z suffix and no fractional seconds."""
    return when.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def annotate_timestamps(
    payload: dict[str, Any], now: Optional[datetime] = None
) -> dict[str, dict[str, Any]]:
    """Describe the well-known epoch fields of a token payload.

    Only numbers inside the plausible epoch range are annotated.

    Args:
        payload: JWT payload
        now: Reference time (current time by default)

    Returns:
        Mapping field -> {"epoch", "iso", "relative"}
    """
    now = now or datetime.now(timezone.utc)
    annotations: dict[str, dict[str, Any]] = {}
    for field in sorted(config.TIMESTAMP_FIELDS):
        value = payload.get(field)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if not config.TIMESTAMP_MIN_EPOCH < value < config.TIMESTAMP_MAX_EPOCH:
            continue
        when = datetime.fromtimestamp(value, tz=timezone.utc)
        annotations[field] = {
            "epoch": value,
            "iso": format_timestamp(when),
            "relative": relative_time(when, now),
        }
    return annotations


def _expiry_check(
    status: ValidityStatus,
    valid_from: Optional[datetime],
    expires_at: Optional[datetime],
    now: datetime,
) -> CheckResult:
    if status is ValidityStatus.INDETERMINATE:
        return CheckResult(CheckName.EXPIRY, Outcome.INAPPLICABLE, "No validity timestamps")
    if status is ValidityStatus.NOT_YET_VALID and valid_from is not None:
        detail = f"Not valid until {format_timestamp(valid_from)} ({relative_time(valid_from, now)})"
        return CheckResult(CheckName.EXPIRY, Outcome.FAIL, detail)
    if status is ValidityStatus.EXPIRED and expires_at is not None:
        detail = f"Expired {relative_time(expires_at, now)} ({format_timestamp(expires_at)})"
        return CheckResult(CheckName.EXPIRY, Outcome.FAIL, detail)
    if status is ValidityStatus.EXPIRING and expires_at is not None:
        detail = f"Expires soon: {relative_time(expires_at, now)} ({format_timestamp(expires_at)})"
        return CheckResult(CheckName.EXPIRY, Outcome.FAIL, detail)
    if expires_at is None:
        return CheckResult(CheckName.EXPIRY, Outcome.PASS, "No expiry date")
    detail = f"Expires {relative_time(expires_at, now)} ({format_timestamp(expires_at)})"
    return CheckResult(CheckName.EXPIRY, Outcome.PASS, detail)


def _integrity_check(envelope: Envelope, resolution: Optional[Resolution]) -> CheckResult:
    if isinstance(envelope, DocumentEnvelope):
        return CheckResult(CheckName.INTEGRITY, Outcome.INAPPLICABLE, NOT_APPLICABLE_MDOC)
    if not isinstance(envelope, SelectiveDisclosureEnvelope):
        return CheckResult(CheckName.INTEGRITY, Outcome.INAPPLICABLE, NOT_APPLICABLE_JWT)

    if resolution is None:
        resolution = resolve(envelope)
    total = len(resolution.disclosures)
    if total == 0:
        return CheckResult(CheckName.INTEGRITY, Outcome.PASS, "No disclosures presented")
    if resolution.all_resolved:
        return CheckResult(
            CheckName.INTEGRITY,
            Outcome.PASS,
            f"All {total} disclosures match a digest in the credential",
        )
    missing = len(resolution.unresolved)
    return CheckResult(
        CheckName.INTEGRITY,
        Outcome.FAIL,
        f"{missing} of {total} disclosures not found in any commitment",
    )


def _signature_check(
    envelope: Envelope,
    verify_key: Optional[str],
    signature_verifier: Optional[SignatureVerifier],
) -> CheckResult:
    if verify_key is None or not verify_key.strip():
        return CheckResult(CheckName.SIGNATURE, Outcome.UNKNOWN, NO_KEY_PROVIDED)

    verifier = signature_verifier or DefaultSignatureVerifier()
    try:
        result = verifier.verify(envelope, verify_key)
    except Exception as e:  # collaborator boundary
        logger.exception("signature verifier raised")
        return CheckResult(CheckName.SIGNATURE, Outcome.UNKNOWN, f"Verification error: {e}")
    outcome = Outcome.PASS if result.valid else Outcome.FAIL
    return CheckResult(CheckName.SIGNATURE, outcome, result.detail)


def _status_check(envelope: Envelope, status_checker: Optional[StatusChecker]) -> CheckResult:
    if status_checker is not None:
        try:
            result = status_checker.check(envelope)
        except Exception as e:  # collaborator boundary
            logger.exception("status checker raised")
            return CheckResult(CheckName.STATUS, Outcome.UNKNOWN, f"Status check error: {e}")
        outcome = Outcome.PASS if result.valid else Outcome.FAIL
        return CheckResult(CheckName.STATUS, outcome, result.detail)

    if isinstance(envelope, DocumentEnvelope):
        has_reference = envelope.metadata_object.get("status") is not None
    elif isinstance(envelope, SelectiveDisclosureEnvelope):
        has_reference = envelope.payload.get("status") is not None
    else:
        return CheckResult(CheckName.STATUS, Outcome.INAPPLICABLE, NOT_APPLICABLE_JWT)

    detail = "Status lookup not configured" if has_reference else "No status reference"
    return CheckResult(CheckName.STATUS, Outcome.INAPPLICABLE, detail)


def evaluate(
    envelope: Envelope,
    resolution: Optional[Resolution] = None,
    verify_key: Optional[str] = None,
    now: Optional[datetime] = None,
    signature_verifier: Optional[SignatureVerifier] = None,
    status_checker: Optional[StatusChecker] = None,
) -> ValidityAssessment:
    """Assess validity and build the checklist.

    Args:
        envelope: Decoded credential
        resolution: Resolver output for SD-JWT (computed when omitted)
        verify_key: Optional verification key text
        now: Reference time (current time by default)
        signature_verifier: Signature collaborator (JWS/COSE by default)
        status_checker: Optional status-list collaborator

    Returns:
        ValidityAssessment with checks in the order expiry, integrity,
        signature, status
    """
    now = now or datetime.now(timezone.utc)
    issued_at, valid_from, expires_at = extract_times(envelope)
    status = derive_status(issued_at, valid_from, expires_at, now)

    checks = {
        CheckName.EXPIRY: _expiry_check(status, valid_from, expires_at, now),
        CheckName.INTEGRITY: _integrity_check(envelope, resolution),
        CheckName.SIGNATURE: _signature_check(envelope, verify_key, signature_verifier),
        CheckName.STATUS: _status_check(envelope, status_checker),
    }

    if status is ValidityStatus.INDETERMINATE:
        issued_at = valid_from = expires_at = None

    return ValidityAssessment(
        status=status,
        checklist=tuple(checks[name] for name in CHECK_ORDER),
        issued_at=issued_at,
        valid_from=valid_from,
        expires_at=expires_at,
    )

"""Decoded credential model.

Every type here is a frozen dataclass: a DecodeResult and everything it holds
is immutable once produced and is superseded, never mutated, by the next
decode cycle.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from . import config


@dataclass(frozen=True)
class SimpleEnvelope:
    """Compact token: header.payload[.signature]."""

    header: dict[str, Any]
    payload: dict[str, Any]
    signature_present: bool
    raw_header: str  # base64url text as received (signature input)
    raw_payload: str
    raw_signature: str = ""

    format = config.FORMAT_JWT

    @property
    def signing_input(self) -> bytes:
        """JWS signing input: ASCII(header '.' payload)."""
        return f"{self.raw_header}.{self.raw_payload}".encode("ascii")


@dataclass(frozen=True)
class Disclosure:
    """A (salt, name, value) tuple presented alongside an SD-JWT.

    For well-formed disclosures name is None iff is_array_entry. A stub kept
    for an unreadable tilde-part has error set, name None and is never
    resolved.
    """

    salt: str
    name: Optional[str]
    value: Any
    is_array_entry: bool
    digest: str = ""
    encoded: str = ""
    resolved: bool = False
    error: Optional[str] = None

    @property
    def is_malformed(self) -> bool:
        return self.error is not None

    @property
    def label(self) -> str:
        """Human-readable name used in warnings and summaries."""
        if self.is_malformed:
            return "(malformed)"
        if self.is_array_entry:
            return "(array element)"
        return str(self.name)


@dataclass(frozen=True)
class SelectiveDisclosureEnvelope:
    """SD-JWT: issuer token, disclosures, optional holder-binding token."""

    header: dict[str, Any]
    payload: dict[str, Any]
    disclosures: tuple[Disclosure, ...]
    holder_binding_token: Optional[SimpleEnvelope]
    raw_header: str
    raw_payload: str
    raw_signature: str = ""
    warnings: tuple[str, ...] = ()

    format = config.FORMAT_SD_JWT

    @property
    def signature_present(self) -> bool:
        return bool(self.raw_signature)

    @property
    def signing_input(self) -> bytes:
        return f"{self.raw_header}.{self.raw_payload}".encode("ascii")


@dataclass(frozen=True)
class DocumentEnvelope:
    """Parsed mDOC: docType, mobile security object and namespaced claims."""

    doc_type: str
    metadata_object: dict[str, Any]
    claims_by_namespace: dict[str, dict[str, Any]]
    device_auth: Optional[dict[str, Any]] = None
    issuer_auth: Optional[list[Any]] = None  # COSE_Sign1 array, undecoded
    warnings: tuple[str, ...] = ()

    format = config.FORMAT_MDOC


Envelope = Union[SimpleEnvelope, SelectiveDisclosureEnvelope, DocumentEnvelope]


class ClaimSource(str, Enum):
    """Where a resolved claim came from."""

    DISCLOSED = "disclosed"
    STANDARD = "standard"


@dataclass(frozen=True)
class ResolvedClaim:
    value: Any
    source: ClaimSource


ResolvedClaims = dict[str, ResolvedClaim]


@dataclass(frozen=True)
class Resolution:
    """Output of the selective-disclosure resolver."""

    disclosures: tuple[Disclosure, ...]
    resolved_claims: ResolvedClaims
    warnings: tuple[str, ...] = ()

    @property
    def all_resolved(self) -> bool:
        return all(d.resolved for d in self.disclosures)

    @property
    def unresolved(self) -> list[Disclosure]:
        return [d for d in self.disclosures if not d.resolved]


class ValidityStatus(str, Enum):
    VALID = "valid"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    NOT_YET_VALID = "not-yet-valid"
    INDETERMINATE = "indeterminate"


class CheckName(str, Enum):
    EXPIRY = "expiry"
    INTEGRITY = "integrity"
    SIGNATURE = "signature"
    STATUS = "status"


# Fixed order of the checklist, regardless of envelope variant
CHECK_ORDER: tuple[CheckName, ...] = (
    CheckName.EXPIRY,
    CheckName.INTEGRITY,
    CheckName.SIGNATURE,
    CheckName.STATUS,
)


class Outcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    INAPPLICABLE = "inapplicable"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CheckResult:
    name: CheckName
    outcome: Outcome
    detail: str


@dataclass(frozen=True)
class ValidityAssessment:
    """Normalized validity status plus the four-item checklist."""

    status: ValidityStatus
    checklist: tuple[CheckResult, ...]
    issued_at: Optional[datetime] = None
    valid_from: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def check(self, name: CheckName) -> CheckResult:
        """Return the checklist entry with the given name."""
        for result in self.checklist:
            if result.name == name:
                return result
        raise KeyError(name)


class SegmentKind(str, Enum):
    HEADER = "header"
    PAYLOAD = "payload"
    SIGNATURE = "signature"
    DISCLOSURE = "disclosure"
    HOLDER_BINDING = "holder-binding"


@dataclass(frozen=True)
class Segment:
    """A half-open [start, end) character range of the raw input."""

    id: str
    start: int
    end: int
    kind: SegmentKind
    index: Optional[int] = None

    @property
    def range(self) -> tuple[int, int]:
        return self.start, self.end

    def text(self, raw: str) -> str:
        return raw[self.start:self.end]


@dataclass(frozen=True)
class DecodeResult:
    """Everything produced for one raw input snapshot."""

    raw: str
    envelope: Envelope
    disclosures: Optional[tuple[Disclosure, ...]] = None
    resolved_claims: Optional[ResolvedClaims] = None
    validity: Optional[ValidityAssessment] = None
    segments: tuple[Segment, ...] = ()
    warnings: tuple[str, ...] = field(default_factory=tuple)
    generation: int = 0

    @property
    def format(self) -> str:
        return self.envelope.format

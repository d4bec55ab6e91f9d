"""cred-inspect: decode and inspect JWT, SD-JWT and mDOC credentials."""

# Hide module imports
from . import api, api_models, disclosures, envelope, highlight, inspector, segments, session, validity
from .api import (
    PrefillSource,
    build_share_link,
    create_app,
    handle_decode_request,
    parse_share_link,
)
from .api_models import DecodeRequest, DecodeResponse
from .disclosures import encode_disclosure, hash_disclosure, resolve
from .envelope import Format, classify, decode
from .exceptions import (
    DecodeError,
    ErrorCode,
    KeyFormatError,
    MalformedEnvelope,
    UnrecognizedFormat,
)
from .highlight import HighlightState, on_hover, on_leave
from .inspector import inspect_credential, summarize, to_json
from .models import (
    CheckName,
    CheckResult,
    ClaimSource,
    DecodeResult,
    Disclosure,
    DocumentEnvelope,
    Outcome,
    ResolvedClaim,
    Resolution,
    Segment,
    SegmentKind,
    SelectiveDisclosureEnvelope,
    SimpleEnvelope,
    ValidityAssessment,
    ValidityStatus,
)
from .segments import SegmentMap, Side, build_segments
from .session import InspectorSession, PinState, SessionState
from .validity import annotate_timestamps, evaluate, relative_time
from .verifiers import DefaultSignatureVerifier, VerificationResult

del api, api_models, disclosures, envelope, highlight, inspector, segments, session, validity

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Pipeline
    "inspect_credential",
    "to_json",
    "summarize",
    # Envelope decoding
    "Format",
    "classify",
    "decode",
    # Selective disclosure
    "encode_disclosure",
    "hash_disclosure",
    "resolve",
    # Validity
    "evaluate",
    "relative_time",
    "annotate_timestamps",
    "DefaultSignatureVerifier",
    "VerificationResult",
    # Segments and highlighting
    "build_segments",
    "SegmentMap",
    "Side",
    "HighlightState",
    "on_hover",
    "on_leave",
    # Session
    "InspectorSession",
    "SessionState",
    "PinState",
    # Interfaces
    "handle_decode_request",
    "create_app",
    "DecodeRequest",
    "DecodeResponse",
    "PrefillSource",
    "build_share_link",
    "parse_share_link",
    # Errors
    "DecodeError",
    "ErrorCode",
    "UnrecognizedFormat",
    "MalformedEnvelope",
    "KeyFormatError",
    # Model
    "SimpleEnvelope",
    "SelectiveDisclosureEnvelope",
    "DocumentEnvelope",
    "Disclosure",
    "ClaimSource",
    "ResolvedClaim",
    "Resolution",
    "ValidityStatus",
    "ValidityAssessment",
    "CheckName",
    "CheckResult",
    "Outcome",
    "Segment",
    "SegmentKind",
    "DecodeResult",
]

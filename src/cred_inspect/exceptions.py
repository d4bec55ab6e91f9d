"""Credential decoding exceptions.

Only UnrecognizedFormat and MalformedEnvelope abort a decode. Malformed
disclosures, unresolved digests and a missing verification key are recovered
locally and reported through warnings or checklist details.
"""

from typing import Optional


class ErrorCode:
    """Error codes for decode failures."""

    UNRECOGNIZED_FORMAT = "UNRECOGNIZED_FORMAT"
    MALFORMED_ENVELOPE = "MALFORMED_ENVELOPE"


class DecodeError(Exception):
    """Base exception for credential decoding failures.

    Carries an error code from ErrorCode. The caller is responsible for
    converting it into a response.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class UnrecognizedFormat(DecodeError):
    """Input matches none of the three envelope shapes."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.UNRECOGNIZED_FORMAT, message)

    @classmethod
    def empty(cls) -> "UnrecognizedFormat":
        """Factory for empty input."""
        return cls("input is empty")

    @classmethod
    def undetected(cls, reason: Optional[str] = None) -> "UnrecognizedFormat":
        """Factory for input that is neither a token nor a document."""
        message = "unable to auto-detect credential format (not JWT, SD-JWT, or mDOC)"
        if reason:
            message = f"{message}: {reason}"
        return cls(message)


class MalformedEnvelope(DecodeError):
    """A required header or payload segment is unreadable."""

    def __init__(self, segment: str, index: int, reason: str):
        self.segment = segment
        self.index = index
        self.reason = reason
        super().__init__(
            ErrorCode.MALFORMED_ENVELOPE,
            f"malformed {segment} (segment {index}): {reason}",
        )

    @classmethod
    def missing(cls, segment: str, index: int) -> "MalformedEnvelope":
        """Factory for a segment that is absent or empty."""
        return cls(segment, index, "segment is missing")


class KeyFormatError(ValueError):
    """Verification key material could not be parsed."""

"""COSE Sign1 verification with pluggable verifiers.

mDOC issuerAuth is an (untagged) COSE_Sign1 structure. This module rebuilds
its Sig_structure and hands it to a verifier object, so keys stay managed
by the caller.
"""

from typing import Any, Optional, Protocol

from . import cbor_utils


class Verifier(Protocol):
    """Protocol for COSE Sign1 verifiers."""

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Verify a signature on a message.

        Args:
            message: The message that was signed
            signature: The signature to verify

        Returns:
            True if signature is valid, False otherwise
        """


def cose_sign1_parts(cose_sign1: Any) -> Optional[list[Any]]:
    """Return the four COSE_Sign1 members, unwrapping tag 18 if present.

    Args:
        cose_sign1: CBOR bytes, a tagged structure, or the bare array

    Returns:
        [protected, unprotected, payload, signature] or None if malformed
    """
    if isinstance(cose_sign1, (bytes, bytearray)):
        try:
            cose_sign1 = cbor_utils.decode(bytes(cose_sign1))
        except (ValueError, cbor_utils.CBORDecodeError):
            return None
    if cbor_utils.is_tag(cose_sign1):
        if cose_sign1.tag != cbor_utils.COSE_SIGN1_TAG:
            return None
        cose_sign1 = cbor_utils.get_tag_value(cose_sign1)
    if not isinstance(cose_sign1, list) or len(cose_sign1) != 4:
        return None
    return cose_sign1


def protected_header(cose_sign1: list[Any]) -> dict[Any, Any]:
    """Decode the protected header of a COSE_Sign1 array.

    Returns:
        Header map (empty when the protected bucket is empty)
    """
    protected_header_bytes = cose_sign1[0]
    if not protected_header_bytes:
        return {}
    header = cbor_utils.decode(protected_header_bytes)
    return header if isinstance(header, dict) else {}


def sig_structure(
    protected_header_bytes: bytes, payload: bytes, external_aad: bytes = b""
) -> bytes:
    """Build the CBOR-encoded Sig_structure for a COSE_Sign1 message."""
    return cbor_utils.encode(
        [
            "Signature1",  # Context string
            protected_header_bytes,  # Protected header
            external_aad,  # External AAD
            payload,  # Payload
        ]
    )


def cose_sign1_verify(
    cose_sign1_message: Any,
    verifier: Verifier,
    external_aad: bytes = b"",
    detached_payload: Optional[bytes] = None,
) -> tuple[bool, Optional[bytes]]:
    """Verify a COSE Sign1 message.

    Args:
        cose_sign1_message: CBOR bytes, tagged structure, or bare array
        verifier: A verifier object that implements the verify method
        external_aad: External additional authenticated data used during signing
        detached_payload: Payload to use when the structure carries nil

    Returns:
        Tuple of (verification_result, payload if verified successfully)
    """
    parts = cose_sign1_parts(cose_sign1_message)
    if parts is None:
        return False, None

    protected_header_bytes, _, payload, signature = parts
    if payload is None:
        payload = detached_payload
    if not isinstance(payload, (bytes, bytearray)) or not isinstance(signature, (bytes, bytearray)):
        return False, None

    signing_input = sig_structure(protected_header_bytes or b"", bytes(payload), external_aad)

    if verifier.verify(signing_input, bytes(signature)):
        return True, bytes(payload)
    return False, None

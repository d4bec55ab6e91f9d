"""Signature verification for decoded credentials.

This module provides the signature collaborator consulted by the validity
evaluator:
- CoseKeyVerifier: Verifies raw signatures with a fido2 COSE key
- DefaultSignatureVerifier: JWS for JWT / SD-JWT, COSE_Sign1 for mDOC
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa, utils
from fido2.cose import CoseKey, UnsupportedKey

from . import jose_utils
from .cose_sign1 import cose_sign1_parts, cose_sign1_verify, protected_header
from .exceptions import KeyFormatError
from .keys import PublicKey, load_public_key
from .models import DocumentEnvelope, Envelope

logger = logging.getLogger(__name__)

# Key type (and EC curve) each algorithm requires
_EC_CURVES: dict[str, type] = {
    "ES256": ec.SECP256R1,
    "ES384": ec.SECP384R1,
    "ES512": ec.SECP521R1,
}
_RSA_ALGORITHMS = frozenset({"RS256", "PS256"})


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    detail: str


class SignatureVerifier(Protocol):
    """Protocol for the signature-verification collaborator."""

    def verify(self, envelope: Envelope, key_material: str) -> VerificationResult:
        """Verify the envelope's issuer signature against a key.

        Args:
            envelope: Decoded credential
            key_material: Key text supplied by the user

        Returns:
            VerificationResult whose detail is shown verbatim
        """


def _key_matches(alg_name: str, public_key: PublicKey) -> bool:
    if alg_name in _EC_CURVES:
        return isinstance(public_key, ec.EllipticCurvePublicKey) and isinstance(
            public_key.curve, _EC_CURVES[alg_name]
        )
    if alg_name in _RSA_ALGORITHMS:
        return isinstance(public_key, rsa.RSAPublicKey)
    if alg_name == "EdDSA":
        return isinstance(public_key, ed25519.Ed25519PublicKey)
    return False


class CoseKeyVerifier:
    """Verifies raw (JOSE/COSE style) signatures with a fido2 COSE key."""

    def __init__(self, cose_key_cls: type, public_key: PublicKey):
        """Initialize with a fido2 CoseKey subclass and a public key.

        Args:
            cose_key_cls: fido2 CoseKey subclass for the algorithm
            public_key: cryptography public key matching the algorithm
        """
        self.cose_key: CoseKey = cose_key_cls.from_cryptography_key(public_key)
        self.is_ecdsa = isinstance(public_key, ec.EllipticCurvePublicKey)

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Verify a signature, converting raw r||s ECDSA signatures to DER."""
        try:
            if self.is_ecdsa:
                if not signature or len(signature) % 2:
                    return False
                half = len(signature) // 2
                r = int.from_bytes(signature[:half], byteorder="big")
                s = int.from_bytes(signature[half:], byteorder="big")
                signature = utils.encode_dss_signature(r, s)
            self.cose_key.verify(message, signature)
            return True
        except InvalidSignature:
            return False
        except (ValueError, TypeError):
            return False


def verifier_for(alg: Union[str, int], public_key: PublicKey) -> CoseKeyVerifier:
    """Select a verifier for a JOSE algorithm name or COSE algorithm id.

    Raises:
        ValueError: If the algorithm is unsupported or the key does not fit it
    """
    cose_key_cls = CoseKey.for_name(alg) if isinstance(alg, str) else CoseKey.for_alg(alg)
    if cose_key_cls is None or issubclass(cose_key_cls, UnsupportedKey):
        raise ValueError(f"Unsupported algorithm: {alg}")
    if not _key_matches(cose_key_cls.__name__, public_key):
        raise ValueError(f"Key type does not match algorithm {cose_key_cls.__name__}")
    return CoseKeyVerifier(cose_key_cls, public_key)


class DefaultSignatureVerifier:
    """Verifies JWS signatures of tokens and COSE_Sign1 issuerAuth of mDOCs."""

    def verify(self, envelope: Envelope, key_material: str) -> VerificationResult:
        try:
            public_key = load_public_key(key_material)
        except KeyFormatError as e:
            return VerificationResult(False, f"Invalid key: {e}")

        if isinstance(envelope, DocumentEnvelope):
            return self._verify_document(envelope, public_key)
        return self._verify_token(envelope, public_key)

    def _verify_token(self, envelope: Envelope, public_key: PublicKey) -> VerificationResult:
        alg = envelope.header.get("alg")
        if alg == "none":
            return VerificationResult(False, "Token is unsigned (alg: none)")
        if not isinstance(alg, str):
            return VerificationResult(False, "Header has no alg")
        if not envelope.raw_signature:
            return VerificationResult(False, "Token has no signature")

        try:
            verifier = verifier_for(alg, public_key)
            signature = jose_utils.b64url_decode(envelope.raw_signature)
        except ValueError as e:
            return VerificationResult(False, str(e))

        if verifier.verify(envelope.signing_input, signature):
            return VerificationResult(True, f"Signature valid ({alg})")
        logger.debug("JWS signature did not verify (alg=%s)", alg)
        return VerificationResult(False, f"Signature invalid ({alg})")

    def _verify_document(
        self, envelope: DocumentEnvelope, public_key: PublicKey
    ) -> VerificationResult:
        parts: Optional[list] = cose_sign1_parts(envelope.issuer_auth)
        if parts is None:
            return VerificationResult(False, "Document has no issuerAuth signature")

        try:
            alg = protected_header(parts).get(1)
            if not isinstance(alg, int):
                return VerificationResult(False, "issuerAuth has no algorithm")
            verifier = verifier_for(alg, public_key)
        except ValueError as e:
            return VerificationResult(False, str(e))

        name = type(verifier.cose_key).__name__
        is_valid, _ = cose_sign1_verify(parts, verifier)
        if is_valid:
            return VerificationResult(True, f"issuerAuth signature valid ({name})")
        return VerificationResult(False, f"issuerAuth signature invalid ({name})")

"""Pytest configuration and shared fixtures for cred-inspect tests."""

import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import cbor2
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from cred_inspect import jose_utils


def _raw_ecdsa_signature(private_key: ec.EllipticCurvePrivateKey, message: bytes) -> bytes:
    """Sign with ES256 and return the JOSE/COSE r||s form."""
    der = private_key.sign(message, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    return r.to_bytes(32, "big") + s.to_bytes(32, "big")


class TokenFactory:
    """Builds compact JWT and SD-JWT strings for tests."""

    def segment(self, obj: Any) -> str:
        return jose_utils.encode_json_segment(obj)

    def jwt(
        self,
        payload: dict[str, Any],
        header: Optional[dict[str, Any]] = None,
        signature: str = "",
    ) -> str:
        """Unsigned (or fake-signed) compact JWT."""
        header = header if header is not None else {"alg": "none", "typ": "JWT"}
        return f"{self.segment(header)}.{self.segment(payload)}.{signature}"

    def signed_jwt(
        self,
        payload: dict[str, Any],
        private_key: Any,
        header: Optional[dict[str, Any]] = None,
    ) -> str:
        """JWT signed with ES256 (EC key) or EdDSA (Ed25519 key)."""
        if header is None:
            alg = "EdDSA" if isinstance(private_key, ed25519.Ed25519PrivateKey) else "ES256"
            header = {"alg": alg, "typ": "JWT"}
        signing_input = f"{self.segment(header)}.{self.segment(payload)}"
        if isinstance(private_key, ed25519.Ed25519PrivateKey):
            signature = private_key.sign(signing_input.encode("ascii"))
        else:
            signature = _raw_ecdsa_signature(private_key, signing_input.encode("ascii"))
        return f"{signing_input}.{jose_utils.b64url_encode(signature)}"

    def disclosure(self, *elements: Any) -> str:
        """Encode [salt, name, value] or [salt, value]."""
        return self.segment(list(elements))

    def digest(self, encoded: str, alg: str = "sha256") -> str:
        return jose_utils.b64url_encode(hashlib.new(alg, encoded.encode("ascii")).digest())

    def sd_jwt(
        self,
        claims: dict[str, Any],
        disclosures: list[list[Any]],
        extra_digests: tuple[str, ...] = (),
        key_binding: Optional[str] = None,
        header: Optional[dict[str, Any]] = None,
    ) -> str:
        """SD-JWT whose top-level _sd commits to every given object disclosure.

        Args:
            claims: Always-visible payload claims
            disclosures: [salt, name, value] lists, committed in _sd
            extra_digests: Additional (decoy) digests for _sd
            key_binding: Optional trailing holder-binding token
            header: Issuer JWT header
        """
        encoded = [self.disclosure(*d) for d in disclosures]
        payload = dict(claims)
        payload["_sd"] = [self.digest(e) for e in encoded] + list(extra_digests)
        payload["_sd_alg"] = "sha-256"
        header = header or {"alg": "none", "typ": "dc+sd-jwt"}
        issuer_jwt = self.jwt(payload, header=header)
        return "~".join([issuer_jwt, *encoded, key_binding or ""])


class DocumentFactory:
    """Builds ISO 18013-5 IssuerSigned / DeviceResponse CBOR for tests."""

    doc_type = "org.iso.18013.5.1.mDL"
    namespace = "org.iso.18013.5.1"

    def issuer_signed(
        self,
        elements: dict[str, Any],
        valid_from: datetime,
        valid_until: datetime,
        private_key: Optional[ec.EllipticCurvePrivateKey] = None,
    ) -> dict[str, Any]:
        items = [
            cbor2.CBORTag(
                24,
                cbor2.dumps(
                    {
                        "digestID": i,
                        "random": bytes([i]) * 16,
                        "elementIdentifier": name,
                        "elementValue": value,
                    }
                ),
            )
            for i, (name, value) in enumerate(elements.items())
        ]
        mso = {
            "version": "1.0",
            "digestAlgorithm": "SHA-256",
            "docType": self.doc_type,
            "validityInfo": {
                "signed": valid_from,
                "validFrom": valid_from,
                "validUntil": valid_until,
            },
        }
        protected = cbor2.dumps({1: -7})
        payload = cbor2.dumps(cbor2.CBORTag(24, cbor2.dumps(mso)))
        if private_key is not None:
            sig_structure = cbor2.dumps(["Signature1", protected, b"", payload])
            signature = _raw_ecdsa_signature(private_key, sig_structure)
        else:
            signature = b"\x00" * 64
        return {
            "nameSpaces": {self.namespace: items},
            "issuerAuth": [protected, {}, payload, signature],
        }

    def device_response(self, issuer_signed: dict[str, Any], device_auth: Any = None) -> dict:
        document: dict[str, Any] = {"docType": self.doc_type, "issuerSigned": issuer_signed}
        if device_auth is not None:
            document["deviceSigned"] = {
                "nameSpaces": cbor2.CBORTag(24, cbor2.dumps({})),
                "deviceAuth": device_auth,
            }
        return {"version": "1.0", "documents": [document], "status": 0}

    def hex(self, obj: Any) -> str:
        return cbor2.dumps(obj).hex()

    def b64url(self, obj: Any) -> str:
        return jose_utils.b64url_encode(cbor2.dumps(obj))


@pytest.fixture
def tokens() -> TokenFactory:
    """Provide the compact token builder."""
    return TokenFactory()


@pytest.fixture
def documents() -> DocumentFactory:
    """Provide the mDOC builder."""
    return DocumentFactory()


@pytest.fixture
def fixed_now() -> datetime:
    """A fixed reference time for validity tests."""
    return datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def epoch(fixed_now: datetime):
    """Epoch seconds at an offset from fixed_now."""

    def at(**offset: float) -> int:
        return int((fixed_now + timedelta(**offset)).timestamp())

    return at


@pytest.fixture(scope="session")
def ec_keypair() -> tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    """Generate an EC P-256 keypair for testing."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key, private_key.public_key()


@pytest.fixture(scope="session")
def ed25519_keypair() -> tuple[ed25519.Ed25519PrivateKey, ed25519.Ed25519PublicKey]:
    """Generate an Ed25519 keypair for testing."""
    private_key = ed25519.Ed25519PrivateKey.generate()
    return private_key, private_key.public_key()


@pytest.fixture(scope="session")
def ec_public_pem(ec_keypair) -> str:
    """PEM SubjectPublicKeyInfo of the EC test key."""
    return (
        ec_keypair[1]
        .public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        .decode("ascii")
    )


@pytest.fixture(scope="session")
def ec_public_jwk(ec_keypair) -> str:
    """JWK JSON of the EC test key."""
    numbers = ec_keypair[1].public_numbers()
    return json.dumps(
        {
            "kty": "EC",
            "crv": "P-256",
            "x": jose_utils.b64url_encode(numbers.x.to_bytes(32, "big")),
            "y": jose_utils.b64url_encode(numbers.y.to_bytes(32, "big")),
        }
    )


@pytest.fixture
def simple_claims() -> dict[str, Any]:
    """Claims of the reference plain JWT."""
    return {"sub": "user123", "iss": "https://example.com", "exp": 4102444799}


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "unit: fast tests of a single module")
    config.addinivalue_line("markers", "integration: tests across the whole decode pipeline")
    config.addinivalue_line(
        "markers", "requires_crypto: mark test as requiring cryptographic operations"
    )

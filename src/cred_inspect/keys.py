"""Verification key loading.

Accepts the key material a user would paste next to a credential: a PEM
public key, a PEM certificate, a JWK, or a JWK Set (first key is used).
"""

import json
from typing import Any, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from . import jose_utils
from .exceptions import KeyFormatError

PublicKey = Union[ec.EllipticCurvePublicKey, rsa.RSAPublicKey, ed25519.Ed25519PublicKey]

_JWK_CURVES: dict[str, ec.EllipticCurve] = {
    "P-256": ec.SECP256R1(),
    "P-384": ec.SECP384R1(),
    "P-521": ec.SECP521R1(),
}


def _b64url_int(value: Any, member: str) -> int:
    if not isinstance(value, str):
        raise KeyFormatError(f"JWK member '{member}' missing")
    try:
        return int.from_bytes(jose_utils.b64url_decode(value), byteorder="big")
    except ValueError as e:
        raise KeyFormatError(f"JWK member '{member}' is not base64url") from e


def public_key_from_jwk(jwk: dict[str, Any]) -> PublicKey:
    """Build a public key from a JWK dictionary.

    Args:
        jwk: JWK with kty EC, RSA or OKP (Ed25519)

    Returns:
        cryptography public key

    Raises:
        KeyFormatError: If the JWK is incomplete or of an unsupported type
    """
    if "keys" in jwk:
        keys = jwk["keys"]
        if not isinstance(keys, list) or not keys or not isinstance(keys[0], dict):
            raise KeyFormatError("JWK Set contains no keys")
        jwk = keys[0]

    kty = jwk.get("kty")
    if kty == "EC":
        curve = _JWK_CURVES.get(jwk.get("crv", ""))
        if curve is None:
            raise KeyFormatError(f"Unsupported EC curve: {jwk.get('crv')}")
        x = _b64url_int(jwk.get("x"), "x")
        y = _b64url_int(jwk.get("y"), "y")
        try:
            return ec.EllipticCurvePublicNumbers(x, y, curve).public_key()
        except ValueError as e:
            raise KeyFormatError(f"Invalid EC point: {e}") from e
    if kty == "RSA":
        n = _b64url_int(jwk.get("n"), "n")
        e = _b64url_int(jwk.get("e"), "e")
        return rsa.RSAPublicNumbers(e, n).public_key()
    if kty == "OKP":
        if jwk.get("crv") != "Ed25519":
            raise KeyFormatError(f"Unsupported OKP curve: {jwk.get('crv')}")
        x_text = jwk.get("x")
        if not isinstance(x_text, str):
            raise KeyFormatError("JWK member 'x' missing")
        try:
            return ed25519.Ed25519PublicKey.from_public_bytes(jose_utils.b64url_decode(x_text))
        except ValueError as e:
            raise KeyFormatError(f"Invalid Ed25519 key: {e}") from e
    raise KeyFormatError(f"Unsupported JWK key type: {kty}")


def load_public_key(material: str) -> PublicKey:
    """Load a verification key from PEM or JWK text.

    Args:
        material: PEM public key, PEM certificate, JWK or JWK Set JSON

    Returns:
        cryptography public key

    Raises:
        KeyFormatError: If the material cannot be parsed
    """
    text = material.strip()
    if not text:
        raise KeyFormatError("empty key")

    if text.startswith("{"):
        try:
            jwk = json.loads(text)
        except json.JSONDecodeError as e:
            raise KeyFormatError(f"invalid JWK JSON: {e.msg}") from e
        if not isinstance(jwk, dict):
            raise KeyFormatError("JWK must be a JSON object")
        return public_key_from_jwk(jwk)

    if "-----BEGIN CERTIFICATE-----" in text:
        try:
            key = x509.load_pem_x509_certificate(text.encode("ascii")).public_key()
        except ValueError as e:
            raise KeyFormatError(f"invalid certificate: {e}") from e
    elif "-----BEGIN" in text:
        try:
            key = serialization.load_pem_public_key(text.encode("ascii"))
        except ValueError as e:
            raise KeyFormatError(f"invalid PEM public key: {e}") from e
    else:
        raise KeyFormatError("expected a PEM public key, certificate, or JWK")

    if not isinstance(key, (ec.EllipticCurvePublicKey, rsa.RSAPublicKey, ed25519.Ed25519PublicKey)):
        raise KeyFormatError(f"Unsupported key type: {type(key).__name__}")
    return key

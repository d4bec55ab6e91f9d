"""mDOC (ISO 18013-5) document parsing.

Turns hex or base64url CBOR into a DocumentEnvelope. Accepts a
DeviceResponse ({"version", "documents": [...]}) or a bare IssuerSigned
structure ({"nameSpaces", "issuerAuth"}).
"""

import base64
import binascii
import logging
import re
from typing import Any, Optional, Protocol

from . import cbor_utils, jose_utils
from .models import DocumentEnvelope

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


class DocumentParseError(ValueError):
    """Input is not a readable mDOC."""


class DocumentParser(Protocol):
    """Protocol for document (mDOC) parsers."""

    def parse(self, text: str) -> DocumentEnvelope:
        """Parse document text into an envelope.

        Args:
            text: Trimmed input text

        Returns:
            DocumentEnvelope

        Raises:
            DocumentParseError: If the input is not a document
        """


def decode_document_bytes(text: str) -> bytes:
    """Decode hex, base64url or standard base64 text to bytes.

    Args:
        text: Encoded document

    Returns:
        Raw CBOR bytes

    Raises:
        DocumentParseError: If no encoding applies
    """
    compact = "".join(text.split())
    if _HEX_RE.match(compact) and len(compact) % 2 == 0:
        return bytes.fromhex(compact)
    try:
        if "+" in compact or "/" in compact:
            padded = compact + "=" * (-len(compact) % 4)
            return base64.b64decode(padded, validate=True)
        return jose_utils.b64url_decode(compact.rstrip("="))
    except (ValueError, binascii.Error) as e:
        raise DocumentParseError(f"not hex or base64: {e}") from e


def _issuer_auth_array(issuer_auth: Any) -> Optional[list[Any]]:
    if cbor_utils.is_tag(issuer_auth, cbor_utils.COSE_SIGN1_TAG):
        issuer_auth = cbor_utils.get_tag_value(issuer_auth)
    if isinstance(issuer_auth, list) and len(issuer_auth) == 4:
        return issuer_auth
    return None


def _decode_mso(issuer_auth: list[Any]) -> dict[str, Any]:
    payload = issuer_auth[2]
    if not isinstance(payload, (bytes, bytearray)):
        raise DocumentParseError("issuerAuth payload is not a byte string")
    # payload is bstr .cbor #6.24(bstr .cbor MobileSecurityObject)
    mso = cbor_utils.unwrap_embedded(cbor_utils.decode(bytes(payload)))
    if not isinstance(mso, dict):
        raise DocumentParseError("mobile security object is not a map")
    return mso


def _decode_namespaces(
    name_spaces: Any, warnings: list[str]
) -> dict[str, dict[str, Any]]:
    claims: dict[str, dict[str, Any]] = {}
    if not isinstance(name_spaces, dict):
        return claims

    for namespace, items in name_spaces.items():
        ns_claims: dict[str, Any] = {}
        if items is not None and not isinstance(items, list):
            warnings.append(f"{namespace}: IssuerSignedItems is not an array")
            items = None
        for position, item in enumerate(items or []):
            try:
                element = cbor_utils.unwrap_embedded(item)
                ns_claims[element["elementIdentifier"]] = element["elementValue"]
            except (KeyError, TypeError, ValueError) as e:
                warnings.append(f"{namespace}[{position}]: unreadable IssuerSignedItem ({e})")
        claims[str(namespace)] = ns_claims
    return claims


def parse_document_tree(obj: Any) -> DocumentEnvelope:
    """Build a DocumentEnvelope from a decoded CBOR tree.

    Args:
        obj: Decoded DeviceResponse or IssuerSigned map

    Returns:
        DocumentEnvelope

    Raises:
        DocumentParseError: If obj has neither shape
    """
    warnings: list[str] = []
    doc_type: Optional[str] = None
    device_auth: Optional[dict[str, Any]] = None

    if isinstance(obj, dict) and isinstance(obj.get("documents"), list):
        documents = obj["documents"]
        if not documents:
            raise DocumentParseError("DeviceResponse contains no documents")
        if len(documents) > 1:
            warnings.append(f"{len(documents)} documents in response; showing the first")
        document = documents[0]
        if not isinstance(document, dict):
            raise DocumentParseError("document is not a map")
        doc_type = document.get("docType")
        issuer_signed = document.get("issuerSigned") or {}
        if not isinstance(issuer_signed, dict):
            raise DocumentParseError("issuerSigned is not a map")
        device_signed = document.get("deviceSigned")
        if isinstance(device_signed, dict) and device_signed.get("deviceAuth") is not None:
            device_auth = device_signed["deviceAuth"]
    elif isinstance(obj, dict) and ("nameSpaces" in obj or "issuerAuth" in obj):
        issuer_signed = obj
    else:
        raise DocumentParseError("not an mDOC DeviceResponse or IssuerSigned structure")

    mso: dict[str, Any] = {}
    issuer_auth = _issuer_auth_array(issuer_signed.get("issuerAuth"))
    if issuer_auth is None:
        warnings.append("issuerAuth missing or not a COSE_Sign1 structure")
    else:
        try:
            mso = _decode_mso(issuer_auth)
        except (ValueError, cbor_utils.CBORDecodeError) as e:
            warnings.append(f"mobile security object unreadable: {e}")

    claims = _decode_namespaces(issuer_signed.get("nameSpaces"), warnings)

    for message in warnings:
        logger.warning("mdoc: %s", message)

    return DocumentEnvelope(
        doc_type=str(doc_type or mso.get("docType") or ""),
        metadata_object=mso,
        claims_by_namespace=claims,
        device_auth=device_auth,
        issuer_auth=issuer_auth,
        warnings=tuple(warnings),
    )


class CBORDocumentParser:
    """Default document parser backed by cbor2."""

    def parse(self, text: str) -> DocumentEnvelope:
        data = decode_document_bytes(text)
        try:
            obj = cbor_utils.decode(data)
        except (cbor_utils.CBORDecodeError, ValueError, TypeError) as e:
            raise DocumentParseError(f"not CBOR: {e}") from e
        return parse_document_tree(obj)

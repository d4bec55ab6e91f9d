"""EDN (Extended Diagnostic Notation) utilities wrapper.

Renders mDOC CBOR for the command line diagnostic view, abstracting the
underlying cbor-diag library implementation.
"""

import cbor_diag  # type: ignore[import-untyped]

from .mdoc import decode_document_bytes


def cbor_to_diag(cbor_data: bytes) -> str:
    """Convert CBOR data to diagnostic notation.

    Args:
        cbor_data: CBOR encoded bytes

    Returns:
        Diagnostic notation string
    """
    return cbor_diag.cbor2diag(cbor_data)  # type: ignore[no-any-return]


def document_to_diag(text: str) -> str:
    """Render hex or base64 mDOC text as diagnostic notation.

    Raises:
        DocumentParseError: If the text is neither hex nor base64
    """
    return cbor_to_diag(decode_document_bytes(text.strip()))

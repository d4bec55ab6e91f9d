"""Unit tests for format classification and envelope decoding."""

import pytest

from cred_inspect.envelope import (
    Format,
    classify,
    decode,
    decode_disclosure,
    decode_simple,
    find_holder_binding_index,
)
from cred_inspect.exceptions import ErrorCode, MalformedEnvelope, UnrecognizedFormat
from cred_inspect.models import DocumentEnvelope, SelectiveDisclosureEnvelope, SimpleEnvelope


class TestClassify:
    """Test the structural decision table."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("a.b.c", Format.SIMPLE),
            ("a.b", Format.SIMPLE),
            ("a.b.c~d~", Format.SELECTIVE_DISCLOSURE),
            ("a.b.c~", Format.SELECTIVE_DISCLOSURE),
            ("a0b1c2", Format.DOCUMENT),
            ("not-a-credential", Format.DOCUMENT),
            ("abc~def", Format.DOCUMENT),
        ],
    )
    def test_shapes(self, raw: str, expected: Format):
        """Test that classification depends on structure only."""
        assert classify(raw) is expected


class TestDecodeSimple:
    """Test plain JWT decoding."""

    @pytest.mark.unit
    def test_decode_unsigned(self, tokens, simple_claims):
        """Test decoding an alg:none token."""
        envelope = decode(tokens.jwt(simple_claims))

        assert isinstance(envelope, SimpleEnvelope)
        assert envelope.format == "jwt"
        assert envelope.header == {"alg": "none", "typ": "JWT"}
        assert envelope.payload == simple_claims
        assert envelope.signature_present is False

    @pytest.mark.unit
    def test_decode_with_signature(self, tokens, simple_claims):
        """Test that a non-empty third segment is the signature."""
        envelope = decode_simple(tokens.jwt(simple_claims, signature="c2lnbmF0dXJl"))

        assert envelope.signature_present is True
        assert envelope.raw_signature == "c2lnbmF0dXJl"

    @pytest.mark.unit
    def test_surrounding_whitespace_ignored(self, tokens, simple_claims):
        """Test that leading and trailing whitespace is stripped."""
        envelope = decode(f"  \n{tokens.jwt(simple_claims)}\n ")

        assert envelope.payload["sub"] == "user123"

    @pytest.mark.unit
    def test_header_roundtrip(self, tokens):
        """Test that the raw header re-encodes to the same text."""
        header = {"alg": "none", "typ": "JWT"}
        envelope = decode(tokens.jwt({"sub": "x"}, header=header))

        assert tokens.segment(envelope.header) == envelope.raw_header

    @pytest.mark.unit
    def test_unreadable_header(self, tokens):
        """Test that an unreadable header names the failing segment."""
        with pytest.raises(MalformedEnvelope) as exc_info:
            decode(f"aaa.{tokens.segment({'sub': 'x'})}.sig")

        assert exc_info.value.segment == "header"
        assert exc_info.value.index == 0
        assert exc_info.value.code == ErrorCode.MALFORMED_ENVELOPE

    @pytest.mark.unit
    def test_unreadable_payload(self, tokens):
        """Test that an unreadable payload names the failing segment."""
        with pytest.raises(MalformedEnvelope) as exc_info:
            decode(f"{tokens.segment({'alg': 'none'})}.bbb.ccc")

        assert exc_info.value.segment == "payload"
        assert exc_info.value.index == 1

    @pytest.mark.unit
    def test_payload_must_be_object(self, tokens):
        """Test that a JSON array payload is rejected."""
        with pytest.raises(MalformedEnvelope, match="expected a JSON object"):
            decode(f"{tokens.segment({'alg': 'none'})}.{tokens.segment([1, 2])}.")

    @pytest.mark.unit
    def test_header_garbage_is_not_reclassified(self):
        """Test that a token shape never falls back to the document parser."""
        with pytest.raises(MalformedEnvelope):
            decode("aaa.bbb.ccc")


class TestDecodeErrors:
    """Test inputs matching no envelope shape."""

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["", "   ", "\n\t"])
    def test_empty_input(self, raw: str):
        """Test that empty input is unrecognized."""
        with pytest.raises(UnrecognizedFormat, match="input is empty"):
            decode(raw)

    @pytest.mark.unit
    def test_garbage_input(self):
        """Test that text that is neither a token nor CBOR is unrecognized."""
        with pytest.raises(UnrecognizedFormat) as exc_info:
            decode("not-a-credential")

        assert exc_info.value.code == ErrorCode.UNRECOGNIZED_FORMAT
        assert "unable to auto-detect" in exc_info.value.message


class TestDecodeSelectiveDisclosure:
    """Test SD-JWT decoding."""

    @pytest.mark.unit
    def test_disclosures_in_order(self, tokens):
        """Test that disclosures are decoded in input order."""
        raw = tokens.sd_jwt(
            {"iss": "https://issuer.example"},
            [["salt1", "given_name", "Erika"], ["salt2", "family_name", "Mustermann"]],
        )
        envelope = decode(raw)

        assert isinstance(envelope, SelectiveDisclosureEnvelope)
        assert envelope.format == "dc+sd-jwt"
        assert [d.name for d in envelope.disclosures] == ["given_name", "family_name"]
        assert envelope.disclosures[0].encoded == raw.split("~")[1]
        assert envelope.holder_binding_token is None

    @pytest.mark.unit
    def test_array_entry_disclosure(self, tokens):
        """Test a two-element disclosure."""
        disclosure = decode_disclosure(tokens.disclosure("salt", "DE"))

        assert disclosure.is_array_entry is True
        assert disclosure.name is None
        assert disclosure.value == "DE"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "elements",
        [[1, "name", "value"], ["salt", 2, "value"], ["only-one"], ["a", "b", "c", "d"]],
    )
    def test_invalid_disclosure_shapes(self, tokens, elements):
        """Test that badly shaped disclosures are rejected."""
        with pytest.raises(ValueError):
            decode_disclosure(tokens.disclosure(*elements))

    @pytest.mark.unit
    def test_holder_binding_token(self, tokens):
        """Test that a trailing compact token is the holder-binding token."""
        kb = tokens.jwt({"nonce": "n-0S6_WzA2Mj", "aud": "verifier"}, header={"alg": "none", "typ": "kb+jwt"})
        raw = tokens.sd_jwt({"iss": "x"}, [["s", "given_name", "Erika"]], key_binding=kb)
        envelope = decode(raw)

        assert envelope.holder_binding_token is not None
        assert envelope.holder_binding_token.payload["nonce"] == "n-0S6_WzA2Mj"
        assert len(envelope.disclosures) == 1

    @pytest.mark.unit
    def test_malformed_disclosure_kept_as_stub(self, tokens):
        """Test that one bad disclosure does not abort decoding."""
        good = tokens.disclosure("s", "given_name", "Erika")
        raw = f"{tokens.jwt({'iss': 'x', '_sd': []})}~%%%~{good}~"
        envelope = decode(raw)

        assert len(envelope.disclosures) == 2
        assert envelope.disclosures[0].is_malformed
        assert envelope.disclosures[1].name == "given_name"
        assert any("Disclosure 0 is malformed" in w for w in envelope.warnings)

    @pytest.mark.unit
    def test_unreadable_holder_binding_dropped(self, tokens):
        """Test that an unreadable holder-binding token becomes a warning."""
        raw = f"{tokens.jwt({'iss': 'x'})}~{tokens.disclosure('s', 'a', 1)}~xxx.yyy.zzz"
        envelope = decode(raw)

        assert envelope.holder_binding_token is None
        assert len(envelope.disclosures) == 1
        assert any("Key binding JWT unreadable" in w for w in envelope.warnings)

    @pytest.mark.unit
    def test_unreadable_issuer_token_aborts(self, tokens):
        """Test that the issuer token header must be readable."""
        with pytest.raises(MalformedEnvelope):
            decode(f"xxx.yyy.zzz~{tokens.disclosure('s', 'a', 1)}~")


class TestFindHolderBindingIndex:
    """Test the backward scan for the holder-binding token."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "parts,expected",
        [
            (["jwt", "d1", "d2", ""], None),
            (["jwt", "d1", "a.b.c"], 2),
            (["jwt", "a.b.c", "d2", ""], 1),
            (["a.b.c"], None),
        ],
    )
    def test_scan(self, parts, expected):
        """Test that index 0 is never considered."""
        assert find_holder_binding_index(parts) == expected


class TestDecodeDocument:
    """Test dispatch to the document parser."""

    @pytest.mark.unit
    def test_hex_document(self, documents, fixed_now):
        """Test that hex CBOR decodes as a document."""
        issuer_signed = documents.issuer_signed({"family_name": "Doe"}, fixed_now, fixed_now)
        envelope = decode(documents.hex(issuer_signed))

        assert isinstance(envelope, DocumentEnvelope)
        assert envelope.format == "mso_mdoc"

    @pytest.mark.unit
    def test_custom_document_parser(self):
        """Test that the document parser is a replaceable collaborator."""
        expected = DocumentEnvelope(doc_type="x", metadata_object={}, claims_by_namespace={})

        class StubParser:
            def parse(self, text):
                return expected

        assert decode("anything", document_parser=StubParser()) is expected

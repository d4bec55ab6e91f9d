"""Unit tests for the decode and prefill routes and share links."""

import json

import pytest
from fastapi.testclient import TestClient

from cred_inspect.api import (
    PrefillSource,
    build_share_link,
    create_app,
    parse_share_link,
)


@pytest.fixture
def client():
    """Test client for an application without a prefill credential."""
    return TestClient(create_app())


def post_json(client: TestClient, body: str):
    return client.post("/api/decode", content=body, headers={"Content-Type": "application/json"})


class TestDecodeRoute:
    """Test status codes and response shapes of POST /api/decode."""

    @pytest.mark.unit
    @pytest.mark.parametrize("body", ['{"input": ""}', "{}", '{"input": "   "}'])
    def test_input_required(self, client, body: str):
        """Test that missing or empty input is a 400."""
        response = post_json(client, body)

        assert response.status_code == 400
        assert response.json() == {"error": "input is required"}

    @pytest.mark.unit
    def test_invalid_json(self, client):
        """Test that an unparsable body is a 400."""
        response = post_json(client, "not json")

        assert response.status_code == 400
        assert response.json() == {"error": "invalid JSON"}

    @pytest.mark.unit
    @pytest.mark.parametrize("body", ["[1, 2]", '{"input": 42}', '{"input": "a.b.", "key": [1]}'])
    def test_invalid_body(self, client, body: str):
        """Test that a body of the wrong shape is a 400."""
        response = post_json(client, body)

        assert response.status_code == 400
        assert response.json() == {"error": "invalid request body"}

    @pytest.mark.unit
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    def test_post_only(self, client, method: str):
        """Test that other methods are rejected."""
        response = client.request(method, "/api/decode")

        assert response.status_code == 405

    @pytest.mark.unit
    @pytest.mark.parametrize("credential", ["not-a-credential", "aaa.bbb.ccc"])
    def test_undecodable_input(self, client, credential: str):
        """Test that decode failures are a 422 with no decoded fields."""
        response = client.post("/api/decode", json={"input": credential})

        assert response.status_code == 422
        assert set(response.json()) == {"error"}
        assert response.json()["error"]

    @pytest.mark.unit
    def test_json_content_type(self, client, tokens, simple_claims):
        """Test that success and error bodies are both JSON."""
        ok = client.post("/api/decode", json={"input": tokens.jwt(simple_claims)})
        error = client.post("/api/decode", json={"input": ""})

        assert ok.headers["content-type"] == "application/json"
        assert error.headers["content-type"] == "application/json"

    @pytest.mark.unit
    def test_jwt_response(self, client, tokens, simple_claims):
        """Test the response for a plain JWT."""
        response = client.post("/api/decode", json={"input": tokens.jwt(simple_claims)})
        body = response.json()

        assert response.status_code == 200
        assert body["format"] == "jwt"
        assert body["header"] == {"alg": "none", "typ": "JWT"}
        assert body["payload"] == simple_claims
        assert "disclosures" not in body
        assert "docType" not in body
        assert "error" not in body
        assert body["validity"]["status"] == "valid"
        assert [c["name"] for c in body["validity"]["checklist"]] == [
            "expiry",
            "integrity",
            "signature",
            "status",
        ]
        assert [s["id"] for s in body["segments"]] == ["header", "payload"]
        assert body["segments"][0]["index"] is None

    @pytest.mark.unit
    def test_sd_jwt_response(self, client, tokens):
        """Test the camelCase response for an SD-JWT with a holder-binding token."""
        kb = tokens.jwt({"nonce": "n"}, header={"alg": "none", "typ": "kb+jwt"})
        raw = tokens.sd_jwt({"iss": "x"}, [["s1", "given_name", "Erika"]], key_binding=kb)
        body = client.post("/api/decode", json={"input": raw}).json()

        assert body["format"] == "dc+sd-jwt"
        disclosure = body["disclosures"][0]
        assert disclosure["name"] == "given_name"
        assert disclosure["salt"] == "s1"
        assert disclosure["isArrayEntry"] is False
        assert disclosure["resolved"] is True
        assert disclosure["digest"] == tokens.digest(tokens.disclosure("s1", "given_name", "Erika"))
        assert "error" not in disclosure
        assert body["resolvedClaims"]["given_name"] == {"value": "Erika", "source": "disclosed"}
        assert body["keyBindingJWT"]["payload"] == {"nonce": "n"}
        assert body["keyBindingJWT"]["signature"] is None

    @pytest.mark.unit
    def test_malformed_disclosure_entry(self, client, tokens):
        """Test that a malformed disclosure is reported with its error."""
        raw = tokens.sd_jwt({"iss": "x"}, [["s1", "a", 1]]).rstrip("~") + "~!!!~"
        body = client.post("/api/decode", json={"input": raw}).json()

        stub = body["disclosures"][1]
        assert stub["resolved"] is False
        assert stub["name"] is None
        assert stub["error"]
        assert body["warnings"]

    @pytest.mark.unit
    def test_mdoc_response(self, client, documents, fixed_now):
        """Test the response for an mDOC DeviceResponse."""
        issuer_signed = documents.issuer_signed(
            {"family_name": "Doe", "portrait": b"\x01\x02"}, fixed_now, fixed_now
        )
        device_response = documents.device_response(issuer_signed, device_auth={"deviceSignature": []})
        response = client.post("/api/decode", json={"input": documents.hex(device_response)})
        body = response.json()

        assert response.status_code == 200
        assert body["format"] == "mso_mdoc"
        assert body["docType"] == "org.iso.18013.5.1.mDL"
        assert body["claims"]["org.iso.18013.5.1"]["family_name"] == "Doe"
        assert body["claims"]["org.iso.18013.5.1"]["portrait"] == "0102"
        assert body["mso"]["validityInfo"]["validFrom"] == "2025-06-01T12:00:00Z"
        assert body["deviceAuth"] == {"deviceSignature": []}
        assert body["segments"] == []
        assert "header" not in body

    @pytest.mark.unit
    def test_mdoc_set_value(self, client, documents, fixed_now):
        """Test that CBOR sets in element values are served as sorted lists."""
        issuer_signed = documents.issuer_signed({"codes": {3, 1, 2}}, fixed_now, fixed_now)
        response = client.post("/api/decode", json={"input": documents.hex(issuer_signed)})

        assert response.status_code == 200
        assert response.json()["claims"]["org.iso.18013.5.1"]["codes"] == [1, 2, 3]

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("tree", "status_code"),
        [
            ({"nameSpaces": {"ns": 5}, "issuerAuth": None}, 200),
            ({"documents": [{"docType": "x", "issuerSigned": [1, 2]}]}, 422),
        ],
    )
    def test_wrong_shape_mdoc(self, client, documents, tree, status_code: int):
        """Test that CBOR of the wrong mDOC shape is a warning or a 422, never a crash."""
        response = client.post("/api/decode", json={"input": documents.hex(tree)})

        assert response.status_code == status_code
        assert response.headers["content-type"] == "application/json"

    @pytest.mark.unit
    def test_key_is_used(self, client, tokens, ec_keypair, ec_public_pem, simple_claims):
        """Test that the optional key reaches signature verification."""
        body = {"input": tokens.signed_jwt(simple_claims, ec_keypair[0]), "key": ec_public_pem}
        response = client.post("/api/decode", json=body)

        signature = response.json()["validity"]["checklist"][2]
        assert signature == {"name": "signature", "outcome": "pass", "detail": "Signature valid (ES256)"}

    @pytest.mark.unit
    def test_blank_key_means_no_key(self, client, tokens, simple_claims):
        """Test that a blank key is the same as no key."""
        response = client.post("/api/decode", json={"input": tokens.jwt(simple_claims), "key": "  "})

        assert response.json()["validity"]["checklist"][2]["detail"] == "No key provided"

    @pytest.mark.unit
    def test_collaborators_passed_through(self, tokens, fixed_now, epoch):
        """Test that collaborators given to create_app reach the pipeline."""
        client = TestClient(create_app(now=fixed_now))
        raw = tokens.jwt({"iss": "x", "exp": epoch(days=-1)})

        assert client.post("/api/decode", json={"input": raw}).json()["validity"]["status"] == "expired"

    @pytest.mark.unit
    def test_body_is_serializable(self, client, tokens):
        """Test that the body round-trips through JSON unchanged."""
        raw = tokens.sd_jwt({"iss": "x"}, [["s1", "given_name", "Erika"]])
        response = client.post("/api/decode", json={"input": raw})

        assert json.loads(response.text) == response.json()


class TestPrefillRoute:
    """Test GET /api/prefill and the one-shot prefill source."""

    @pytest.mark.unit
    def test_consumed_once(self):
        """Test that the credential is handed out exactly once."""
        client = TestClient(create_app(PrefillSource("eyJ.eyJ.")))

        first = client.get("/api/prefill")
        assert first.status_code == 200
        assert first.headers["content-type"] == "application/json"
        assert first.json() == {"credential": "eyJ.eyJ."}
        assert client.get("/api/prefill").json() == {"credential": ""}

    @pytest.mark.unit
    def test_no_source(self, client):
        """Test the response without a prefill source."""
        response = client.get("/api/prefill")

        assert response.status_code == 200
        assert response.json() == {"credential": ""}

    @pytest.mark.unit
    def test_get_only(self, client):
        """Test that the prefill route does not accept POST."""
        assert client.post("/api/prefill").status_code == 405

    @pytest.mark.unit
    def test_from_file(self, tmp_path):
        """Test reading the prefill credential from a file."""
        path = tmp_path / "credential.txt"
        path.write_text("abc.def.ghi\n", encoding="utf-8")

        assert PrefillSource.from_file(path).consume() == "abc.def.ghi"


class TestShareLink:
    """Test share-link embedding."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "credential",
        [
            "eyJhbGciOiJub25lIn0.eyJzdWIiOiJ4In0.",
            "a.b.c~d1~d2~",
            "a2646f63756d656e7473",
            "base64+with/slashes==",
            "  spaces & ampersands = equals #hash\n",
            "unicode: é中",
        ],
    )
    def test_round_trip(self, credential: str):
        """Test that the credential comes back exactly."""
        url = build_share_link("https://inspect.example/", credential)

        assert parse_share_link(url) == credential

    @pytest.mark.unit
    def test_single_percent_encoded_parameter(self):
        """Test the link layout."""
        url = build_share_link("https://inspect.example/", "a.b.c~d~")

        assert url == "https://inspect.example/?credential=a.b.c~d~"
        assert build_share_link("https://x/", "a/b+c") == "https://x/?credential=a%2Fb%2Bc"

    @pytest.mark.unit
    def test_existing_query_kept(self):
        """Test that other parameters survive and an old credential is replaced."""
        url = build_share_link("https://x/?theme=dark&credential=old", "new")

        assert url == "https://x/?theme=dark&credential=new"
        assert parse_share_link(url) == "new"

    @pytest.mark.unit
    def test_missing_parameter(self):
        """Test a URL without a credential."""
        assert parse_share_link("https://x/?theme=dark") is None

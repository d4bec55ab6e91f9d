#!/usr/bin/env python3
"""Example of inspecting an SD-JWT with the public API."""

import hashlib

import cred_inspect
from cred_inspect import jose_utils


class RevokedList:
    """Example status checker implementing the StatusChecker protocol."""

    def __init__(self, revoked_indexes: set[int]):
        self.revoked_indexes = revoked_indexes

    def check(self, envelope) -> cred_inspect.VerificationResult:
        """Look the credential's status index up in a local list."""
        status = envelope.payload.get("status", {})
        index = status.get("idx") if isinstance(status, dict) else None
        if index in self.revoked_indexes:
            return cred_inspect.VerificationResult(False, f"Revoked (index {index})")
        return cred_inspect.VerificationResult(True, "Not revoked")


def build_sd_jwt() -> str:
    """Build an unsigned SD-JWT with two disclosures."""
    disclosures = [
        jose_utils.encode_json_segment(["2GLC42sKQveCfGfryNRN9w", "given_name", "Erika"]),
        jose_utils.encode_json_segment(["eluV5Og3gSNII8EYnsxA_A", "family_name", "Mustermann"]),
    ]
    digests = [
        jose_utils.b64url_encode(hashlib.sha256(d.encode("ascii")).digest()) for d in disclosures
    ]
    header = jose_utils.encode_json_segment({"alg": "none", "typ": "dc+sd-jwt"})
    payload = jose_utils.encode_json_segment(
        {
            "iss": "https://issuer.example",
            "vct": "urn:eudi:pid:1",
            "exp": 4102444799,
            "status": {"idx": 7},
            "_sd": digests,
            "_sd_alg": "sha-256",
        }
    )
    return "~".join([f"{header}.{payload}.", *disclosures, ""])


def main():
    """Demonstrate decoding, checklist and share links."""
    print("cred-inspect SD-JWT Example")
    print("=" * 40)

    raw = build_sd_jwt()

    # 1. Decode and assess
    result = cred_inspect.inspect_credential(raw, status_checker=RevokedList({7}))
    print(f"\n1. Format: {result.format}")
    print(f"   Summary: {cred_inspect.summarize(result)}")

    # 2. Resolved claims
    print("\n2. Resolved claims:")
    for name, claim in result.resolved_claims.items():
        print(f"   {name} = {claim.value!r} ({claim.source.value})")

    # 3. Checklist
    print(f"\n3. Validity: {result.validity.status.value}")
    for check in result.validity.checklist:
        print(f"   {check.name.value}: {check.outcome.value} - {check.detail}")

    # 4. Share link
    url = cred_inspect.build_share_link("https://inspect.example/", raw)
    assert cred_inspect.parse_share_link(url) == raw
    print(f"\n4. Share link: {url[:60]}...")

    # 5. Response body as served by POST /api/decode
    response = cred_inspect.DecodeResponse.from_result(result)
    print(f"\n5. Decode response: {len(response.model_dump_json(by_alias=True))} bytes")
    print("   Serve it with: cred-inspect serve --port 8080")


if __name__ == "__main__":
    main()

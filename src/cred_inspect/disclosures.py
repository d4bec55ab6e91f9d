"""Selective-disclosure digest matching and claim resolution for SD-JWT."""

import hashlib
import logging
from dataclasses import replace
from typing import Any, Callable, Optional

from . import config, jose_utils
from .models import (
    ClaimSource,
    Disclosure,
    ResolvedClaim,
    ResolvedClaims,
    Resolution,
    SelectiveDisclosureEnvelope,
)

logger = logging.getLogger(__name__)

HASH_ALGORITHMS: dict[str, Callable[..., Any]] = {
    "sha-256": hashlib.sha256,
    "sha-384": hashlib.sha384,
    "sha-512": hashlib.sha512,
    "sha3-256": hashlib.sha3_256,
    "sha3-512": hashlib.sha3_512,
}


def encode_disclosure(salt: str, name: Optional[str], value: Any) -> str:
    """Encode a disclosure array as compact base64url JSON.

    SD-JWT format: [salt, name, value], or [salt, value] for array elements

    Args:
        salt: Disclosure salt
        name: Claim name, None for an array element
        value: Claim value

    Returns:
        base64url text as it appears between "~" separators
    """
    disclosure_array = [salt, value] if name is None else [salt, name, value]
    return jose_utils.encode_json_segment(disclosure_array)


def hash_disclosure(encoded: str, hash_alg: str = config.DEFAULT_SD_ALG) -> str:
    """Hash a disclosure over its exact encoded text.

    The digest input is the base64url text itself, never a re-serialization
    of the decoded JSON, so key order and whitespace chosen by the issuer
    are preserved.

    Args:
        encoded: base64url disclosure text
        hash_alg: Hash algorithm name (IANA "Named Information" style)

    Returns:
        base64url digest without padding

    Raises:
        ValueError: If the hash algorithm is unsupported
    """
    if hash_alg not in HASH_ALGORITHMS:
        raise ValueError(f"Unsupported hash algorithm: {hash_alg}")
    digest = HASH_ALGORITHMS[hash_alg](encoded.encode("utf-8")).digest()
    return jose_utils.b64url_encode(digest)


def with_digests(
    disclosures: tuple[Disclosure, ...], hash_alg: str
) -> tuple[Disclosure, ...]:
    """Fill in encoded text (when absent) and digest for every disclosure."""
    result = []
    for d in disclosures:
        encoded = d.encoded
        if not encoded and not d.is_malformed:
            encoded = encode_disclosure(d.salt, d.name, d.value)
        result.append(replace(d, encoded=encoded, digest=hash_disclosure(encoded, hash_alg)))
    return tuple(result)


def _is_array_placeholder(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and len(item) == 1
        and isinstance(item.get(config.SD_ARRAY_ELEMENT_KEY), str)
    )


class _DigestWalker:
    """Rebuild a payload tree, substituting matched disclosures in place.

    Each digest is matched at most once (visited set), and commitments nested
    deeper than max_depth disclosure levels are ignored, so a crafted
    credential cannot make resolution loop or recurse without bound.
    """

    def __init__(self, disclosures: tuple[Disclosure, ...], max_depth: int):
        self.disclosures = disclosures
        self.max_depth = max_depth
        self.by_digest: dict[str, int] = {}
        self.matched: set[str] = set()
        self.resolved: set[int] = set()
        self.orphans: list[tuple[int, Any]] = []
        self.warnings: list[str] = []
        self._depth_exceeded = False

        for i, d in enumerate(disclosures):
            if d.is_malformed or not d.digest:
                continue
            if d.digest in self.by_digest:
                self.warnings.append(
                    f"Disclosure {i} ({d.label}) duplicates disclosure {self.by_digest[d.digest]}"
                )
                continue
            self.by_digest[d.digest] = i

    def take(self, digest: str, depth: int) -> Optional[int]:
        if depth > self.max_depth:
            if not self._depth_exceeded:
                self._depth_exceeded = True
                self.warnings.append(
                    f"Disclosures nested deeper than {self.max_depth} levels were not resolved"
                )
            return None
        if digest in self.matched:
            self.warnings.append(f"Digest {digest[:16]}... is committed more than once")
            return None
        index = self.by_digest.get(digest)
        if index is None:
            # Decoy digest or a disclosure the holder chose not to present
            return None
        self.matched.add(digest)
        self.resolved.add(index)
        return index

    def walk_object(self, obj: dict[str, Any], depth: int) -> tuple[dict[str, Any], set[str]]:
        out: dict[str, Any] = {}
        disclosed_keys: set[str] = set()

        for key, value in obj.items():
            if key in config.SD_INTERNAL_FIELDS:
                continue
            out[key] = self.walk(value, depth)

        digests = obj.get(config.SD_DIGESTS_FIELD)
        if not isinstance(digests, list):
            return out, disclosed_keys

        for digest in digests:
            if not isinstance(digest, str):
                continue
            index = self.take(digest, depth)
            if index is None:
                continue
            d = self.disclosures[index]
            value = self.walk(d.value, depth + 1)
            if d.is_array_entry:
                self.orphans.append((index, value))
                continue
            if d.name in out:
                self.warnings.append(
                    f"Disclosed claim '{d.name}' overrides a claim of the same name"
                )
            out[d.name] = value
            disclosed_keys.add(d.name)
        return out, disclosed_keys

    def walk_array(self, arr: list[Any], depth: int) -> list[Any]:
        out: list[Any] = []
        for item in arr:
            if not _is_array_placeholder(item):
                out.append(self.walk(item, depth))
                continue
            index = self.take(item[config.SD_ARRAY_ELEMENT_KEY], depth)
            if index is None:
                # Undisclosed element is omitted from the resolved array
                continue
            d = self.disclosures[index]
            value = self.walk(d.value, depth + 1)
            out.append(value if d.is_array_entry else {d.name: value})
        return out

    def walk(self, value: Any, depth: int) -> Any:
        if isinstance(value, dict):
            return self.walk_object(value, depth)[0]
        if isinstance(value, list):
            return self.walk_array(value, depth)
        return value


def resolve(
    envelope: SelectiveDisclosureEnvelope, max_depth: int = config.MAX_DISCLOSURE_DEPTH
) -> Resolution:
    """Match disclosures against the payload's digest commitments.

    Only disclosures whose digest is reachable from the payload (directly or
    through the value of another matched disclosure) are resolved. The rest
    are kept, flagged unresolved, and reported in warnings.

    Args:
        envelope: Decoded SD-JWT
        max_depth: Maximum disclosure nesting level to follow

    Returns:
        Resolution with digested disclosures and lexicographically ordered
        resolved claims
    """
    warnings: list[str] = []
    hash_alg = envelope.payload.get(config.SD_ALG_FIELD, config.DEFAULT_SD_ALG)

    if isinstance(hash_alg, str) and hash_alg in HASH_ALGORITHMS:
        disclosures = with_digests(envelope.disclosures, hash_alg)
    else:
        warnings.append(f"Unsupported _sd_alg '{hash_alg}'; disclosures cannot be matched")
        disclosures = envelope.disclosures

    walker = _DigestWalker(disclosures, max_depth)
    tree, disclosed_keys = walker.walk_object(envelope.payload, 0)
    warnings.extend(walker.warnings)

    claims: dict[str, ResolvedClaim] = {}
    for key, value in tree.items():
        source = ClaimSource.DISCLOSED if key in disclosed_keys else ClaimSource.STANDARD
        claims[key] = ResolvedClaim(value=value, source=source)
    for index, value in walker.orphans:
        claims[f"[{index}]"] = ResolvedClaim(value=value, source=ClaimSource.DISCLOSED)

    resolved_disclosures = tuple(
        replace(d, resolved=i in walker.resolved) for i, d in enumerate(disclosures)
    )
    for i, d in enumerate(resolved_disclosures):
        if not d.resolved and not d.is_malformed:
            warnings.append(f"Disclosure {i} ({d.label}): digest not found in any commitment")

    for message in warnings:
        logger.warning("sd-jwt: %s", message)

    resolved_claims: ResolvedClaims = dict(sorted(claims.items()))
    return Resolution(
        disclosures=resolved_disclosures,
        resolved_claims=resolved_claims,
        warnings=tuple(warnings),
    )

"""cred-inspect configuration constants.

Constants are organized into:
- FORMAT: Fixed by the credential formats, not meant to be changed
- POLICY: Implementation choices for how credentials are judged
- OPERATIONAL: Deployment-specific settings (env vars)
"""

import os

# =============================================================================
# FORMAT CONSTANTS (fixed by JWT / SD-JWT / mDOC)
# =============================================================================

FORMAT_JWT: str = "jwt"
FORMAT_SD_JWT: str = "dc+sd-jwt"
FORMAT_MDOC: str = "mso_mdoc"

# SD-JWT payload fields that carry digests rather than claims
SD_DIGESTS_FIELD: str = "_sd"
SD_ALG_FIELD: str = "_sd_alg"
SD_INTERNAL_FIELDS: frozenset[str] = frozenset({SD_DIGESTS_FIELD, SD_ALG_FIELD})

# Key of an array element placeholder: {"...": "<digest>"}
SD_ARRAY_ELEMENT_KEY: str = "..."

# Digest algorithm when _sd_alg is absent
DEFAULT_SD_ALG: str = "sha-256"

# Well-known epoch timestamp fields in JWT payloads
TIMESTAMP_FIELDS: frozenset[str] = frozenset({"exp", "iat", "nbf", "auth_time", "updated_at"})

# =============================================================================
# POLICY CONSTANTS
# =============================================================================

# A credential expiring within this window is reported as "expiring"
EXPIRING_HORIZON_SECONDS: int = 7 * 86400

# Nesting bound for disclosures carrying further digests
MAX_DISCLOSURE_DEPTH: int = 8

# Plausible epoch range for timestamp annotation (2001-09-09 .. 2100-01-01)
TIMESTAMP_MIN_EPOCH: int = 1_000_000_000
TIMESTAMP_MAX_EPOCH: int = 4_102_444_800

# =============================================================================
# OPERATIONAL CONSTANTS (env overridable)
# =============================================================================

# Quiet period after the last edit before decoding
DEBOUNCE_SECONDS: float = int(os.getenv("CRED_INSPECT_DEBOUNCE_MS", "300")) / 1000

# Bridging delay between a paste event and decoding
PASTE_DELAY_SECONDS: float = int(os.getenv("CRED_INSPECT_PASTE_DELAY_MS", "10")) / 1000

# Query parameter carrying the credential in share links
SHARE_QUERY_PARAM: str = os.getenv("CRED_INSPECT_SHARE_PARAM", "credential")

# Root log level used by logging_config.configure_logging()
LOG_LEVEL: str = os.getenv("CRED_INSPECT_LOG_LEVEL", "WARNING").upper()

# Bind address for `cred-inspect serve`
SERVER_HOST: str = os.getenv("CRED_INSPECT_HOST", "127.0.0.1")
SERVER_PORT: int = int(os.getenv("CRED_INSPECT_PORT", "8080"))

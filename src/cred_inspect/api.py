"""HTTP interface: the decode and prefill routes, plus share links.

create_app() builds the FastAPI application served by `cred-inspect serve`:

- POST /api/decode: {"input", "key"?} -> DecodeResponse, or {"error"} with
  400 (bad body, empty input) or 422 (undecodable credential)
- GET /api/prefill: {"credential"}, the out-of-band credential handed out once
"""

import logging
import time
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import parse_qs, quote, urlsplit, urlunsplit

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import config
from .api_models import DecodeRequest, DecodeResponse, ErrorResponse, PrefillResponse
from .exceptions import DecodeError
from .inspector import inspect_credential

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def handle_decode_request(req: DecodeRequest, **collaborators: Any) -> JSONResponse:
    """Decode the credential in a request body.

    Args:
        req: Validated request body
        **collaborators: Passed through to inspect_credential (now,
            document_parser, signature_verifier, status_checker)

    Returns:
        200 with the DecodeResponse, 400 for empty input, 422 when the
        credential cannot be decoded
    """
    if not req.input.strip():
        return _error(400, "input is required")

    key = req.key if req.key and req.key.strip() else None
    try:
        result = inspect_credential(req.input, verify_key=key, **collaborators)
    except DecodeError as e:
        logger.info("decode request rejected: %s", e.message, extra={"code": e.code})
        return _error(422, e.message)
    return JSONResponse(DecodeResponse.from_result(result).to_body())


class PrefillSource:
    """An initial credential supplied out of band, handed out once."""

    def __init__(self, credential: Optional[str] = None):
        self._credential = credential or None

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "PrefillSource":
        """Read the credential from a file; surrounding whitespace is dropped."""
        return cls(Path(path).read_text(encoding="utf-8").strip())

    def consume(self) -> Optional[str]:
        credential, self._credential = self._credential, None
        return credential


def create_app(prefill: Optional[PrefillSource] = None, **collaborators: Any) -> FastAPI:
    """Build the HTTP application.

    Args:
        prefill: Optional out-of-band credential for /api/prefill
        **collaborators: Passed through to inspect_credential on every decode

    Returns:
        FastAPI application
    """
    app = FastAPI(title="cred-inspect")

    @app.middleware("http")
    async def req_log(request: Request, call_next):
        start = time.time()
        resp = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        logger.info(
            f"request_complete status={resp.status_code} duration_ms={duration_ms}",
            extra={"route": request.url.path, "method": request.method},
        )
        return resp

    @app.exception_handler(RequestValidationError)
    async def invalid_body_handler(request: Request, exc: RequestValidationError):
        if any(err.get("type") == "json_invalid" for err in exc.errors()):
            return _error(400, "invalid JSON")
        return _error(400, "invalid request body")

    @app.post("/api/decode")
    def decode(req: DecodeRequest):
        return handle_decode_request(req, **collaborators)

    @app.get("/api/prefill")
    def prefill_credential():
        credential = prefill.consume() if prefill is not None else None
        return JSONResponse(PrefillResponse(credential=credential or "").model_dump())

    return app


def build_share_link(base_url: str, credential: str) -> str:
    """Embed a credential in a URL as a single percent-encoded query parameter.

    Args:
        base_url: Page URL; existing query parameters are kept, except an
            earlier credential parameter
        credential: Raw credential text, embedded verbatim

    Returns:
        Share URL
    """
    parts = urlsplit(base_url)
    kept = [
        pair
        for pair in parts.query.split("&")
        if pair and pair.split("=", 1)[0] != config.SHARE_QUERY_PARAM
    ]
    kept.append(f"{config.SHARE_QUERY_PARAM}={quote(credential, safe='')}")
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "&".join(kept), parts.fragment))


def parse_share_link(url: str) -> Optional[str]:
    """Extract the credential from a share URL, exactly as it was embedded."""
    values = parse_qs(urlsplit(url).query, keep_blank_values=True).get(config.SHARE_QUERY_PARAM)
    if not values:
        return None
    return values[0]

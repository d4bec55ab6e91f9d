"""Command-line interface for cred-inspect."""

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Optional, TextIO

import uvicorn

from . import __version__, config
from .api import PrefillSource, build_share_link, create_app, parse_share_link
from .edn_utils import document_to_diag
from .exceptions import DecodeError
from .inspector import inspect_credential, summarize, to_json
from .logging_config import configure_logging
from .mdoc import DocumentParseError
from .models import DecodeResult, DocumentEnvelope, SelectiveDisclosureEnvelope
from .validity import annotate_timestamps

_OUTCOME_MARKS = {"pass": "+", "fail": "x", "inapplicable": "-", "unknown": "?"}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cred-inspect",
        description="Decode and inspect JWT, SD-JWT and mDOC credentials",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--log-level", help="Log level (default: CRED_INSPECT_LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Decode subcommand
    decode_parser = subparsers.add_parser("decode", help="Decode a credential")
    decode_parser.add_argument("credential", nargs="?", help="Credential text (default: stdin)")
    decode_parser.add_argument("--file", "-f", help="Read the credential from a file")
    decode_parser.add_argument("--key", "-k", help="Verification key (PEM or JWK) file")
    decode_parser.add_argument("--json", action="store_true", help="Print the full JSON result")
    decode_parser.add_argument(
        "--diag", action="store_true", help="Print mDOC input as CBOR diagnostic notation"
    )

    # Share-link subcommand
    share_parser = subparsers.add_parser("share-link", help="Build or read a share link")
    share_parser.add_argument("base_url", nargs="?", help="Page URL to embed the credential in")
    share_parser.add_argument("credential", nargs="?", help="Credential text (default: stdin)")
    share_parser.add_argument("--parse", metavar="URL", help="Print the credential in a share link")

    # Serve subcommand
    serve_parser = subparsers.add_parser("serve", help="Serve the decode HTTP API")
    serve_parser.add_argument("--host", default=config.SERVER_HOST, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=config.SERVER_PORT, help="Bind port")
    serve_parser.add_argument(
        "--prefill", metavar="FILE", help="Credential handed to the first /api/prefill request"
    )

    return parser


def _read_credential(args: argparse.Namespace, stdin: TextIO) -> str:
    if getattr(args, "file", None):
        return Path(args.file).read_text(encoding="utf-8")
    if args.credential:
        return str(args.credential)
    return stdin.read()


def _print_text(result: DecodeResult, out: TextIO) -> None:
    envelope = result.envelope
    print(f"Format: {result.format}", file=out)
    for name, value in summarize(result).items():
        print(f"  {name}: {value}", file=out)

    if result.validity is not None:
        print(f"Validity: {result.validity.status.value}", file=out)
        for check in result.validity.checklist:
            mark = _OUTCOME_MARKS[check.outcome.value]
            print(f"  [{mark}] {check.name.value}: {check.detail}", file=out)

    if isinstance(envelope, DocumentEnvelope):
        print("Claims:", file=out)
        print(json.dumps(to_json(result)["claims"], indent=2, ensure_ascii=False), file=out)
    else:
        timestamps = annotate_timestamps(envelope.payload)
        if timestamps:
            print("Timestamps:", file=out)
            for field, info in timestamps.items():
                print(f"  {field}: {info['iso']} ({info['relative']})", file=out)

    if isinstance(envelope, SelectiveDisclosureEnvelope):
        print(f"Disclosures ({len(result.disclosures or ())}):", file=out)
        for i, d in enumerate(result.disclosures or ()):
            state = "resolved" if d.resolved else "unresolved"
            print(f"  {i}: {d.label} = {json.dumps(d.value)} [{state}]", file=out)

    for warning in result.warnings:
        print(f"Warning: {warning}", file=out)


def _decode_command(args: argparse.Namespace, out: TextIO, stdin: TextIO) -> int:
    raw = _read_credential(args, stdin)
    key: Optional[str] = None
    if args.key:
        key = Path(args.key).read_text(encoding="utf-8")

    try:
        result = inspect_credential(raw, verify_key=key)
    except DecodeError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if args.diag:
        if not isinstance(result.envelope, DocumentEnvelope):
            print("Error: --diag only applies to mDOC input", file=sys.stderr)
            return 1
        try:
            print(document_to_diag(raw), file=out)
        except (DocumentParseError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    if args.json:
        payload: dict[str, Any] = to_json(result)
        print(json.dumps(payload, indent=2, ensure_ascii=False), file=out)
    else:
        _print_text(result, out)
    return 0


def _share_link_command(args: argparse.Namespace, out: TextIO, stdin: TextIO) -> int:
    if args.parse:
        credential = parse_share_link(args.parse)
        if credential is None:
            print("Error: link carries no credential", file=sys.stderr)
            return 1
        print(credential, file=out)
        return 0

    if not args.base_url:
        print("Error: base_url is required", file=sys.stderr)
        return 2
    credential = _read_credential(args, stdin).strip()
    print(build_share_link(args.base_url, credential), file=out)
    return 0


def _serve_command(args: argparse.Namespace) -> int:
    prefill = PrefillSource.from_file(args.prefill) if args.prefill else None
    # log_config=None keeps the JSON logging installed by configure_logging
    uvicorn.run(create_app(prefill), host=args.host, port=args.port, log_config=None)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(args.log_level)

    if args.command == "decode":
        return _decode_command(args, sys.stdout, sys.stdin)
    if args.command == "serve":
        return _serve_command(args)
    return _share_link_command(args, sys.stdout, sys.stdin)


if __name__ == "__main__":
    sys.exit(main())

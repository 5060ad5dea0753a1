"""CLI entry point for chatrest.

Sends a single REST request built from command-line arguments and prints the
response. Useful for poking at endpoints with the same rate-limit handling
and error classification the library applies.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from chatrest.client import RestClient
from chatrest.config_loader import ConfigError, load_runtime_config
from chatrest.endpoints import RestEndpoint
from chatrest.errors import ChatRestError, SemanticApiError
from chatrest.submitter import InlineSubmitter


def non_negative_int(value: str) -> int:
    """Parse and validate a non-negative integer value.

    Raises:
        argparse.ArgumentTypeError: If value is not a non-negative integer.
    """
    try:
        result = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid integer '{value}'.")
    if result < 0:
        raise argparse.ArgumentTypeError(f"Value cannot be negative, got {result}.")
    return result


def parse_query_parameter(value: str) -> tuple[str, str]:
    """Parse KEY=VALUE format.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if "=" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid format '{value}'. Expected KEY=VALUE (e.g., 'limit=50')"
        )
    key, _, param_value = value.partition("=")
    if not key:
        raise argparse.ArgumentTypeError(f"Invalid format '{value}'. Key cannot be empty.")
    return (key, param_value)


def json_value(value: str) -> Any:
    """Parse a JSON document given on the command line."""
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"Invalid JSON body: {e}")


@dataclass
class RequestArgs:
    """Parsed arguments for request mode."""

    config: Path
    method: str
    path: str
    params: list[str] = field(default_factory=list)
    query: list[tuple[str, str]] = field(default_factory=list)
    body: Any = None
    no_auth: bool = False
    max_retries: int | None = None
    major_position: int | None = None
    major_parameter: str | None = None
    verbose: bool = False


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with the request subcommand."""
    parser = argparse.ArgumentParser(
        prog="chatrest",
        description="Send rate-limit aware REST requests to a chat platform API.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Execution mode")

    request_parser = subparsers.add_parser(
        "request",
        help="Send one request and print the response",
    )
    request_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to runtime configuration file (YAML)",
    )
    request_parser.add_argument(
        "--method",
        type=str.upper,
        default="GET",
        help="HTTP method (GET, POST, PUT, DELETE, PATCH). Default: GET",
    )
    request_parser.add_argument(
        "--path",
        type=str,
        required=True,
        help="Endpoint path template with {} placeholders, e.g. /channels/{}/messages",
    )
    request_parser.add_argument(
        "--param",
        dest="params",
        type=str,
        action="append",
        default=[],
        metavar="VALUE",
        help="URL parameter substituted into the next {} (can be repeated)",
    )
    request_parser.add_argument(
        "--query",
        type=parse_query_parameter,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Query parameter (can be repeated, order is kept)",
    )
    request_parser.add_argument(
        "--body",
        type=json_value,
        default=None,
        help="JSON request body",
    )
    request_parser.add_argument(
        "--no-auth",
        action="store_true",
        help="Do not send the Authorization header",
    )
    request_parser.add_argument(
        "--max-retries",
        type=non_negative_int,
        default=None,
        help="Rate-limit retries for this request (default: from config)",
    )
    request_parser.add_argument(
        "--major-position",
        type=non_negative_int,
        default=None,
        help="Index of the URL parameter that selects the rate-limit bucket",
    )
    request_parser.add_argument(
        "--major-parameter",
        type=str,
        default=None,
        help="Explicit rate-limit bucket key (overrides --major-position)",
    )
    request_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log request and response details",
    )

    return parser


def parse_request_args(namespace: argparse.Namespace) -> RequestArgs:
    return RequestArgs(
        config=namespace.config,
        method=namespace.method,
        path=namespace.path,
        params=namespace.params,
        query=namespace.query,
        body=namespace.body,
        no_auth=namespace.no_auth,
        max_retries=namespace.max_retries,
        major_position=namespace.major_position,
        major_parameter=namespace.major_parameter,
        verbose=namespace.verbose,
    )


def parse_args(args: list[str] | None = None) -> RequestArgs:
    """Parse command-line arguments and return typed args dataclass.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "request":
        return parse_request_args(namespace)
    # Should not happen with required=True on subparsers
    parser.error(f"Unknown command: {namespace.command}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(argv)
        return run_request(parsed)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def _format_response(response: httpx.Response, body: Any) -> str:
    if body is None:
        rendered = response.text
    else:
        rendered = json.dumps(body, indent=2, ensure_ascii=False)
    return f"{response.status_code}\n{rendered}" if rendered else str(response.status_code)


def run_request(args: RequestArgs) -> int:
    """Run request mode."""
    try:
        runtime_config = load_runtime_config(args.config)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    level = "DEBUG" if args.verbose else (
        runtime_config.logging.level if runtime_config.logging else "WARNING"
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    endpoint = RestEndpoint(args.path, major_parameter_position=args.major_position)

    try:
        with RestClient(runtime_config.client, submitter=InlineSubmitter()) as client:
            builder = (
                client.request(args.method, endpoint)
                .set_url_parameters(*args.params)
                .set_body(args.body)
                .set_custom_major_parameter(args.major_parameter)
                .include_authorization_header(not args.no_auth)
            )
            for key, value in args.query:
                builder.add_query_parameter(key, value)
            if args.max_retries is not None:
                builder.set_max_retries(args.max_retries)

            output = builder.execute(_format_response).result()
    except SemanticApiError as e:
        print(f"Error ({e.code}): {e}", file=sys.stderr)
        return 1
    except (ChatRestError, ValueError) as e:
        # ValueError covers endpoint templating and non-JSON success bodies
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())

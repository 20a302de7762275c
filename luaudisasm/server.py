"""HTTP host that disassembles modules posted by clients.

Clients that cannot send binary bodies may post the module base64 encoded
with a ``text/plain`` content type (or ``?base64=1``).
"""

from __future__ import annotations

import argparse
import base64
import binascii
import logging
import os
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Mapping, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlparse

from .disassembler import disassemble
from .errors import DecodeError

_LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
PORT_ENV_VAR = "LUAUDISASM_PORT"
MAX_PAYLOAD_SIZE = 16 * 1024 * 1024

_TRUE_VALUES = {"1", "true", "yes", "on"}


class PayloadError(ValueError):
    """The request body could not be turned into module bytes."""


def resolve_port(argument: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """Pick the listening port: argument, then environment, then default."""

    env = os.environ if environ is None else environ
    raw = argument if argument is not None else env.get(PORT_ENV_VAR)
    if raw is None or not str(raw).strip():
        return DEFAULT_PORT
    try:
        port = int(str(raw).strip(), 10)
    except ValueError:
        raise ValueError(f"invalid port: {raw!r}") from None
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")
    return port


def decode_payload(body: bytes, text_framed: bool) -> bytes:
    if not text_framed:
        return body
    try:
        return base64.b64decode(body.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise PayloadError(f"invalid base64 payload: {exc}") from exc


def handle_payload(
    body: bytes, *, text_framed: bool = False, show_line_info: bool = False
) -> Tuple[HTTPStatus, str]:
    """Disassemble one request body, converting failures into a response."""

    try:
        data = decode_payload(body, text_framed)
        listing = disassemble(data, show_line_info=show_line_info)
    except (DecodeError, PayloadError) as exc:
        _LOGGER.warning("rejected payload of %d byte(s): %s", len(body), exc)
        return HTTPStatus.BAD_REQUEST, f"error: {exc}\n"
    return HTTPStatus.OK, listing


def _flag(params: Mapping[str, Sequence[str]], name: str) -> bool:
    return params.get(name, [""])[0].lower() in _TRUE_VALUES


def _text_response(handler: BaseHTTPRequestHandler, text: str, status: HTTPStatus = HTTPStatus.OK) -> None:
    payload = text.encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "text/plain; charset=utf-8")
    handler.send_header("Content-Length", str(len(payload)))
    handler.end_headers()
    handler.wfile.write(payload)


class DisassemblerRequestHandler(BaseHTTPRequestHandler):
    server_version = "LuauDisassembler/1.0"

    def log_message(self, format: str, *args: Any) -> None:  # pragma: no cover - delegated to logger
        _LOGGER.info("%s - %s", self.address_string(), format % args)

    def do_GET(self) -> None:  # noqa: D401 - http handler
        if urlparse(self.path).path == "/health":
            _text_response(self, "ok\n")
            return
        _text_response(self, "error: not found\n", HTTPStatus.NOT_FOUND)

    def do_POST(self) -> None:  # noqa: D401 - http handler
        parsed = urlparse(self.path)
        if parsed.path not in {"/", "/disassemble"}:
            _text_response(self, "error: not found\n", HTTPStatus.NOT_FOUND)
            return

        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            length = -1
        if length < 0 or length > MAX_PAYLOAD_SIZE:
            _text_response(self, "error: invalid content length\n", HTTPStatus.BAD_REQUEST)
            return

        body = self.rfile.read(length) if length else b""
        params = parse_qs(parsed.query)
        content_type = self.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
        text_framed = content_type == "text/plain" or _flag(params, "base64")

        status, text = handle_payload(
            body, text_framed=text_framed, show_line_info=_flag(params, "lines")
        )
        _text_response(self, text, status)


def create_server(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> ThreadingHTTPServer:
    server = ThreadingHTTPServer((host, port), DisassemblerRequestHandler)
    server.daemon_threads = True
    return server


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default=DEFAULT_HOST, help="Interface to listen on")
    parser.add_argument(
        "-p",
        "--port",
        default=None,
        help=f"Port to listen on (defaults to ${PORT_ENV_VAR} or {DEFAULT_PORT})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        port = resolve_port(args.port)
    except ValueError as exc:
        raise SystemExit(f"error: {exc}") from None

    server = create_server(args.host, port)
    actual_host, actual_port = server.server_address[:2]
    _LOGGER.info("disassembler listening on http://%s:%d/", actual_host, actual_port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown
        _LOGGER.info("shutting down")
    finally:
        server.server_close()


if __name__ == "__main__":  # pragma: no cover
    main()

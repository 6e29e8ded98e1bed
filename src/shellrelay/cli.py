"""Command-line interface for shellrelay.

Provides the main entry point for serving shells over TCP and a small
``send`` helper for submitting scripts to a running service.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

SERVICE_HELP = """\
Arguments:
  shell[:[addr][:port]]  Shell name/path, optional listen address, optional port
                         Omitted addr/port use defaults from -l
                         Unspecified ports auto-increment for each service
                         Examples:
                           bash                     (default addr:port)
                           bash:192.168.0.1         (default port)
                           bash::8080               (default addr)
                           bash:192.168.0.1:8080
"""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="shellrelay",
        description="Relay scripts to local shell interpreters over TCP",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/relay.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve one or more shells",
        epilog=SERVICE_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    serve_parser.add_argument(
        "services", nargs="+", metavar="shell[:addr][:port]",
        help="Shell to serve",
    )
    serve_parser.add_argument(
        "-l", "--listen", metavar="[ADDR]:PORT", default=None,
        help="Default listen address and port for shells",
    )
    serve_parser.add_argument(
        "-e", "--export", metavar="IDENT=VALUE", action="append", default=[],
        help="Export IDENT=VALUE to shells (repeatable)",
    )
    serve_parser.add_argument(
        "-o", "--output", metavar="FILE", default=None,
        help='Append log to FILE ("-" is stdout)',
    )
    serve_parser.add_argument(
        "-j", "--json", action="store_true",
        help="Use JSON structured logging",
    )

    send_parser = subparsers.add_parser("send", help="Submit a script to a running service")
    send_parser.add_argument("-H", "--host", default=None, help="Service host")
    send_parser.add_argument("-p", "--port", type=int, default=None, help="Service port")
    send_parser.add_argument("-m", "--marker", default=None, help="Script delimiter line")
    send_parser.add_argument(
        "-t", "--timeout", type=float, default=5.0,
        help="Seconds to wait for more output once an error line has been received",
    )
    send_parser.add_argument(
        "words", nargs="*",
        help="Script to run (read from stdin when omitted)",
    )

    return parser.parse_args(argv)


def _build_services(settings, args) -> list:
    """Parse service arguments and make one Service per target."""
    from shellrelay.config.targets import build_targets, parse_export, parse_listen
    from shellrelay.endpoint.service import Service
    from shellrelay.utils.logging import get_service_logger

    addr, port = parse_listen(args.listen or "", settings.listen.address, settings.listen.port)

    exports = dict(settings.exports)
    for item in args.export:
        ident, value = parse_export(item)
        exports[ident] = value

    log = get_service_logger("shellrelay.service")
    services = []
    for target in build_targets(args.services, addr, port):
        services.append(
            Service.make(
                target.shell,
                target.address,
                target.port,
                exports,
                log=log,
                spool_dir=settings.server.spool_dir,
                max_connections=settings.server.max_connections,
            )
        )
    return services


async def serve_all(services: list, shutdown: asyncio.Event | None = None) -> bool:
    """Run every service until shutdown. Returns False if any failed."""
    if shutdown is None:
        shutdown = asyncio.Event()

    loop = asyncio.get_running_loop()

    def _on_signal() -> None:
        logger.info("shutting down")
        shutdown.set()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            pass

    try:
        results = await asyncio.gather(
            *(service.serve(shutdown) for service in services),
            return_exceptions=True,
        )
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)

    failed = False
    for service, result in zip(services, results):
        if isinstance(result, BaseException):
            failed = True
            logger.error("service %s:%d stopped: %s", service.address, service.port, result)
    return not failed


async def _send(settings, args) -> int:
    from shellrelay.client import ClientError, ends_with_error, submit_script

    script = " ".join(args.words) if args.words else sys.stdin.read()
    host = args.host or settings.client.host
    port = args.port or settings.client.port
    marker = args.marker or settings.client.marker
    try:
        output = await submit_script(host, port, script, marker=marker, idle_timeout=args.timeout)
    except ClientError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    sys.stdout.buffer.write(output)
    sys.stdout.buffer.flush()
    return 1 if ends_with_error(output) else 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the shellrelay CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from pydantic import ValidationError

    from shellrelay.config.settings import load_settings
    from shellrelay.config.targets import TargetError
    from shellrelay.endpoint.resolver import ConfigurationError
    from shellrelay.utils.logging import setup_logging

    try:
        settings = load_settings(args.config)
    except ValidationError as e:
        setup_logging()
        logger.error("invalid configuration: %s", e)
        sys.exit(1)

    if args.verbose:
        settings.logging.level = "DEBUG"

    if args.command == "send":
        setup_logging(settings.logging)
        sys.exit(asyncio.run(_send(settings, args)))

    if args.output is not None:
        settings.logging.file = args.output
    if args.json:
        settings.logging.json_output = True
    setup_logging(settings.logging)

    try:
        services = _build_services(settings, args)
    except (TargetError, ConfigurationError) as e:
        logger.error("invalid argument: %s", e)
        sys.exit(1)

    logger.info("Starting %d service(s)", len(services))
    if not asyncio.run(serve_all(services)):
        logger.error("exiting due to error")
        sys.exit(1)


if __name__ == "__main__":
    main()

import argparse
import asyncio
import math
import sys

from udpmetrics.config.loader import build_client, load_settings, summarize_settings
from udpmetrics.utils.logging import configure_logging, get_logger

logger = get_logger("cli")


def _number(text: str):
    try:
        return int(text)
    except ValueError:
        pass
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}")
    if not math.isfinite(value):
        raise argparse.ArgumentTypeError(f"not a finite number: {text!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="udpmetrics", description="Send a single StatsD metric over UDP")
    parser.add_argument("--host", help="StatsD host (default: localhost)")
    parser.add_argument("--port", type=int, help="StatsD UDP port (default: 8125)")
    parser.add_argument("--prefix", help="Dotted key prefix")
    parser.add_argument("--config", help="YAML settings file")
    subparsers = parser.add_subparsers(dest="command", help="Metric type")

    parser_count = subparsers.add_parser("count", help="Counter delta")
    parser_count.add_argument("key")
    parser_count.add_argument("value", nargs="?", type=_number, default=1)

    parser_gauge = subparsers.add_parser("gauge", help="Point-in-time value")
    parser_gauge.add_argument("key")
    parser_gauge.add_argument("value", type=_number)

    parser_timer = subparsers.add_parser("timer", help="Duration in ms")
    parser_timer.add_argument("key")
    parser_timer.add_argument("value", type=_number)

    return parser


async def _emit(settings, command: str, key: str, value) -> int:
    emitter = build_client(settings)
    try:
        await getattr(emitter, command)(key, value)
    except OSError as exc:
        print(f"send failed: {exc}", file=sys.stderr)
        return 1
    finally:
        emitter.close(force=True)
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    configure_logging()
    settings, _ = load_settings(
        args.config,
        cli_overrides={"host": args.host, "port": args.port, "prefix": args.prefix},
    )
    logger.debug("Settings resolved", summary=summarize_settings(settings))
    return asyncio.run(_emit(settings, args.command, args.key, args.value))


if __name__ == "__main__":
    sys.exit(main())

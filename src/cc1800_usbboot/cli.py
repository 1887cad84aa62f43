"""Command-line interface for the CC1800 USB boot tool."""

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .errors import BootError
from .models.operations import ReadOp, parse_operations
from .protocol.requests import DEFAULT_TIMEOUT_MS
from .sequencer import CommandSequencer
from .transport.usb_connection import PRODUCT_ID, VENDOR_ID, BootConnection

logger = logging.getLogger(__name__)

COMMANDS_HELP = """\
Use any number of consecutive commands as arguments:
    write <address> <file>
    read <address> <length> <file>
    exec
"""


def _parse_int(value: str) -> int:
    """Parse an integer option in decimal or 0x-prefixed hex."""
    try:
        return int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number '{value}'") from None


def _parse_timeout(value: str) -> int:
    """Parse a timeout; pyusb treats 0 as no timeout at all."""
    timeout = _parse_int(value)
    if timeout <= 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {value}")
    return timeout


def save_read(op: ReadOp, data: bytes) -> None:
    """Write the result of a read command to its destination file."""
    if op.destination is None:
        return
    Path(op.destination).write_bytes(data)
    logger.info("Saved %d bytes to '%s'", len(data), op.destination)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cc1800-usbtool",
        description="USB boot tool for the ChinaChip CC1800 system-on-chip",
        epilog=COMMANDS_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--vendor-id", type=_parse_int, default=VENDOR_ID, metavar="VID",
        help=f"USB vendor ID (default: {VENDOR_ID:#06x})",
    )
    parser.add_argument(
        "--product-id", type=_parse_int, default=PRODUCT_ID, metavar="PID",
        help=f"USB product ID (default: {PRODUCT_ID:#06x})",
    )
    parser.add_argument(
        "--timeout", type=_parse_timeout, default=DEFAULT_TIMEOUT_MS, metavar="MS",
        help=f"Per-transfer timeout in milliseconds (default: {DEFAULT_TIMEOUT_MS})",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log every request sent to the device",
    )
    parser.add_argument("commands", nargs="*", metavar="COMMAND")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the boot tool CLI. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    print(f"CC1800 usbtool v{__version__}")

    if not args.commands:
        sys.stderr.write(COMMANDS_HELP)
        return 1

    try:
        operations = parse_operations(args.commands)
    except BootError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    connection = BootConnection(vendor_id=args.vendor_id, product_id=args.product_id)
    try:
        connection.open()
        sequencer = CommandSequencer(connection.device, timeout_ms=args.timeout)
        sequencer.run(operations, on_read=save_read)
    except (BootError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        connection.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())

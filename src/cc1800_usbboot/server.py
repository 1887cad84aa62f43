"""MCP server entry point for the CC1800 USB boot tool.

Exposes the boot ROM operations as tools via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import BootError, InvalidArgument
from .models.operations import (
    ExecOp,
    ReadOp,
    WriteOp,
    parse_number,
    parse_operations,
)
from .protocol import requests
from .protocol.transfers import upload_verify_execute
from .sequencer import CommandSequencer
from .transport.usb_connection import BootConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "cc1800-usbboot",
    instructions="Upload, download and execute code on a CC1800 in USB boot mode",
)

# Global connection state
_connection: BootConnection | None = None
_sequencer: CommandSequencer | None = None


def _get_connection() -> BootConnection:
    """Get the active USB connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _connection


def _get_sequencer() -> CommandSequencer:
    """Sequencer bound to the active connection, kept for the whole session."""
    global _sequencer
    conn = _get_connection()
    if _sequencer is None:
        _sequencer = CommandSequencer(conn.device)
    return _sequencer


def _cpu_info_dict(sequencer: CommandSequencer) -> dict[str, Any]:
    return sequencer.cpu_info.to_dict() if sequencer.cpu_info else {}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect() -> dict[str, Any]:
    """Open the CC1800 boot-mode device (0x2009:0x1218) and read its CPU info."""
    global _connection, _sequencer
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "device": _connection.device_info.to_dict(),
        }

    _connection = BootConnection()
    _sequencer = None
    try:
        info = _connection.open()
        cpu = requests.get_cpu_info(_connection.device)
    except BootError as e:
        _connection.close()
        _connection = None
        return {"error": str(e)}

    return {"connected": True, "device": info.to_dict(), "cpu_info": cpu.to_dict()}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Release the USB interface."""
    global _connection, _sequencer
    if _connection is not None:
        _connection.close()
    _connection = None
    _sequencer = None
    return {"disconnected": True}


@mcp.tool()
def get_cpu_info() -> dict[str, Any]:
    """Read the 8-byte CPU information string (request 0x00)."""
    conn = _get_connection()
    try:
        return {"cpu_info": requests.get_cpu_info(conn.device).to_dict()}
    except BootError as e:
        return {"error": str(e)}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """EXPERIMENTAL: read the one-byte status (request 0x03).

    The meaning of this request is unknown and it may make the device
    leave boot mode. Only call it when asked to explicitly.
    """
    conn = _get_connection()
    try:
        status = requests.get_status(conn.device)
    except BootError as e:
        return {"error": str(e)}
    return {"status": status, "experimental": True}


# ─── MEMORY TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def write_memory(address: str, file_path: str) -> dict[str, Any]:
    """Upload a file to device memory and read it back for verification.

    A verification mismatch is reported but is not an error.

    Args:
        address: Target address, decimal or 0x-prefixed hex.
        file_path: File to upload.
    """
    path = Path(file_path)
    if not path.is_file():
        return {"error": f"File not found: {file_path}"}

    try:
        data = path.read_bytes()
    except OSError as e:
        return {"error": f"Cannot read {file_path}: {e.strerror or e}"}

    try:
        op = WriteOp(parse_number(address), data, source=file_path)
        sequencer = _get_sequencer()
        [result] = sequencer.run([op])
    except BootError as e:
        return {"error": str(e)}

    return {**result.to_dict(), "cpu_info": _cpu_info_dict(sequencer)}


@mcp.tool()
def read_memory(address: str, length: str, output_path: str) -> dict[str, Any]:
    """Download a range of device memory to a file.

    Args:
        address: Start address, decimal or 0x-prefixed hex.
        length: Number of bytes, decimal or 0x-prefixed hex.
        output_path: File to write.
    """
    try:
        op = ReadOp(parse_number(address), parse_number(length), destination=output_path)
        [result] = _get_sequencer().run([op])
    except BootError as e:
        return {"error": str(e)}

    path = Path(output_path)
    try:
        path.write_bytes(result.data)
    except OSError as e:
        return {
            "error": f"Cannot write {output_path}: {e.strerror or e}",
            **result.to_dict(),
        }
    return {**result.to_dict(), "path": str(path)}


@mcp.tool()
def execute() -> dict[str, Any]:
    """Start executing at the last address used on the device."""
    try:
        [result] = _get_sequencer().run([ExecOp()])
    except BootError as e:
        return {"error": str(e)}
    return {**result.to_dict(), "executed": True}


@mcp.tool()
def upload_and_execute(address: str, file_path: str) -> dict[str, Any]:
    """Upload a file, verify it and execute it only if the readback matches.

    Args:
        address: Load and entry address, decimal or 0x-prefixed hex.
        file_path: Code image to upload.
    """
    path = Path(file_path)
    if not path.is_file():
        return {"error": f"File not found: {file_path}"}

    try:
        data = path.read_bytes()
    except OSError as e:
        return {"error": f"Cannot read {file_path}: {e.strerror or e}"}

    conn = _get_connection()
    try:
        addr = parse_number(address)
        requests.get_cpu_info(conn.device)
        upload_verify_execute(conn.device, data, addr)
    except BootError as e:
        return {"error": str(e)}

    return {"executed": True, "address": f"0x{addr:08X}", "length": len(data)}


@mcp.tool()
def run_commands(commands: list[str]) -> dict[str, Any]:
    """Run a chain of usbtool commands in order, stopping at the first error.

    Args:
        commands: Command tokens, e.g.
                  ["write", "0x1000", "boot.bin", "exec"] or
                  ["read", "0x0", "0x100", "dump.bin"].
    """
    try:
        operations = parse_operations(commands)
    except InvalidArgument as e:
        return {"error": str(e)}

    def save(op: ReadOp, data: bytes) -> None:
        if op.destination is not None:
            Path(op.destination).write_bytes(data)

    sequencer = _get_sequencer()
    try:
        sequencer.run(operations, on_read=save)
    except (BootError, OSError) as e:
        return {
            "error": str(e),
            "completed": [r.to_dict() for r in sequencer.results],
        }

    return {
        "completed": [r.to_dict() for r in sequencer.results],
        "cpu_info": _cpu_info_dict(sequencer),
    }


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("cc1800://device/info")
def resource_device_info() -> str:
    """Connection state and bus location."""
    if _connection is None or not _connection.connected:
        return json.dumps({"connected": False})

    result: dict[str, Any] = {"connected": True, **_connection.device_info.to_dict()}
    if _sequencer is not None and _sequencer.cpu_info is not None:
        result["cpu_info"] = _sequencer.cpu_info.text
    return json.dumps(result)


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

"""CPU information string reported by the boot ROM."""

from __future__ import annotations

from dataclasses import dataclass

CPU_INFO_SIZE = 8


@dataclass(frozen=True)
class CpuInfo:
    """Fixed 8-byte identification string from request 0x00.

    The content is only displayed, never interpreted.
    """

    raw: bytes = b""

    @property
    def text(self) -> str:
        return self.raw.split(b"\x00")[0].decode("ascii", errors="replace")

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "raw_hex": self.raw.hex(" ") if self.raw else "",
        }

    @classmethod
    def from_bytes(cls, data: bytes) -> CpuInfo:
        return cls(raw=bytes(data[:CPU_INFO_SIZE]))

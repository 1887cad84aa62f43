"""Data models for CPU info, user operations and their results."""

from .cpu_info import CpuInfo
from .operations import (
    ExecOp,
    Operation,
    OperationResult,
    ReadOp,
    WriteOp,
    parse_operations,
)

"""Protocol layer: boot ROM requests, armed transfers and composite operations."""

from .requests import (
    DEFAULT_TIMEOUT_MS,
    Request,
    bulk_read,
    bulk_write,
    execute,
    get_cpu_info,
    get_status,
    set_address,
    set_length,
)
from .transfers import download, upload, upload_verify_execute, verify
from .window import ArmedTransfer, Direction, MemoryWindow

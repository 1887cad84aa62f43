"""Runs an ordered list of user operations against one device session."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .errors import DeviceUnresponsive, TransportError
from .models.cpu_info import CpuInfo
from .models.operations import ExecOp, Operation, OperationResult, ReadOp, WriteOp
from .protocol import requests
from .protocol.requests import DEFAULT_TIMEOUT_MS, DeviceSession
from .protocol.transfers import upload, verify
from .protocol.window import ArmedTransfer, Direction, MemoryWindow

logger = logging.getLogger(__name__)

ReadHandler = Callable[[ReadOp, bytes], None]


class CommandSequencer:
    """Executes operations strictly in order, stopping at the first error.

    Before every operation the device is probed with GET_CPU_INFO to make
    sure it is still listening. The CPU info is reported the first time
    it is fetched in each run. The last armed window is kept across runs,
    since the device keeps its address and length registers for the whole
    session.

    Usage::

        sequencer = CommandSequencer(device)
        results = sequencer.run(operations, on_read=save)
    """

    def __init__(
        self,
        session: DeviceSession,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._session = session
        self._timeout_ms = timeout_ms
        self._armed: ArmedTransfer | None = None
        self.cpu_info: CpuInfo | None = None
        self.results: list[OperationResult] = []

    def run(
        self,
        operations: Iterable[Operation],
        on_read: ReadHandler | None = None,
    ) -> list[OperationResult]:
        """Execute ``operations`` in order.

        Args:
            operations: The operations to run.
            on_read: Called with each read operation and its data as soon
                as the download completes.

        Returns:
            One result per operation.

        Raises:
            DeviceUnresponsive: If a liveness probe fails. No further
                operations are attempted.
            BootError: Any other failure, after which the remaining
                operations are skipped. Completed results stay in
                :attr:`results`.
        """
        self.results = []
        self.cpu_info = None
        for operation in operations:
            self._probe()
            result = self._dispatch(operation, on_read)
            self.results.append(result)
        return self.results

    def _probe(self) -> None:
        try:
            info = requests.get_cpu_info(self._session, self._timeout_ms)
        except TransportError as e:
            raise DeviceUnresponsive(f"cannot get CPU info: {e}") from e
        if self.cpu_info is None:
            self.cpu_info = info
            logger.info("CPU info: %s", info)

    def _dispatch(
        self, operation: Operation, on_read: ReadHandler | None
    ) -> OperationResult:
        if isinstance(operation, WriteOp):
            return self._write(operation)
        if isinstance(operation, ReadOp):
            return self._read(operation, on_read)
        if isinstance(operation, ExecOp):
            return self._exec(operation)
        raise TypeError(f"Unsupported operation: {operation!r}")

    def _write(self, op: WriteOp) -> OperationResult:
        logger.info("Uploading data to address 0x%08X", op.address)
        upload(self._session, op.data, op.address, self._timeout_ms)

        logger.info("Downloading data for verification")
        offset, self._armed = verify(self._session, op.data, op.address, self._timeout_ms)

        if offset is not None:
            logger.warning(
                "WARNING: data mismatch at 0x%08X (offset %d)",
                op.address + offset,
                offset,
            )
        return OperationResult(op, verified=offset is None)

    def _read(self, op: ReadOp, on_read: ReadHandler | None) -> OperationResult:
        logger.info("Downloading data from address 0x%08X", op.address)
        window = MemoryWindow(op.address, op.length, Direction.READ)
        self._armed = ArmedTransfer.arm(self._session, window, self._timeout_ms)
        data = self._armed.read()
        if on_read is not None:
            on_read(op, data)
        return OperationResult(op, data=data)

    def _exec(self, op: ExecOp) -> OperationResult:
        logger.info("Executing at last address")
        if self._armed is not None:
            self._armed.execute()
        else:
            logger.warning(
                "No address was set in this session; executing at whatever the device holds"
            )
            requests.execute(self._session, self._timeout_ms)
        return OperationResult(op)

"""Serial line driver and a KISS interface on top of it."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import serial

from .errors import CspError, ErrorCode
from .kiss import KISS_DEFAULT_NAME, KissInterface
from .packet import IFLIST_NAME_MAX

log = logging.getLogger(__name__)

#: Baud rates the line can be set to.
SUPPORTED_BAUDRATES = frozenset(
    {
        4800, 9600, 19200, 38400, 57600, 115200, 230400, 460800, 500000, 576000,
        921600, 1000000, 1152000, 1500000, 2000000, 2500000, 3000000, 3500000, 4000000,
    }
)

_READ_CHUNK = 400
_READ_TIMEOUT_S = 0.1

RxCallback = Callable[[bytes], None]


@dataclass
class UsartConfig:
    """Serial device settings; the line is always run as 8N1."""

    device: str
    baudrate: int = 115200
    databits: int = 8
    stopbits: int = 1
    paritysetting: int = 0


def validate_baudrate(baudrate: int) -> int:
    """Return ``baudrate`` if the line supports it, else raise."""
    if baudrate not in SUPPORTED_BAUDRATES:
        raise CspError(ErrorCode.INVAL, f"unsupported baudrate: {baudrate}")
    return baudrate


class Usart:
    """An open serial line; received data goes to ``rx_callback`` from a thread."""

    def __init__(self, config: UsartConfig, rx_callback: Optional[RxCallback] = None):
        self.config = config
        self.lock = threading.Lock()
        self._rx_callback = rx_callback
        self._serial: Optional[serial.SerialBase] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def is_open(self) -> bool:
        return self._serial is not None

    def open(self) -> None:
        """Open the device raw at 8N1, flush it and start receiving."""
        if self._serial is not None:
            return
        baudrate = validate_baudrate(self.config.baudrate)
        try:
            port = serial.serial_for_url(self.config.device, do_not_open=True)
            port.baudrate = baudrate
            port.bytesize = serial.EIGHTBITS
            port.parity = serial.PARITY_NONE
            port.stopbits = serial.STOPBITS_ONE
            port.xonxoff = False
            port.rtscts = False
            port.timeout = _READ_TIMEOUT_S
            port.open()
        except (serial.SerialException, ValueError, OSError) as exc:
            raise CspError(
                ErrorCode.INVAL, f"failed to open device [{self.config.device}]: {exc}"
            ) from exc
        try:
            port.reset_input_buffer()
            port.reset_output_buffer()
        except (serial.SerialException, OSError) as exc:
            port.close()
            raise CspError(
                ErrorCode.DRIVER, f"error flushing device [{self.config.device}]: {exc}"
            ) from exc
        self._serial = port
        if self._rx_callback is not None:
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="usart-rx", daemon=True)
            self._thread.start()

    def _run(self) -> None:
        port = self._serial
        while not self._stop.is_set() and port is not None:
            try:
                data = port.read(1)
                if data:
                    waiting = port.in_waiting
                    if waiting:
                        data += port.read(min(waiting, _READ_CHUNK - 1))
            except (serial.SerialException, OSError, TypeError) as exc:
                if not self._stop.is_set():
                    log.error("read() failed on [%s]: %s", self.config.device, exc)
                break
            if data:
                self._rx_callback(bytes(data))

    def write(self, data) -> int:
        """Write ``data`` and return the number of bytes written."""
        port = self._serial
        if port is None:
            raise CspError(ErrorCode.TX, "serial device is not open")
        try:
            written = port.write(bytes(data))
        except (serial.SerialException, OSError) as exc:
            raise CspError(ErrorCode.TX, f"write failed: {exc}") from exc
        return len(data) if written is None else written

    def close(self) -> None:
        """Stop receiving and close the device."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(_READ_TIMEOUT_S * 20)
        port, self._serial = self._serial, None
        if port is not None:
            port.close()

    def __enter__(self) -> "Usart":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_kiss_interface(
    config: UsartConfig,
    ifname: Optional[str] = None,
    addr: int = 0,
    deliver=None,
    codec=None,
) -> tuple:
    """Open a serial line with a KISS interface on it; returns ``(interface, usart)``."""

    def kiss_tx(data: bytes) -> None:
        if usart.write(data) != len(data):
            raise CspError(ErrorCode.TX, "short write on serial device")

    def kiss_rx(data: bytes) -> None:
        try:
            interface.rx(data)
        except CspError as exc:
            log.warning("KISS receive failed: %s", exc)

    usart = Usart(config, kiss_rx)
    interface = KissInterface(
        (ifname or KISS_DEFAULT_NAME)[:IFLIST_NAME_MAX],
        addr,
        tx_func=kiss_tx,
        deliver=deliver,
        codec=codec,
        lock=usart.lock,
    )
    usart.open()
    return interface, usart
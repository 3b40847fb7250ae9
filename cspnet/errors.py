"""Error codes of the protocol stack and the exception that carries them."""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Numeric error codes shared by every layer of the stack."""

    NONE = 0
    NOMEM = -1
    INVAL = -2
    TIMEDOUT = -3
    USED = -4
    NOTSUP = -5
    BUSY = -6
    ALREADY = -7
    RESET = -8
    NOBUFS = -9
    TX = -10
    DRIVER = -11
    AGAIN = -12
    NOSYS = -38
    HMAC = -100
    CRC32 = -102
    SFP = -103


_DESCRIPTIONS = {
    ErrorCode.NONE: "No error",
    ErrorCode.NOMEM: "Not enough memory",
    ErrorCode.INVAL: "Invalid argument",
    ErrorCode.TIMEDOUT: "Operation timed out",
    ErrorCode.USED: "Resource already in use",
    ErrorCode.NOTSUP: "Operation not supported",
    ErrorCode.BUSY: "Device or resource busy",
    ErrorCode.ALREADY: "Connection already in progress",
    ErrorCode.RESET: "Connection reset",
    ErrorCode.NOBUFS: "No more buffer space available",
    ErrorCode.TX: "Transmission failed",
    ErrorCode.DRIVER: "Error in driver layer",
    ErrorCode.AGAIN: "Resource temporarily unavailable",
    ErrorCode.NOSYS: "Function not implemented",
    ErrorCode.HMAC: "HMAC failed",
    ErrorCode.CRC32: "CRC32 failed",
    ErrorCode.SFP: "SFP protocol error or inconsistency",
}


class CspError(Exception):
    """Raised wherever the stack reports an error code."""

    def __init__(self, code, message=None):
        self.code = ErrorCode(code)
        self.message = message if message is not None else _DESCRIPTIONS[self.code]
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.message} ({self.code.name})"
"""CRC-32C checksums as used by the TensorFlow record format."""

from __future__ import annotations

from os import PathLike

_POLYNOMIAL = 0x82F63B78  # Castagnoli polynomial, bit-reversed
_MASK_DELTA = 0xA282EAD8
_MASK32 = 0xFFFFFFFF
_INITIAL = 0xFFFFFFFF
_CHUNK = 1 << 16


def _build_table() -> tuple[int, ...]:
    table = []
    for index in range(256):
        value = index
        for _ in range(8):
            value = (value >> 1) ^ _POLYNOMIAL if value & 1 else value >> 1
        table.append(value)
    return tuple(table)


_TABLE = _build_table()


def update_crc32(octet: int, crc: int) -> int:
    """Fold one byte into a running (non-finalised) CRC register."""
    return _TABLE[(crc ^ octet) & 0xFF] ^ (crc >> 8)


def _update(data: bytes | bytearray | memoryview, crc: int) -> int:
    table = _TABLE
    for octet in bytes(data):
        crc = table[(crc ^ octet) & 0xFF] ^ (crc >> 8)
    return crc


def crc32buf(data: bytes | bytearray | memoryview) -> int:
    """Return the CRC-32C of ``data``."""
    return ~_update(data, _INITIAL) & _MASK32


def masked_crc32c(data: bytes | bytearray | memoryview) -> int:
    """Return the masked CRC-32C of ``data`` as stored in record files."""
    crc = crc32buf(data)
    rotated = ((crc >> 15) | (crc << 17)) & _MASK32
    return (rotated + _MASK_DELTA) & _MASK32


def crc32file(path: str | PathLike[str]) -> tuple[int, int]:
    """Return ``(crc, byte_count)`` for the contents of the file at ``path``.

    Raises ``OSError`` if the file cannot be opened or read.
    """
    crc = _INITIAL
    count = 0
    with open(path, "rb") as handle:
        while chunk := handle.read(_CHUNK):
            count += len(chunk)
            crc = _update(chunk, crc)
    return ~crc & _MASK32, count
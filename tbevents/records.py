"""Length-prefixed, checksummed records of an event file."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from typing import BinaryIO

from .crc import masked_crc32c

_LENGTH = struct.Struct("<Q")
_CRC = struct.Struct("<I")
_HEADER_SIZE = _LENGTH.size + _CRC.size


class RecordError(ValueError):
    """Raised when a record stream is truncated or fails its checksum."""


def encode_record(payload: bytes) -> bytes:
    """Frame ``payload`` as one record: length, length CRC, data, data CRC."""
    payload = bytes(payload)
    length = _LENGTH.pack(len(payload))
    return b"".join(
        (
            length,
            _CRC.pack(masked_crc32c(length)),
            payload,
            _CRC.pack(masked_crc32c(payload)),
        )
    )


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise RecordError(f"truncated record: incomplete {what}")
    return data


def iter_records(stream: BinaryIO) -> Iterator[bytes]:
    """Yield the payload of each record read from a binary ``stream``."""
    while True:
        header = stream.read(_HEADER_SIZE)
        if not header:
            return
        if len(header) != _HEADER_SIZE:
            raise RecordError("truncated record: incomplete header")
        length_bytes = header[: _LENGTH.size]
        (length_crc,) = _CRC.unpack(header[_LENGTH.size :])
        if masked_crc32c(length_bytes) != length_crc:
            raise RecordError("length checksum mismatch")
        (length,) = _LENGTH.unpack(length_bytes)
        payload = _read_exact(stream, length, "payload")
        (data_crc,) = _CRC.unpack(_read_exact(stream, _CRC.size, "data checksum"))
        if masked_crc32c(payload) != data_crc:
            raise RecordError("data checksum mismatch")
        yield payload
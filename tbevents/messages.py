"""Protocol-buffer messages of a TensorBoard event file, encoded by hand."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from enum import IntEnum

_UINT64_MASK = (1 << 64) - 1

_VARINT = 0
_FIXED64 = 1
_LENGTH_DELIMITED = 2
_FIXED32 = 5


class DataType(IntEnum):
    """Tensor element types understood by TensorBoard."""

    DT_INVALID = 0
    DT_FLOAT = 1
    DT_DOUBLE = 2
    DT_INT32 = 3
    DT_UINT8 = 4
    DT_INT16 = 5
    DT_INT8 = 6
    DT_STRING = 7
    DT_COMPLEX64 = 8
    DT_INT64 = 9
    DT_BOOL = 10


def _varint(value: int) -> bytes:
    value &= _UINT64_MASK
    out = bytearray()
    while True:
        low = value & 0x7F
        value >>= 7
        if value:
            out.append(low | 0x80)
        else:
            out.append(low)
            return bytes(out)


def _key(number: int, wire_type: int) -> bytes:
    return _varint(number << 3 | wire_type)


def _as_bytes(value: str | bytes | bytearray | memoryview) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _pack_float(value: float) -> bytes:
    try:
        return struct.pack("<f", value)
    except OverflowError:
        return struct.pack("<f", math.copysign(math.inf, value))


def _int_field(number: int, value: int) -> bytes:
    if not value:
        return b""
    return _key(number, _VARINT) + _varint(int(value))


def _double_field(number: int, value: float) -> bytes:
    packed = struct.pack("<d", value)
    if packed == bytes(8):
        return b""
    return _key(number, _FIXED64) + packed


def _float_field(number: int, value: float, *, always: bool = False) -> bytes:
    packed = _pack_float(value)
    if not always and packed == bytes(4):
        return b""
    return _key(number, _FIXED32) + packed


def _delimited(number: int, payload: bytes) -> bytes:
    return _key(number, _LENGTH_DELIMITED) + _varint(len(payload)) + payload


def _bytes_field(number: int, value: str | bytes) -> bytes:
    data = _as_bytes(value)
    if not data:
        return b""
    return _delimited(number, data)


def _message_field(number: int, message) -> bytes:
    if message is None:
        return b""
    return _delimited(number, message.encode())


def _packed_doubles(number: int, values: list[float]) -> bytes:
    if not values:
        return b""
    return _delimited(number, struct.pack(f"<{len(values)}d", *values))


@dataclass
class HistogramProto:
    """Summary statistics and bucket counts of a value distribution."""

    min: float = 0.0
    max: float = 0.0
    num: float = 0.0
    sum: float = 0.0
    sum_squares: float = 0.0
    bucket_limit: list[float] = field(default_factory=list)
    bucket: list[float] = field(default_factory=list)

    def encode(self) -> bytes:
        return b"".join(
            (
                _double_field(1, self.min),
                _double_field(2, self.max),
                _double_field(3, self.num),
                _double_field(4, self.sum),
                _double_field(5, self.sum_squares),
                _packed_doubles(6, self.bucket_limit),
                _packed_doubles(7, self.bucket),
            )
        )


@dataclass
class PluginData:
    """Names the TensorBoard plugin that renders a summary value."""

    plugin_name: str = ""
    content: bytes = b""

    def encode(self) -> bytes:
        return _bytes_field(1, self.plugin_name) + _bytes_field(2, self.content)


@dataclass
class SummaryMetadata:
    """Display information attached to a summary value."""

    plugin_data: PluginData | None = None
    display_name: str = ""
    summary_description: str = ""

    def encode(self) -> bytes:
        return b"".join(
            (
                _message_field(1, self.plugin_data),
                _bytes_field(2, self.display_name),
                _bytes_field(3, self.summary_description),
            )
        )


@dataclass
class Image:
    """An encoded image together with its dimensions."""

    height: int = 0
    width: int = 0
    colorspace: int = 0
    encoded_image_string: bytes = b""

    def encode(self) -> bytes:
        return b"".join(
            (
                _int_field(1, self.height),
                _int_field(2, self.width),
                _int_field(3, self.colorspace),
                _bytes_field(4, self.encoded_image_string),
            )
        )


@dataclass
class Audio:
    """An encoded audio clip together with its format."""

    sample_rate: float = 0.0
    num_channels: int = 0
    length_frames: int = 0
    encoded_audio_string: bytes = b""
    content_type: str = ""

    def encode(self) -> bytes:
        return b"".join(
            (
                _float_field(1, self.sample_rate),
                _int_field(2, self.num_channels),
                _int_field(3, self.length_frames),
                _bytes_field(4, self.encoded_audio_string),
                _bytes_field(5, self.content_type),
            )
        )


@dataclass
class TensorProto:
    """A tensor holding string values."""

    dtype: DataType = DataType.DT_INVALID
    string_val: list[str | bytes] = field(default_factory=list)

    def encode(self) -> bytes:
        parts = [_int_field(1, int(self.dtype))]
        parts.extend(_delimited(8, _as_bytes(item)) for item in self.string_val)
        return b"".join(parts)


@dataclass
class Value:
    """One tagged entry of a summary; at most one payload may be set."""

    tag: str = ""
    simple_value: float | None = None
    image: Image | None = None
    histo: HistogramProto | None = None
    audio: Audio | None = None
    tensor: TensorProto | None = None
    metadata: SummaryMetadata | None = None

    def __post_init__(self) -> None:
        self._check_payload()

    def _check_payload(self) -> None:
        payloads = (self.simple_value, self.image, self.histo, self.audio, self.tensor)
        if sum(item is not None for item in payloads) > 1:
            raise ValueError("a summary value holds at most one payload")

    def encode(self) -> bytes:
        self._check_payload()
        parts = [_bytes_field(1, self.tag)]
        if self.simple_value is not None:
            parts.append(_float_field(2, self.simple_value, always=True))
        parts.extend(
            (
                _message_field(4, self.image),
                _message_field(5, self.histo),
                _message_field(6, self.audio),
                _message_field(8, self.tensor),
                _message_field(9, self.metadata),
            )
        )
        return b"".join(parts)


@dataclass
class Summary:
    """A collection of tagged values logged at one step."""

    value: list[Value] = field(default_factory=list)

    def encode(self) -> bytes:
        return b"".join(_delimited(1, item.encode()) for item in self.value)


@dataclass
class Event:
    """A timestamped record of an event file."""

    wall_time: float = 0.0
    step: int = 0
    summary: Summary | None = None

    def encode(self) -> bytes:
        return b"".join(
            (
                _double_field(1, self.wall_time),
                _int_field(2, self.step),
                _message_field(5, self.summary),
            )
        )
import math
import struct

import pytest

from tbevents.messages import (
    Audio,
    DataType,
    Event,
    HistogramProto,
    Image,
    PluginData,
    Summary,
    SummaryMetadata,
    TensorProto,
    Value,
)


def _read_varint(data, pos):
    result = 0
    shift = 0
    while True:
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return result, pos


def decode(data):
    fields = []
    pos = 0
    while pos < len(data):
        key, pos = _read_varint(data, pos)
        number, wire = key >> 3, key & 7
        if wire == 0:
            value, pos = _read_varint(data, pos)
        elif wire == 1:
            value = data[pos : pos + 8]
            pos += 8
        elif wire == 2:
            length, pos = _read_varint(data, pos)
            value = data[pos : pos + length]
            pos += length
        elif wire == 5:
            value = data[pos : pos + 4]
            pos += 4
        else:
            raise AssertionError(f"unexpected wire type {wire}")
        fields.append((number, wire, value))
    return fields


def by_number(data):
    return {number: value for number, _, value in decode(data)}


def as_signed(value):
    return value - (1 << 64) if value >= 1 << 63 else value


def test_plugin_data_wire_bytes():
    assert PluginData(plugin_name="text").encode() == b"\n\x04text"


def test_default_messages_encode_to_nothing():
    messages = [
        HistogramProto(),
        Image(),
        Audio(),
        PluginData(),
        SummaryMetadata(),
        TensorProto(),
        Summary(),
        Event(),
    ]
    assert [message.encode() for message in messages] == [b""] * len(messages)


def test_summary_embeds_each_value():
    values = [Value(tag="a", simple_value=1.0), Value(tag="b", simple_value=2.5)]
    payloads = [payload for _, _, payload in decode(Summary(value=values).encode())]
    assert payloads == [value.encode() for value in values]


def test_event_fields():
    summary = Summary(value=[Value(tag="loss", simple_value=0.25)])
    fields = by_number(Event(wall_time=1234.5, step=7, summary=summary).encode())
    assert struct.unpack("<d", fields[1])[0] == 1234.5
    assert fields[2] == 7
    assert fields[5] == summary.encode()


def test_negative_step_is_sign_extended():
    fields = by_number(Event(step=-1).encode())
    assert as_signed(fields[2]) == -1


def test_zero_scalar_is_still_written():
    with_zero = Value(tag="t", simple_value=0.0)
    without = Value(tag="t")
    assert len(with_zero.encode()) > len(without.encode())
    fields = by_number(with_zero.encode())
    assert fields[1] == b"t"
    assert struct.unpack("<f", fields[2])[0] == 0.0


def test_negative_zero_float_is_written():
    fields = by_number(Audio(sample_rate=-0.0).encode())
    assert math.copysign(1.0, struct.unpack("<f", fields[1])[0]) == -1.0


def test_histogram_packed_buckets():
    limits = [-1.0, 0.0, 1.7976931348623157e308]
    counts = [1.0, 0.0, 2.0]
    histogram = HistogramProto(
        min=-1.0, max=2.0, num=3, sum=1.0, sum_squares=5.0,
        bucket_limit=limits, bucket=counts,
    )
    fields = by_number(histogram.encode())
    assert struct.unpack("<d", fields[1])[0] == -1.0
    assert struct.unpack("<d", fields[3])[0] == 3.0
    assert struct.unpack(f"<{len(limits)}d", fields[6]) == tuple(limits)
    assert struct.unpack(f"<{len(counts)}d", fields[7]) == tuple(counts)


def test_tensor_string_values_keep_order():
    tensor = TensorProto(dtype=DataType.DT_STRING, string_val=["822", "1864", b"\x89PNG"])
    fields = decode(tensor.encode())
    assert fields[0][2] == DataType.DT_STRING
    assert [value for number, _, value in fields[1:]] == [b"822", b"1864", b"\x89PNG"]


def test_value_rejects_two_payloads():
    with pytest.raises(ValueError):
        Value(tag="x", simple_value=1.0, image=Image())


def test_value_rejects_two_payloads_set_later():
    value = Value(tag="x", simple_value=1.0)
    value.tensor = TensorProto()
    with pytest.raises(ValueError):
        value.encode()


def test_value_fields_in_ascending_order():
    metadata = SummaryMetadata(plugin_data=PluginData(plugin_name="text"))
    tensor = TensorProto(dtype=DataType.DT_STRING, string_val=["Hello World"])
    fields = decode(Value(tag="Text Sample", tensor=tensor, metadata=metadata).encode())
    numbers = [number for number, _, _ in fields]
    assert numbers == sorted(numbers)
    assert fields[-1][2] == metadata.encode()
    assert fields[-2][2] == tensor.encode()


def test_image_fields():
    image = Image(height=1864, width=822, colorspace=3, encoded_image_string=b"png")
    assert by_number(image.encode()) == {1: 1864, 2: 822, 3: 3, 4: b"png"}


def test_audio_fields():
    audio = Audio(
        sample_rate=8000,
        num_channels=2,
        length_frames=8000 * 16 * 2 * 33,
        encoded_audio_string=b"wav",
        content_type="audio/wav",
    )
    fields = by_number(audio.encode())
    assert struct.unpack("<f", fields[1])[0] == 8000.0
    assert fields[2] == 2
    assert fields[3] == 8000 * 16 * 2 * 33
    assert fields[4] == b"wav"
    assert fields[5] == b"audio/wav"


def test_utf8_tag():
    fields = by_number(Value(tag="größe", simple_value=1.0).encode())
    assert fields[1].decode("utf-8") == "größe"


def test_metadata_embeds_plugin_data():
    plugin = PluginData(plugin_name="projector")
    metadata = SummaryMetadata(
        plugin_data=plugin, display_name="TensorBoard", summary_description="Text"
    )
    fields = by_number(metadata.encode())
    assert fields[1] == plugin.encode()
    assert fields[2] == b"TensorBoard"
    assert fields[3] == b"Text"


def test_empty_plugin_data_is_present():
    fields = decode(SummaryMetadata(plugin_data=PluginData()).encode())
    assert [value for _, _, value in fields] == [PluginData().encode()]


def test_scalar_outside_float_range_becomes_infinity():
    fields = by_number(Value(tag="big", simple_value=1e300).encode())
    assert struct.unpack("<f", fields[2])[0] == math.inf
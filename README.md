# tbevents

`tbevents` writes TensorBoard event files from plain Python, using only the
standard library. Each event is serialized to protobuf wire format by hand
and framed as TensorBoard expects: a little-endian 64-bit length, a masked
CRC-32C of the length, the serialized `Event`, and a masked CRC-32C of the
payload.

## Installation

```
pip install tbevents
```

## Usage

```python
from tbevents.logger import TensorBoardLogger, TensorBoardLoggerOptions

# The directory must already exist; the file's base name must contain "tfevents".
with TensorBoardLogger("runs/demo/tfevents.pb", TensorBoardLoggerOptions()) as logger:
    for step in range(10):
        logger.add_scalar("loss", step, 1.0 / (step + 1))

    logger.add_histogram("weights", 0, [0.1, -0.3, 0.7, 1.2])
    logger.add_text("notes", 1, "Hello World")

    with open("plot.png", "rb") as fh:
        logger.add_image("plot", 1, fh.read(), 480, 640, 3, "Plot", "A chart")
```

Then point TensorBoard at the directory that holds the file:

```
tensorboard --logdir runs/demo
```

### The logger

`TensorBoardLogger(log_file, options=None)` opens the event file for binary
writing. It raises `ValueError` if the base name of `log_file` does not
contain `tfevents`, and `OSError` if the file cannot be opened. It does not
create missing directories.

Every summary is stamped with the current wall-clock time in whole seconds.

- `add_scalar(tag, step, value)`
- `add_histogram(tag, step, values)` – buckets the values against the
  default limits returned by `default_buckets()` (powers of 1.1 from 1e-12
  up to 1e20, mirrored for negative values, capped by the largest float) and
  records min, max, count, sum and sum of squares. Only non-empty buckets are
  written. A value of positive infinity raises `ValueError`.
- `add_image(tag, step, encoded_image, height, width, channel, display_name="", description="")`
- `add_images(tag, step, encoded_images, height, width, display_name="", description="")`
  – several images as one string tensor for the `images` plugin.
- `add_audio(tag, step, encoded_audio, sample_rate, num_channels, length_frame, content_type, display_name="", description="")`
- `add_text(tag, step, text)` – a string tensor for the `text` plugin.

Where `display_name` is empty, the tag is used.

`flush()` writes buffered data to disk, `close()` stops the background
thread and closes the file, and `closed` tells whether that has happened.
Using the logger as a context manager closes it on exit.

### Options

`TensorBoardLoggerOptions` controls buffering and appending:

- `max_queue_size` – the file is flushed once more than this many records
  have been written since the last flush (default 100000).
- `flush_period_s` – a background thread flushes the file on this period,
  in seconds (default 60).
- `resume` – append to an existing event file instead of truncating it
  (default `False`).

### Embeddings

Embeddings are registered in `projector_config.pbtxt` in the log directory
(the part of `log_file` up to its last `/` or `\`, or `./`). An existing
configuration is read and the new entry appended; a file that is missing or
cannot be parsed is replaced.

- `add_embedding(tensor_name, tensordata_path, metadata_path="", tensor_shape=None, step=1)`
  registers tensor and metadata files that already exist.
- `add_embedding_tensor(tensor_name, tensor, tensordata_filename, metadata=(), metadata_filename="", step=1)`
  takes a list of rows, writes them into the log directory as raw
  little-endian 32-bit floats, writes the labels one per line if given, and
  registers the result with shape `[rows, columns]`. It raises `ValueError`
  for an empty tensor or when the number of labels differs from the number
  of rows.
- `add_embedding_flat(tensor_name, tensor, tensor_shape, tensordata_filename, metadata=(), metadata_filename="", step=1)`
  does the same for a flat sequence of values with an explicit shape, and
  raises `ValueError` if the sequence is shorter than the shape needs or the
  number of labels differs from the first dimension.

### Lower-level pieces

- `tbevents.crc` – `crc32buf(data)`, `masked_crc32c(data)`,
  `crc32file(path)` returning `(crc, byte_count)`, and `update_crc32` for a
  single byte (CRC-32C, Castagnoli polynomial).
- `tbevents.records` – `encode_record(payload)` frames a payload;
  `iter_records(stream)` yields payloads read back from a binary stream and
  raises `RecordError` (a `ValueError`) on truncation or a checksum
  mismatch.
- `tbevents.messages` – dataclasses `Event`, `Summary`, `Value`,
  `HistogramProto`, `Image`, `Audio`, `TensorProto`, `SummaryMetadata` and
  `PluginData`, each with an `encode()` method returning protobuf
  wire-format bytes. A `Value` holding more than one payload raises
  `ValueError`.
- `tbevents.projector` – `ProjectorConfig` and `EmbeddingInfo`;
  `ProjectorConfig.to_text()` renders protobuf text format and
  `ProjectorConfig.parse_text(text)` reads it back, raising `ValueError` on
  malformed input or unknown fields.

## What it does not do

`tbevents` only writes. It has no command-line tool, and it does not decode
event payloads back into messages: `iter_records` returns the raw bytes of
each record. Sprite images for embeddings can be held in `EmbeddingInfo`,
but the logger's embedding methods do not set them.

## Running the tests

```
pip install -e ".[test]"
pytest
```
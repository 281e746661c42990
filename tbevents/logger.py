"""Writer for TensorBoard event files."""

from __future__ import annotations

import math
import os
import struct
import sys
import threading
import time
from bisect import bisect_left
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import lru_cache

from .messages import (
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
from .projector import EmbeddingInfo, ProjectorConfig
from .records import encode_record

PROJECTOR_CONFIG_FILE = "projector_config.pbtxt"
PROJECTOR_PLUGIN_NAME = "projector"
TEXT_PLUGIN_NAME = "text"
IMAGES_PLUGIN_NAME = "images"

_DOUBLE_MAX = sys.float_info.max
_SEPARATORS = "/\\"


def _last_separator(path: str) -> int:
    return max(path.rfind(sep) for sep in _SEPARATORS)


def get_parent_dir(path: str) -> str:
    """Return everything up to and including the last path separator, or ``"./"``."""
    index = _last_separator(path)
    if index < 0:
        return "./"
    return path[: index + 1]


def get_basename(path: str) -> str:
    """Return everything after the last path separator."""
    index = _last_separator(path)
    if index < 0:
        return path
    return path[index + 1 :]


@lru_cache(maxsize=None)
def default_buckets() -> tuple[float, ...]:
    """Return the default histogram bucket limits, in increasing order."""
    positive = []
    v = 1e-12
    while v < 1e20:
        positive.append(v)
        v *= 1.1
    positive.append(_DOUBLE_MAX)
    negative = [-limit for limit in reversed(positive)]
    return tuple(negative + positive)


@dataclass
class TensorBoardLoggerOptions:
    """Settings of a :class:`TensorBoardLogger`."""

    max_queue_size: int = 100000
    flush_period_s: float = 60
    resume: bool = False


def _write_floats(path: str, values: Iterable[float]) -> None:
    data = list(values)
    with open(path, "wb") as handle:
        handle.write(struct.pack(f"<{len(data)}f", *data))


def _write_lines(path: str, lines: Iterable[str]) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        for line in lines:
            handle.write(f"{line}\n")


class TensorBoardLogger:
    """Appends summaries to a TensorBoard event file.

    A background thread flushes the file every ``flush_period_s`` seconds;
    it is also flushed after ``max_queue_size`` records.
    """

    def __init__(self, log_file, options: TensorBoardLoggerOptions | None = None) -> None:
        self.options = options if options is not None else TensorBoardLoggerOptions()
        path = os.fspath(log_file)
        basename = get_basename(path)
        if "tfevents" not in basename:
            raise ValueError(
                'A valid event file must contain substring "tfevents" in its '
                f"basename, got {basename}"
            )
        mode = "ab" if self.options.resume else "wb"
        try:
            self._file = open(path, mode)
        except OSError as exc:
            raise OSError(f"failed to open log_file {path}") from exc
        self.log_dir = get_parent_dir(path)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._queue_size = 0
        self._thread = threading.Thread(
            target=self._flusher, name="tbevents-flusher", daemon=True
        )
        self._thread.start()

    # ---- lifecycle -------------------------------------------------------

    @property
    def closed(self) -> bool:
        """Whether the event file has been closed."""
        return self._file.closed

    def _flusher(self) -> None:
        period = self.options.flush_period_s
        while not self._stop.wait(period):
            with self._lock:
                if not self._file.closed:
                    self._file.flush()

    def flush(self) -> None:
        """Write buffered records to disk."""
        with self._lock:
            self._file.flush()
            self._queue_size = 0

    def close(self) -> None:
        """Stop the flushing thread and close the event file."""
        if self._stop.is_set() and self._file.closed:
            return
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()
        with self._lock:
            self._file.close()

    def __enter__(self) -> TensorBoardLogger:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---- writing ---------------------------------------------------------

    def _write(self, event: Event) -> None:
        record = encode_record(event.encode())
        with self._lock:
            self._file.write(record)
            overflowed = self._queue_size > self.options.max_queue_size
            self._queue_size += 1
            if overflowed:
                self._file.flush()
                self._queue_size = 0

    def _add_event(self, step: int, summary: Summary) -> None:
        event = Event(wall_time=float(int(time.time())), step=int(step), summary=summary)
        self._write(event)

    def _add_value(self, step: int, value: Value) -> None:
        self._add_event(step, Summary(value=[value]))

    # ---- summaries -------------------------------------------------------

    def add_scalar(self, tag: str, step: int, value: float) -> None:
        """Log a scalar value."""
        self._add_value(step, Value(tag=tag, simple_value=float(value)))

    def add_histogram(self, tag: str, step: int, values: Iterable[float]) -> None:
        """Log the distribution of ``values`` using the default buckets."""
        limits = default_buckets()
        counts = [0] * len(limits)
        low = _DOUBLE_MAX
        high = -_DOUBLE_MAX
        total = 0.0
        total_squares = 0.0
        num = 0
        for raw in values:
            v = float(raw)
            index = bisect_left(limits, v)
            if index == len(limits):
                raise ValueError(f"value {v} lies outside the histogram range")
            counts[index] += 1
            num += 1
            total += v
            total_squares += v * v
            high = max(high, v)
            low = min(low, v)

        used = [(limit, count) for limit, count in zip(limits, counts) if count > 0]
        histo = HistogramProto(
            min=low,
            max=high,
            num=float(num),
            sum=total,
            sum_squares=total_squares,
            bucket_limit=[limit for limit, _ in used],
            bucket=[float(count) for _, count in used],
        )
        self._add_value(step, Value(tag=tag, histo=histo))

    def add_image(
        self,
        tag: str,
        step: int,
        encoded_image: bytes,
        height: int,
        width: int,
        channel: int,
        display_name: str = "",
        description: str = "",
    ) -> None:
        """Log one encoded image."""
        meta = SummaryMetadata(
            display_name=display_name or tag, summary_description=description
        )
        image = Image(
            height=height,
            width=width,
            colorspace=channel,
            encoded_image_string=bytes(encoded_image),
        )
        self._add_value(step, Value(tag=tag, image=image, metadata=meta))

    def add_images(
        self,
        tag: str,
        step: int,
        encoded_images: Sequence[bytes],
        height: int,
        width: int,
        display_name: str = "",
        description: str = "",
    ) -> None:
        """Log several encoded images under one tag."""
        meta = SummaryMetadata(
            plugin_data=PluginData(plugin_name=IMAGES_PLUGIN_NAME),
            display_name=display_name or tag,
            summary_description=description,
        )
        tensor = TensorProto(
            dtype=DataType.DT_STRING,
            string_val=[str(width), str(height), *(bytes(img) for img in encoded_images)],
        )
        self._add_value(step, Value(tag=tag, tensor=tensor, metadata=meta))

    def add_audio(
        self,
        tag: str,
        step: int,
        encoded_audio: bytes,
        sample_rate: float,
        num_channels: int,
        length_frame: int,
        content_type: str,
        display_name: str = "",
        description: str = "",
    ) -> None:
        """Log an encoded audio clip."""
        meta = SummaryMetadata(
            display_name=display_name or tag, summary_description=description
        )
        audio = Audio(
            sample_rate=float(sample_rate),
            num_channels=num_channels,
            length_frames=length_frame,
            encoded_audio_string=bytes(encoded_audio),
            content_type=content_type,
        )
        self._add_value(step, Value(tag=tag, audio=audio, metadata=meta))

    def add_text(self, tag: str, step: int, text: str) -> None:
        """Log a piece of text for the text plugin."""
        meta = SummaryMetadata(plugin_data=PluginData(plugin_name=TEXT_PLUGIN_NAME))
        tensor = TensorProto(dtype=DataType.DT_STRING, string_val=[text])
        self._add_value(step, Value(tag=tag, tensor=tensor, metadata=meta))

    # ---- embeddings ------------------------------------------------------

    def _load_projector_config(self, path: str) -> ProjectorConfig:
        try:
            with open(path, encoding="utf-8") as handle:
                text = handle.read()
        except OSError:
            return ProjectorConfig()
        try:
            return ProjectorConfig.parse_text(text)
        except ValueError:
            return ProjectorConfig()

    def add_embedding(
        self,
        tensor_name: str,
        tensordata_path: str,
        metadata_path: str = "",
        tensor_shape: Sequence[int] | None = None,
        step: int = 1,
    ) -> None:
        """Register an embedding, stored as TSV, with the projector plugin.

        The entry is appended to the projector configuration file in the
        log directory; ``step`` has no effect on how it is shown.
        """
        config_path = self.log_dir + PROJECTOR_CONFIG_FILE
        config = self._load_projector_config(config_path)
        config.embeddings.append(
            EmbeddingInfo(
                tensor_name=tensor_name,
                tensor_path=tensordata_path,
                metadata_path=metadata_path,
                tensor_shape=[int(dim) for dim in (tensor_shape or ())],
            )
        )
        text = config.to_text()
        with open(config_path, "w", encoding="utf-8") as handle:
            handle.write(text)

        meta = SummaryMetadata(plugin_data=PluginData(plugin_name=PROJECTOR_PLUGIN_NAME))
        self._add_value(step, Value(tag="embedding", metadata=meta))

    def _write_embedding_files(
        self,
        values: Iterable[float],
        tensordata_filename: str,
        metadata: Sequence[str],
        metadata_filename: str,
    ) -> None:
        _write_floats(self.log_dir + tensordata_filename, values)
        if metadata:
            _write_lines(self.log_dir + metadata_filename, metadata)

    def add_embedding_tensor(
        self,
        tensor_name: str,
        tensor: Sequence[Sequence[float]],
        tensordata_filename: str,
        metadata: Sequence[str] = (),
        metadata_filename: str = "",
        step: int = 1,
    ) -> None:
        """Write a 2-D tensor as raw float32 data and register it as an embedding."""
        if not tensor:
            raise ValueError("tensor must have at least one row")
        if metadata and len(metadata) != len(tensor):
            raise ValueError("tensor size != metadata size")
        self._write_embedding_files(
            (v for row in tensor for v in row),
            tensordata_filename,
            metadata,
            metadata_filename,
        )
        self.add_embedding(
            tensor_name,
            tensordata_filename,
            metadata_filename,
            [len(tensor), len(tensor[0])],
            step,
        )

    def add_embedding_flat(
        self,
        tensor_name: str,
        tensor: Sequence[float],
        tensor_shape: Sequence[int],
        tensordata_filename: str,
        metadata: Sequence[str] = (),
        metadata_filename: str = "",
        step: int = 1,
    ) -> None:
        """Write a flat tensor of the given shape and register it as an embedding."""
        num_elements = math.prod(int(dim) for dim in tensor_shape)
        if len(tensor) < num_elements:
            raise ValueError(
                f"tensor holds {len(tensor)} values, shape needs {num_elements}"
            )
        if metadata and (not tensor_shape or len(metadata) != tensor_shape[0]):
            raise ValueError("tensor size != metadata size")
        self._write_embedding_files(
            tensor[:num_elements], tensordata_filename, metadata, metadata_filename
        )
        self.add_embedding(
            tensor_name, tensordata_filename, metadata_filename, list(tensor_shape), step
        )
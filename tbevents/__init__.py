"""Write TensorBoard event files: records, messages, projector config and a logger."""

__version__ = "0.1.0"
__all__ = ["crc", "records", "messages", "projector", "logger"]
"""Building blocks for gNMI telemetry collectors: path tree, latency stats, metadata, error lists."""

__version__ = "0.1.0"
__all__ = ["ctree", "errlist", "latency", "metadata"]
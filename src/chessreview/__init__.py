"""Engine-backed chess game review."""

__version__ = "0.1.0"

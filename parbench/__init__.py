"""Thread-scaling benchmark built around a tiny tree-walking interpreter, with optional processor pinning."""

__version__ = "0.1.0"
"""User-level threads with a round-robin, quantum-based scheduler, plus demonstration scenarios."""

__version__ = "0.1.0"
__all__ = ["scheduler", "uthreads", "demo", "examples"]
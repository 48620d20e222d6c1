"""stealmon - CPU steal time logger."""

__version__ = "1.0.0"

"""ExeWatch - baseline-driven executable integrity monitoring."""

__version__ = "0.1.0"

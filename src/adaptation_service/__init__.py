"""Queue-driven dispatcher that launches file adaptation worker pods."""

__version__ = "0.1.0"

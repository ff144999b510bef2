"""DriftWatch - API drift detection."""

__version__ = "0.1.0"

"""MikroTik RouterOS configuration backup over SSH."""

__version__ = "0.1.0"

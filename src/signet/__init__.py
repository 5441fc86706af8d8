"""Signet - order execution and signing engine for CLOB prediction markets."""

__version__ = "0.1.0"

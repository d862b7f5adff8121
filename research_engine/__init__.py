"""Research session engine: multi-source business research orchestration service."""

__version__ = "0.1.0"

"""Build tracking, IP addressing, topology generation and validation for test networks."""

__version__ = "1.8.2"
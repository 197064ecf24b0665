"""SMB2/SMB3 wire structures and NTLMv2 authentication."""

__version__ = "0.1.0"
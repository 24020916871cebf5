"""CertChain API - certification request lifecycle coordinator."""

__version__ = "0.1.0"

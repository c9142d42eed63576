"""Package version, sent in the User-Agent header."""

__version__ = "0.4.0"

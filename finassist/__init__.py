"""finassist -- deterministic skill cascade for a personal-finance assistant."""

__version__ = "0.1.0"

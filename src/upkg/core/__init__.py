"""Core installation machinery: detection, safety, transactions."""

"""Utility helpers for names, versions and validation."""

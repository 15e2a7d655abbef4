"""Shared domain types, exceptions and redaction helpers."""

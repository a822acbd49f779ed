"""Duplicate-aware document intake ledger."""

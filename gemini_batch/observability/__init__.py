"""Structured logging and batch metrics."""

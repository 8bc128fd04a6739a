"""Configuration, lint rules, documentation coverage and naming helpers for database schemas."""

__version__ = "0.1.0"
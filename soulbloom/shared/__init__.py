"""Shared models, database access and utilities for SoulBloom services."""

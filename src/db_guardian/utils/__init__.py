"""Shared utilities for db_guardian."""

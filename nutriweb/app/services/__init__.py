"""Thin wrappers around the external clinic backend API."""

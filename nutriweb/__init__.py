"""Nutrition clinic web frontend."""

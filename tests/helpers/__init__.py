"""Atelier test helpers."""

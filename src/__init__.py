"""Atelier source modules."""

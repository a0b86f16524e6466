"""Pedagogy engine."""

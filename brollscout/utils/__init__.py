"""Utility helpers for B-Roll Scout."""

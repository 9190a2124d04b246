"""Formatting, form validation and terminal output helpers."""

"""Typer-based CLI entry package for ntpquery."""

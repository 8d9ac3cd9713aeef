"""Typer command line interface for vsnap."""

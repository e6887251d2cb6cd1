"""Typer CLI for docker-hosts."""

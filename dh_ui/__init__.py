"""Command-line front end for docker-hosts."""

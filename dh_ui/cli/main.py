"""
Command-line interface for docker-hosts.

Create, list and drive hosts backed by a local socket, a URL endpoint or AWS EC2.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from dh_common.logging import configure_logging
from dh_drivers.api import register_builtin_drivers
from dh_ui.cli.commands.hosts import register_hosts_commands, show_hosts
from dh_ui.context import UIContext

ctx_store = UIContext()

app = typer.Typer(help="Manage hosts running a container daemon.")


@app.callback(invoke_without_command=True)
def entry(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        envvar="DOCKER_HOSTS_ROOT",
        help="Directory holding host descriptors (default ~/.docker/hosts).",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Global options; without a command, list hosts."""
    configure_logging(debug=debug, force=True)
    register_builtin_drivers()
    ctx_store.reset(root)
    if ctx.invoked_subcommand is None:
        show_hosts(ctx_store)


register_hosts_commands(app, ctx_store)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

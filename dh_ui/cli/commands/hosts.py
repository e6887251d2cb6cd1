from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import typer
from rich.markup import escape
from rich.table import Table

from dh_common.errors import HostCreateError, HostsError, error_to_payload
from dh_hosts.host import Host
from dh_hosts.store import DEFAULT_HOST_NAME
from dh_hosts.state import State
from dh_ui.context import UIContext

logger = logging.getLogger(__name__)


def _fail(ctx: UIContext, exc: Exception) -> None:
    ctx.err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(1)


def _describe(host: Host) -> tuple[str, str]:
    """Return (url, state) for listing; errors are shown inline."""
    try:
        url = host.get_url()
    except Exception as exc:
        logger.debug("URL of host %s unavailable", host.name, exc_info=True)
        url = f"<{exc}>"
    try:
        state = str(host.get_state()) or "-"
    except Exception as exc:
        logger.debug("State of host %s unavailable", host.name, exc_info=True)
        state = f"{State.ERROR} ({exc})"
    return url, state


def _collect_flags(
    driver: str,
    url: Optional[str],
    ec2: Dict[str, Any],
) -> Dict[str, Any]:
    if driver == "url":
        return {"url": url}
    if driver == "ec2":
        return ec2
    return {}


def show_hosts(ctx: UIContext) -> None:
    """Print every host; the active one is marked with '*'."""
    try:
        hosts = ctx.store.list()
        active = ctx.store.get_active()
    except HostsError as exc:
        _fail(ctx, exc)
    table = Table(title="Hosts", show_lines=False)
    table.add_column("Name", style="cyan")
    table.add_column("Active", justify="center")
    table.add_column("Driver")
    table.add_column("State")
    table.add_column("URL")
    for host in hosts:
        url, state = _describe(host)
        marker = "*" if host.name == active.name else ""
        table.add_row(host.name, marker, host.driver_name, escape(state), escape(url))
    ctx.console.print(table)


def register_hosts_commands(app: typer.Typer, ctx: UIContext) -> None:
    """Attach the host management commands to ``app``."""

    @app.command("ls")
    def hosts_list() -> None:
        """List hosts; the active one is marked with '*'."""
        show_hosts(ctx)

    @app.command("create")
    def hosts_create(
        name: str = typer.Argument(..., help="Name of the host."),
        driver: Optional[str] = typer.Option(
            None,
            "--driver",
            "-d",
            help="Driver to create the host with (url, ec2). Defaults to url when --url is set.",
        ),
        url: Optional[str] = typer.Option(None, "--url", help="URL of an existing daemon (url driver)."),
        aws_access_key: Optional[str] = typer.Option(None, "--aws-access-key", help="AWS access key."),
        aws_secret_key: Optional[str] = typer.Option(None, "--aws-secret-key", help="AWS secret key."),
        aws_image_id: Optional[str] = typer.Option(None, "--aws-image-id", help="AMI to use for the selected region."),
        aws_region: Optional[str] = typer.Option(None, "--aws-region", help="AWS region."),
        aws_instance_type: Optional[str] = typer.Option(None, "--aws-instance-type", help="Type of instance to create."),
        aws_instance_name: Optional[str] = typer.Option(None, "--aws-instance-name", help="Name of created instance."),
        aws_username: Optional[str] = typer.Option(
            None, "--aws-instance-username", help="Username for SSH on the instance (depends on AMI)."
        ),
        aws_security_group: Optional[str] = typer.Option(
            None, "--aws-security-group", help="Security group to use for the created instance."
        ),
        aws_provision: bool = typer.Option(
            True, "--aws-provision/--aws-no-provision", help="Wait for SSH and bootstrap docker."
        ),
        aws_install_docker: bool = typer.Option(
            True, "--aws-install-docker/--aws-no-install-docker", help="Install docker if the image lacks it."
        ),
        timeout: Optional[float] = typer.Option(
            None, "--timeout", help="Deadline in seconds for blocking waits during create."
        ),
        activate: bool = typer.Option(True, "--activate/--no-activate", help="Make the new host active."),
    ) -> None:
        """Create a host."""
        driver_name = driver or ("url" if url else None)
        if driver_name is None:
            ctx.err_console.print("[red]Error:[/red] pass --driver or --url")
            raise typer.Exit(1)
        flags = _collect_flags(
            driver_name,
            url,
            {
                "access_key": aws_access_key,
                "secret_key": aws_secret_key,
                "image_id": aws_image_id,
                "region": aws_region,
                "instance_type": aws_instance_type,
                "instance_name": aws_instance_name,
                "username": aws_username,
                "security_group": aws_security_group,
                "no_provision": not aws_provision,
                "install_docker": aws_install_docker,
                "timeout": timeout,
            },
        )
        try:
            registered = ctx.store.registry.get(driver_name)
            options = registered.build_options(flags)
            host = ctx.store.create(name, driver_name, options)
        except HostCreateError as exc:
            ctx.err_console.print(
                f"[yellow]Host {exc.host.name!r} was partially created; "
                f"inspect it or remove it with 'rm {exc.host.name}'.[/yellow]"
            )
            _fail(ctx, exc)
        except HostsError as exc:
            _fail(ctx, exc)
        if activate:
            try:
                ctx.store.set_active(host)
            except HostsError as exc:
                _fail(ctx, exc)
        ctx.console.print(f"[green]Created host {host.name}[/green]")

    @app.command("rm")
    def hosts_remove(
        names: List[str] = typer.Argument(..., help="Hosts to remove."),
    ) -> None:
        """Remove hosts and deprovision their machines."""
        failed = False
        for name in names:
            try:
                ctx.store.remove(name)
                ctx.console.print(f"Removed {name}")
            except HostsError as exc:
                ctx.err_console.print(f"[red]Error removing {escape(name)}:[/red] {escape(str(exc))}")
                failed = True
        if failed:
            raise typer.Exit(1)

    @app.command("active")
    def hosts_active(
        name: Optional[str] = typer.Argument(None, help="Host to make active."),
    ) -> None:
        """Show the active host, or set it when a name is given."""
        try:
            if name is None:
                ctx.console.print(ctx.store.get_active().name)
                return
            ctx.store.set_active(ctx.store.load(name))
        except HostsError as exc:
            _fail(ctx, exc)

    @app.command("inspect")
    def hosts_inspect(name: str = typer.Argument(..., help="Host name.")) -> None:
        """Print the host descriptor as JSON."""
        try:
            host = ctx.store.load(name)
        except HostsError as exc:
            _fail(ctx, exc)
        payload = host.to_dict()
        payload["driver"] = {
            key: ("***" if "secret" in key and val else val)
            for key, val in payload["driver"].items()
        }
        try:
            payload["url"] = host.get_url()
        except HostsError as exc:
            payload["url"] = None
            payload.update(error_to_payload(exc))
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))

    @app.command("url")
    def hosts_url(name: Optional[str] = typer.Argument(None, help="Host name (default: active).")) -> None:
        """Print the daemon URL of a host."""
        try:
            host = ctx.store.load(name) if name else ctx.store.get_active()
            typer.echo(host.get_url())
        except HostsError as exc:
            _fail(ctx, exc)

    @app.command("ip")
    def hosts_ip(name: Optional[str] = typer.Argument(None, help="Host name (default: active).")) -> None:
        """Print the IP address of a host."""
        try:
            host = ctx.store.load(name) if name else ctx.store.get_active()
            typer.echo(host.get_ip())
        except HostsError as exc:
            _fail(ctx, exc)

    @app.command("state")
    def hosts_state(name: Optional[str] = typer.Argument(None, help="Host name (default: active).")) -> None:
        """Query and print the current state of a host."""
        try:
            host = ctx.store.load(name) if name else ctx.store.get_active()
            state = host.get_state()
            if host.name != DEFAULT_HOST_NAME:
                ctx.store.save(host)
        except HostsError as exc:
            _fail(ctx, exc)
        typer.echo(str(state) or "-")

    def _lifecycle(action: str, help_text: str) -> None:
        @app.command(action, help=help_text)
        def _command(
            name: Optional[str] = typer.Argument(None, help="Host name (default: active)."),
        ) -> None:
            try:
                host = ctx.store.load(name) if name else ctx.store.get_active()
                getattr(host, action)()
            except HostsError as exc:
                _fail(ctx, exc)

    _lifecycle("start", "Start a host.")
    _lifecycle("stop", "Stop a host.")
    _lifecycle("restart", "Restart a host.")
    _lifecycle("kill", "Kill a host (same as stop on ec2).")

    @app.command("ssh")
    def hosts_ssh(
        name: str = typer.Argument(..., help="Host name."),
        command: List[str] = typer.Argument(..., help="Command to run on the host."),
    ) -> None:
        """Run a command on the host over SSH and print its output."""
        try:
            output = ctx.store.load(name).get_ssh_command(*command).run()
        except HostsError as exc:
            _fail(ctx, exc)
        typer.echo(output, nl=False)

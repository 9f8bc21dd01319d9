"""rdns CLI - operate on domain registrations from the command line."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click
import structlog
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rdns.core.config import ENV_PREFIX, RDNSConfig, flatten_config
from rdns.domains import DomainBackend, DomainOptions
from rdns.domains.records import Domain
from rdns.errors import RDNSError

console = Console()

T = TypeVar("T")


def _configure_logging(debug: bool) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.WARNING
        ),
    )


@click.group()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option("--endpoints", envvar="RDNS_ETCD_ENDPOINTS", help="Comma-separated etcd endpoints")
@click.option("--prefix", envvar="RDNS_ETCD_PREFIX", help="Key prefix for domain records")
@click.option("--root-domain", envvar="RDNS_ROOT_DOMAIN", help="Root domain for generated subdomains")
@click.option("--ttl", envvar="RDNS_TTL", help="Registration TTL, e.g. 240h")
@click.option("--debug", "-d", is_flag=True, envvar="RDNS_DEBUG", help="Debug logging")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def main(
    ctx: click.Context,
    config_file: str | None,
    endpoints: str | None,
    prefix: str | None,
    root_domain: str | None,
    ttl: str | None,
    debug: bool,
    json_output: bool,
):
    """rdns - dynamic domain registrations backed by etcd.

    Settings come from RDNS_* environment variables, an optional config
    file, and the options below (highest precedence).
    """
    ctx.ensure_object(dict)
    overrides = {
        "etcd_endpoints": endpoints,
        "etcd_prefix": prefix,
        "root_domain": root_domain,
        "ttl": ttl,
    }
    if debug:
        overrides["debug"] = True

    try:
        if config_file:
            config = RDNSConfig.from_file(config_file, **overrides)
        else:
            config = RDNSConfig(**{k: v for k, v in overrides.items() if v is not None})
    except (ValidationError, ValueError, FileNotFoundError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    _configure_logging(config.debug)
    ctx.obj["config"] = config
    ctx.obj["json"] = json_output


def _run(ctx: click.Context, action: Callable[[DomainBackend], Awaitable[T]]) -> T:
    """Build a backend, run ``action`` against it, and close it again.

    Programs embedding the CLI can pass their own store as
    ``main(obj={"store": store})``; otherwise an etcd store is built from the
    configuration.
    """
    config: RDNSConfig = ctx.obj["config"]

    async def runner() -> T:
        async with DomainBackend.from_config(config, store=ctx.obj.get("store")) as backend:
            return await action(backend)

    try:
        return asyncio.run(runner())
    except RDNSError as e:
        if ctx.obj.get("json"):
            console.print(json.dumps(e.to_dict(), indent=2, default=str))
        else:
            console.print(
                Panel(
                    f"[red]{e.message}[/red]",
                    title=f"Error: {e.code}",
                    border_style="red",
                )
            )
        sys.exit(1)


def _print_domain(ctx: click.Context, domain: Domain, title: str) -> None:
    if ctx.obj.get("json"):
        console.print(json.dumps(domain.to_dict(), indent=2))
        return

    table = Table(title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("FQDN", domain.fqdn)
    if domain.text is not None:
        table.add_row("Text", domain.text)
    else:
        table.add_row("Hosts", ", ".join(sorted(domain.hosts)) or "[dim]none[/dim]")
    expiration = domain.expiration.strftime("%Y-%m-%d %H:%M:%S %Z") if domain.expiration else "N/A"
    table.add_row("Expires", expiration)
    console.print(table)


def _print_deleted(ctx: click.Context, fqdn: str) -> None:
    if ctx.obj.get("json"):
        console.print(json.dumps({"fqdn": fqdn, "deleted": True}, indent=2))
    else:
        console.print(f"[green]Deleted:[/green] {fqdn}")


@main.command()
@click.argument("hosts", nargs=-1, required=True)
@click.pass_context
def create(ctx: click.Context, hosts: tuple[str, ...]):
    """Register a new random subdomain pointing at HOSTS.

    Examples:

        rdns create 1.2.3.4 5.6.7.8
    """
    opts = DomainOptions.for_hosts(hosts)
    domain = _run(ctx, lambda backend: backend.create_host(opts))
    _print_domain(ctx, domain, "Domain Created")


@main.command()
@click.argument("fqdn")
@click.pass_context
def get(ctx: click.Context, fqdn: str):
    """Show the hosts and expiration of FQDN."""
    domain = _run(ctx, lambda backend: backend.get_host(DomainOptions(fqdn=fqdn)))
    _print_domain(ctx, domain, "Domain")


@main.command()
@click.argument("fqdn")
@click.argument("hosts", nargs=-1, required=True)
@click.pass_context
def update(ctx: click.Context, fqdn: str, hosts: tuple[str, ...]):
    """Replace the hosts of FQDN with HOSTS."""
    opts = DomainOptions.for_hosts(hosts, fqdn=fqdn)
    domain = _run(ctx, lambda backend: backend.update_host(opts))
    _print_domain(ctx, domain, "Domain Updated")


@main.command()
@click.argument("fqdn")
@click.pass_context
def renew(ctx: click.Context, fqdn: str):
    """Extend the TTL of FQDN, its token and its ACME challenge entries."""
    domain = _run(ctx, lambda backend: backend.renew_host(DomainOptions(fqdn=fqdn)))
    _print_domain(ctx, domain, "Domain Renewed")


@main.command()
@click.argument("fqdn")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete(ctx: click.Context, fqdn: str, yes: bool):
    """Remove FQDN and all of its hosts."""
    if not yes and not click.confirm(f"Are you sure you want to remove '{fqdn}'?"):
        console.print("[dim]Cancelled[/dim]")
        return
    _run(ctx, lambda backend: backend.delete_host(DomainOptions(fqdn=fqdn)))
    _print_deleted(ctx, fqdn)


@main.command()
@click.argument("fqdn")
@click.pass_context
def token(ctx: click.Context, fqdn: str):
    """Show the ownership token of FQDN."""
    value = _run(ctx, lambda backend: backend.get_token_origin(fqdn))
    if ctx.obj.get("json"):
        console.print(json.dumps({"fqdn": fqdn, "token": value}, indent=2))
    else:
        console.print(value)


@main.group()
def txt():
    """Manage TXT registrations and ACME challenge values.

    Examples:

        rdns txt create _acme-challenge.x1.lb.rancher.cloud tok123

        rdns txt get _acme-challenge.x1.lb.rancher.cloud
    """
    pass


@txt.command("create")
@click.argument("fqdn")
@click.argument("text")
@click.pass_context
def txt_create(ctx: click.Context, fqdn: str, text: str):
    """Set the TXT value of FQDN."""
    opts = DomainOptions.for_text(fqdn, text)
    domain = _run(ctx, lambda backend: backend.create_text(opts))
    _print_domain(ctx, domain, "Text Record Created")


@txt.command("get")
@click.argument("fqdn")
@click.pass_context
def txt_get(ctx: click.Context, fqdn: str):
    """Show the TXT value of FQDN."""
    domain = _run(ctx, lambda backend: backend.get_text(DomainOptions(fqdn=fqdn)))
    _print_domain(ctx, domain, "Text Record")


@txt.command("update")
@click.argument("fqdn")
@click.argument("text")
@click.pass_context
def txt_update(ctx: click.Context, fqdn: str, text: str):
    """Replace the TXT value of FQDN."""
    opts = DomainOptions.for_text(fqdn, text)
    domain = _run(ctx, lambda backend: backend.update_text(opts))
    _print_domain(ctx, domain, "Text Record Updated")


@txt.command("delete")
@click.argument("fqdn")
@click.pass_context
def txt_delete(ctx: click.Context, fqdn: str):
    """Remove the TXT registration of FQDN."""
    _run(ctx, lambda backend: backend.delete_text(DomainOptions(fqdn=fqdn)))
    _print_deleted(ctx, fqdn)


@main.command("config")
@click.pass_context
def config_show(ctx: click.Context):
    """Show the effective configuration."""
    config: RDNSConfig = ctx.obj["config"]
    display = config.to_display_dict()

    if ctx.obj.get("json"):
        console.print(json.dumps(display, indent=2))
        return

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Env Variable", style="dim")

    for key, value in flatten_config(display).items():
        table.add_row(key, str(value), f"{ENV_PREFIX}{key.upper()}")

    console.print(table)


@main.command()
def version():
    """Show version information."""
    from rdns import __version__

    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version}")


if __name__ == "__main__":
    main()

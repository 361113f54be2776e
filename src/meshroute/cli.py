from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import json
import typer
from rich.console import Console
from rich.table import Table

from meshroute.core.config import GATEWAYS_ENV_VAR, CompilerConfig
from meshroute.core.errors import RouteInputError
from meshroute.core.logging import configure_logging
from meshroute.orchestrator.pipeline import CompileResult, load_route_list, run_compile
from meshroute.resources.model import ROUTE_FQDN_ANNOTATION
from meshroute.resources.naming import service_name, virtual_service_name


app = typer.Typer(no_args_is_help=True, add_completion=False)

names_app = typer.Typer(no_args_is_help=True)
app.add_typer(names_app, name="names")

console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit structured JSON logs on stderr."),
) -> None:
    """meshroute: compile Routes into istio VirtualServices and k8s Services."""
    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")


@app.command("compile")
def compile_routes(
    routes: str = typer.Argument(..., help="Path to a RouteList JSON document"),
    gateway: Optional[List[str]] = typer.Option(
        None,
        "--gateway",
        "-g",
        help=f"External istio gateway (repeatable, default: ${GATEWAYS_ENV_VAR})",
    ),
    format: str = typer.Option("json", help="Output format: json|table"),
    out: Optional[str] = typer.Option(None, help="Output path (default: print to stdout)"),
    strict: bool = typer.Option(False, help="Exit 2 if any FQDN or destination was skipped"),
) -> None:
    fmt = format.lower().strip()
    if fmt not in ("json", "table"):
        raise typer.BadParameter("format must be one of: json, table")

    routes_path = Path(routes).expanduser()
    try:
        route_items = load_route_list(routes_path)
    except RouteInputError as e:
        err_console.print(f"[bold red]error[/bold red] {e}")
        raise typer.Exit(1)

    config = CompilerConfig.from_env(gateways=gateway)
    result = run_compile(route_items, config=config)

    if fmt == "json":
        text = json.dumps(result.to_manifest(), indent=2)
        if out:
            out_path = Path(out).expanduser()
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(text + "\n", encoding="utf-8")
            err_console.print(
                f"[bold green]Wrote[/bold green] {len(result.resources())} resources to: {out_path}"
            )
        else:
            # plain stdout write: rich would wrap/highlight the manifest
            typer.echo(text)
    else:
        _print_tables(result)

    if strict and result.has_skips:
        raise typer.Exit(2)


def _print_tables(result: CompileResult) -> None:
    console.print(f"[bold]Routes:[/bold] {result.routes_in}")

    vs_table = Table(title="VirtualServices", show_header=True, header_style="bold")
    vs_table.add_column("NAME", no_wrap=True)
    vs_table.add_column("FQDN")
    vs_table.add_column("GATEWAYS")
    vs_table.add_column("PATHS")
    for vs in result.virtual_services:
        paths = ", ".join(h.match.prefix if h.match else "*" for h in vs.http)
        vs_table.add_row(vs.metadata.name, vs.fqdn, ", ".join(vs.gateways), paths)
    console.print(vs_table)

    svc_table = Table(title="Services", show_header=True, header_style="bold")
    svc_table.add_column("NAME", no_wrap=True)
    svc_table.add_column("NAMESPACE")
    svc_table.add_column("PORT", no_wrap=True)
    svc_table.add_column("FQDN")
    for svc in result.services:
        svc_table.add_row(
            svc.metadata.name,
            svc.metadata.namespace,
            ", ".join(str(p.port) for p in svc.ports),
            svc.metadata.annotations.get(ROUTE_FQDN_ANNOTATION, ""),
        )
    console.print(svc_table)

    if result.has_skips:
        console.print("")
        console.print("[bold yellow]Skipped:[/bold yellow]")
        for s in result.skipped_fqdns:
            console.print(f"  fqdn {s.fqdn:<40} {s.reason}: {s.message}")
        for d in result.skipped_destinations:
            console.print(f"  destination {d.destination_guid} (route {d.route_guid}) {d.reason}")


@names_app.command("vs")
def names_vs(
    fqdns: List[str] = typer.Argument(..., help="One or more FQDNs"),
) -> None:
    for fqdn in fqdns:
        typer.echo(f"{virtual_service_name(fqdn)}  {fqdn}")


@names_app.command("service")
def names_service(
    guids: List[str] = typer.Argument(..., help="One or more destination guids"),
) -> None:
    for guid in guids:
        typer.echo(f"{service_name(guid)}  {guid}")


if __name__ == "__main__":
    app()

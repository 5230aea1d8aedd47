from __future__ import annotations

from typing import Dict, Optional

import typer
from rich.markup import escape

from ntpquery.check import ntp_check
from ntpquery.client import NtpClient
from ntpquery.packet import MissingTimestampError, NtpPacket
from ntpquery.settings import load_ntp_config

from ..common import console, print_json, render_fields, to_ms

ntp_app = typer.Typer(help="Query NTP servers")


def _resolve_target(host: Optional[str], port: Optional[int], timeout: Optional[float]) -> Dict[str, object]:
    cfg = load_ntp_config()
    return {
        "host": host if host is not None else cfg["host"],
        "port": port if port is not None else cfg["port"],
        "timeout_s": timeout if timeout is not None else cfg["timeout_s"],
    }


def _exchange(target: Dict[str, object]) -> NtpPacket:
    try:
        with NtpClient(str(target["host"]), int(target["port"]), timeout_s=float(target["timeout_s"])) as client:
            return client.query()
    except (OSError, ValueError) as exc:
        console().print(f"[red]Query to {target['host']}:{target['port']} failed:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


@ntp_app.command("query")
def query(
    host: Optional[str] = typer.Option(None, help="NTP server host name or address"),
    port: Optional[int] = typer.Option(None, min=1, max=65535),
    timeout: Optional[float] = typer.Option(None, help="Receive timeout in seconds"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    target = _resolve_target(host, port, timeout)
    response = _exchange(target)
    fields = response.to_dict()
    try:
        fields["round_trip_ms"] = to_ms(response.round_trip_time)
        fields["correction_offset_ms"] = to_ms(response.correction_offset)
    except MissingTimestampError as exc:
        console().print(f"[yellow]{escape(str(exc))}[/]")
    if as_json:
        print_json(fields)
    else:
        render_fields(f"{target['host']}:{target['port']}", fields)


@ntp_app.command("offset")
def offset(
    host: Optional[str] = typer.Option(None),
    port: Optional[int] = typer.Option(None, min=1, max=65535),
    timeout: Optional[float] = typer.Option(None),
) -> None:
    target = _resolve_target(host, port, timeout)
    response = _exchange(target)
    try:
        offset_ms = to_ms(response.correction_offset)
        rtt_ms = to_ms(response.round_trip_time)
    except MissingTimestampError as exc:
        console().print(f"[red]Incomplete reply from {target['host']}:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    console().print(f"[bold]{target['host']}[/] offset={offset_ms:+.3f}ms rtt={rtt_ms:.3f}ms")


@ntp_app.command("check")
def check(
    host: Optional[str] = typer.Option(None),
    port: Optional[int] = typer.Option(None, min=1, max=65535),
    timeout: Optional[float] = typer.Option(None),
    max_offset_ms: Optional[float] = typer.Option(None, help="Largest tolerated offset"),
) -> None:
    try:
        result = ntp_check(host=host, port=port, timeout_s=timeout, max_offset_ms=max_offset_ms)
    except ValueError as exc:
        console().print(f"[red]Invalid check options:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    print_json(result)
    status_text = "[green]OK[/]" if result.get("ok") else "[red]FAIL[/]"
    console().print(f"[bold]{result['host']}[/] {status_text}")
    if not result.get("ok"):
        raise typer.Exit(code=1)

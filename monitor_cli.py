from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.table import Table

from wordmon.core import __version__
from wordmon.core.address import DeviceAddress, parse_device_address, parse_target
from wordmon.core.cache import WordCache
from wordmon.core.config import MonitorConfig, load_config
from wordmon.core.formats import FORMAT_PROPERTIES, DisplayFormat, parse_display_format
from wordmon.core.preferences import Preferences
from wordmon.core.session import MonitorSession
from wordmon.core.view import MonitorView, ViewSink
from wordmon.mock_server import MockBackend, MockServerConfig
from wordmon.mock_server import load_config as load_mock_config
from wordmon.utils.decoding import RowState
from wordmon.utils.encoding import EncodingError, encode_literal

if not logging.getLogger().hasHandlers():
    logging.basicConfig(level=logging.WARNING)

app = typer.Typer(help="Device word monitor")
prefs_app = typer.Typer(help="Inspect or change saved preferences")
app.add_typer(prefs_app, name="prefs")
console = Console()


class RichTableSink(ViewSink):
    """Collects row state and renders it as a rich table."""

    def __init__(self) -> None:
        self.rows: Dict[str, RowState] = {}
        self.selected: Optional[DeviceAddress] = None

    def apply(self, state: RowState) -> None:
        self.rows[state.address.cache_key] = state

    def clear(self) -> None:
        self.rows.clear()

    def select(self, address: Optional[DeviceAddress]) -> None:
        self.selected = address

    def build_table(self, fmt: DisplayFormat, title: Optional[str] = None) -> Table:
        table = Table(title=title)
        table.add_column("Device")
        table.add_column("F..8  7..0")
        table.add_column(fmt.value, justify="right")
        table.add_column("Raw")
        ordered = sorted(self.rows.values(), key=lambda s: (s.address.key, s.address.addr))
        for state in ordered:
            bits = "".join("1" if b else "." for b in state.bits)
            style = "reverse" if state.address == self.selected else ("dim" if state.suppressed else None)
            table.add_row(state.label, f"{bits[:8]} {bits[8:]}", state.formatted, state.raw, style=style)
        return table


def _format_option(value: str) -> DisplayFormat:
    try:
        return parse_display_format(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _address_option(value: str) -> DeviceAddress:
    parsed = parse_target(value)
    if parsed is None:
        raise typer.BadParameter(f"Invalid device address: {value!r}")
    return parsed


@app.command()
def version():
    """Print the package version."""
    console.print(__version__)


@app.command()
def parse(token: str = typer.Argument(..., help="Target such as D100 or WFF")):
    """Parse a target token into device key and address."""

    parsed = parse_target(token)
    if parsed is None:
        console.print(f"[red]Invalid target: {token!r}[/]")
        raise typer.Exit(code=1)
    console.print(f"key={parsed.key} addr={parsed.addr} (0x{parsed.addr:X})")


@app.command()
def render(
    values: List[str] = typer.Argument(..., help="Consecutive word values (decimal or 0xHEX)"),
    start: str = typer.Option("D0", "--start", "-s", help="Address of the first value"),
    fmt: str = typer.Option("U16", "--format", "-f", help="BIN|U16|I16|HEX|ASCII|U32|I32|F32"),
):
    """Render words the way the monitor table shows them."""

    display = _format_option(fmt)
    first = _address_option(start)
    cache = WordCache()
    view = MonitorView(cache, display)
    sink = RichTableSink()
    view.add_sink(sink)
    for i, text in enumerate(values):
        try:
            cache.set(first.offset(i), int(text, 0))
        except ValueError:
            console.print(f"[red]Invalid word value: {text!r}[/]")
            raise typer.Exit(code=1)
    console.print(sink.build_table(display, title=FORMAT_PROPERTIES[display].label))


@app.command()
def encode(
    literal: str = typer.Argument(..., help="Value to encode"),
    fmt: str = typer.Option("U16", "--format", "-f", help="Write format"),
    at: str = typer.Option("D0", "--at", help="Target address"),
):
    """Show the words a literal would be written as."""

    display = _format_option(fmt)
    address = _address_option(at)
    try:
        plan = encode_literal(literal, display, address)
    except EncodingError as exc:
        console.print(f"[red]{exc}[/]")
        raise typer.Exit(code=1)
    table = Table(title=f"{display.value} {literal!r}")
    table.add_column("Device")
    table.add_column("Word")
    table.add_column("Hex")
    for target, word in plan.targets():
        table.add_row(target.label, str(word), f"0x{word:04X}")
    console.print(table)


async def _watch(cfg: MonitorConfig, mock_cfg: MockServerConfig, display: Optional[DisplayFormat], duration: float) -> None:
    backend = MockBackend(mock_cfg)
    session = MonitorSession(backend, events=backend, config=cfg)
    sink = RichTableSink()
    session.add_sink(sink)
    await session.initialize()
    if display is not None:
        session.set_display_format(display)
    if not session.running:
        await session.start()
    console.print(f"[green]Monitoring {session.target.label} via {session.channel.value} channel[/]")
    loop = asyncio.get_running_loop()
    deadline = loop.time() + duration if duration > 0 else None
    try:
        with Live(sink.build_table(session.format), console=console, refresh_per_second=4) as live:
            while deadline is None or loop.time() < deadline:
                await asyncio.sleep(cfg.interval_ms / 1000.0)
                live.update(sink.build_table(session.format, title=f"{session.target.label} [{session.status}]"))
    finally:
        await session.stop()


@app.command()
def watch(
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, help="Monitor config (YAML/JSON)"),
    mock_config: Optional[Path] = typer.Option(None, exists=True, readable=True, help="Mock backend config (YAML/JSON)"),
    target: Optional[str] = typer.Option(None, help="Target to monitor, e.g. D100"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="Display format"),
    poll: bool = typer.Option(False, "--poll", help="Disable push events and use the polling fallback"),
    duration: float = typer.Option(0.0, help="Seconds to run (0 runs until Ctrl+C)"),
):
    """Monitor words from the built-in mock backend."""

    try:
        cfg = load_config(config) if config else MonitorConfig()
        mock_cfg = load_mock_config(mock_config) if mock_config else MockServerConfig()
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if target:
        cfg.target = target
    if poll:
        mock_cfg.events_enabled = False
    display = _format_option(fmt) if fmt else None
    try:
        asyncio.run(_watch(cfg, mock_cfg, display, duration))
    except KeyboardInterrupt:
        console.print("Stopping monitor...")


@prefs_app.command("show")
def prefs_show(path: Path = typer.Option(..., help="Preferences file")):
    """Print the saved preferences."""

    prefs = Preferences(path)
    table = Table(title=f"Preferences in {path}")
    table.add_column("Key")
    table.add_column("Value")
    fmt = prefs.display_format
    pos = prefs.edit_popup_pos
    table.add_row("display format", fmt.value if fmt else "-")
    table.add_row("auto start", "yes" if prefs.auto_start_next else "no")
    table.add_row("edit position", f"{pos[0]},{pos[1]}" if pos else "-")
    console.print(table)


@prefs_app.command("set")
def prefs_set(
    path: Path = typer.Option(..., help="Preferences file"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="Display format to save"),
    auto_start: Optional[bool] = typer.Option(None, "--auto-start/--no-auto-start", help="Start the backend on launch"),
):
    """Change saved preferences."""

    prefs = Preferences(path)
    if fmt:
        prefs.display_format = _format_option(fmt)
    if auto_start is not None:
        prefs.auto_start_next = auto_start
    console.print(f"Preferences saved to {path}")


if __name__ == "__main__":
    app()

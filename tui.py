# tui.py
"""
Hookmap TUI — browse the netfilter hook/family points of the packet pipeline
diagram with the arrow keys.

Features:
- Static pipeline diagram with the selected hook highlighted
- Arrow keys (and optional configured keys) move to the nearest hook in that direction
- Label of the selected hook next to the diagram
- Press 'q' to quit; Ctrl-C also works
- `show` prints a single frame, `catalog` lists every point

Requirements:
  rich
  typer
  PyYAML

Usage:
  hookmap run
  hookmap run --config ./hookmap.yaml
  hookmap show --hook forward --family bridge
"""
from __future__ import annotations

import contextlib
import dataclasses
import enum
import os
import select
import signal
import sys
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import typer
import yaml
from rich import box
from rich.color import Color, ColorParseError
from rich.console import Console, RenderableType
from rich.errors import StyleSyntaxError
from rich.live import Live
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

from diagram import (
    CATALOG,
    DiagramRenderer,
    Direction,
    HookKind,
    ProtoFamilyKind,
    SelectionModel,
    find_point,
    format_label,
)

app = typer.Typer(add_completion=False, help="Hookmap: netfilter hook diagram browser")
console = Console()


# --------------------
# Config loading
# --------------------

BINDING_ACTIONS = ("up", "down", "left", "right", "quit")


@dataclass
class Config:
    highlight_color: str = "red"
    label_style: str = "bold"
    key_bindings: Dict[str, str] = dataclasses.field(default_factory=dict)

    @property
    def highlight(self) -> Style:
        return Style(color=self.highlight_color)


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError("Config must be a mapping")

    color = str(raw.get("highlight_color", "red"))
    try:
        Color.parse(color)
    except ColorParseError:
        raise ValueError(f"Invalid highlight_color '{color}'")

    label_style = str(raw.get("label_style", "bold"))
    try:
        Style.parse(label_style)
    except StyleSyntaxError:
        raise ValueError(f"Invalid label_style '{label_style}'")

    raw_bindings = raw.get("key_bindings") or {}
    if not isinstance(raw_bindings, dict):
        raise ValueError("key_bindings must be a mapping")
    bindings: Dict[str, str] = {}
    for key, action in raw_bindings.items():
        key = str(key)
        if len(key) != 1:
            raise ValueError(f"Key binding '{key}' must be a single character")
        if action not in BINDING_ACTIONS:
            raise ValueError(f"Invalid action '{action}' for key '{key}'")
        bindings[key] = action

    return Config(highlight_color=color, label_style=label_style, key_bindings=bindings)


def load_config_or_exit(path: Optional[str]) -> Config:
    if not path:
        return Config()
    try:
        return load_config(path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        typer.secho(f"Invalid config {path}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


# --------------------
# Input events
# --------------------

class InputEvent(enum.Enum):
    MOVE_UP = "up"
    MOVE_DOWN = "down"
    MOVE_LEFT = "left"
    MOVE_RIGHT = "right"
    QUIT = "quit"
    OTHER = "other"


EVENT_DIRECTIONS = {
    InputEvent.MOVE_UP: Direction.UP,
    InputEvent.MOVE_DOWN: Direction.DOWN,
    InputEvent.MOVE_LEFT: Direction.LEFT,
    InputEvent.MOVE_RIGHT: Direction.RIGHT,
}

ARROW_EVENTS = {
    "A": InputEvent.MOVE_UP,
    "B": InputEvent.MOVE_DOWN,
    "C": InputEvent.MOVE_RIGHT,
    "D": InputEvent.MOVE_LEFT,
}


def decode_key(seq: str, bindings: Optional[Dict[str, str]] = None) -> InputEvent:
    # Normal (ESC [ x) and application cursor mode (ESC O x) arrows
    if len(seq) == 3 and seq[0] == "\x1b" and seq[1] in "[O":
        return ARROW_EVENTS.get(seq[2], InputEvent.OTHER)
    if bindings and seq in bindings:
        return InputEvent(bindings[seq])
    if seq in ("q", "Q", "\x03"):
        return InputEvent.QUIT
    return InputEvent.OTHER


def split_keys(data: str) -> List[str]:
    """Split one read into key presses: arrow escape sequences or single characters."""
    keys: List[str] = []
    i = 0
    while i < len(data):
        if data[i] == "\x1b" and data[i + 1:i + 2] in ("[", "O") and i + 2 < len(data):
            keys.append(data[i:i + 3])
            i += 3
        else:
            keys.append(data[i])
            i += 1
    return keys


# --------------------
# Frame model
# --------------------

class App:
    """Selection state plus everything needed to draw one frame."""

    def __init__(self, cfg: Optional[Config] = None, selection: Optional[SelectionModel] = None):
        self.cfg = cfg or Config()
        self.selection = selection or SelectionModel()
        self.renderer = DiagramRenderer(highlight=self.cfg.highlight)

    def handle(self, event: InputEvent) -> bool:
        """Apply one event; returns False once the user asked to quit."""
        if event == InputEvent.QUIT:
            return False
        direction = EVENT_DIRECTIONS.get(event)
        if direction is not None:
            self.selection.move_by_direction(direction)
        return True

    def handle_input(self, data: str) -> bool:
        """Apply every key press in `data`; stops at the first quit."""
        for key in split_keys(data):
            if not self.handle(decode_key(key, self.cfg.key_bindings)):
                return False
        return True

    def label(self) -> str:
        return format_label(self.selection.current())

    def frame(self) -> RenderableType:
        buf = self.renderer.new_buffer()
        self.renderer.render(self.selection.current(), buf)

        # 23x10 diagram inside a double border, label to the right
        diagram_panel = Panel(
            buf.to_text(),
            box=box.DOUBLE,
            width=self.renderer.width + 2,
            height=self.renderer.height + 2,
            padding=0,
        )
        grid = Table.grid(padding=(0, 1))
        grid.add_column(no_wrap=True)
        grid.add_column(no_wrap=True)
        grid.add_row(diagram_panel, Text(self.label(), style=self.cfg.label_style))
        return grid


# --------------------
# Keyboard handling
# --------------------

def read_key(fd: int, timeout: float = 0.25) -> Optional[str]:
    """Wait for input; a single read may hold several key presses."""
    if fd in select.select([fd], [], [], timeout)[0]:
        data = os.read(fd, 16)
        return data.decode(errors="ignore") or None
    return None


# --------------------
# Main loop
# --------------------

@contextlib.contextmanager
def stop_on_signals() -> Iterator[threading.Event]:
    """SIGINT/SIGTERM set the yielded event; the old handlers come back on exit."""
    stop = threading.Event()
    def _stop(*_):
        stop.set()
    previous_handlers = {}
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous_handlers[sig] = signal.signal(sig, _stop)
    except ValueError:
        # not on the main thread
        pass
    try:
        yield stop
    finally:
        for sig, handler in previous_handlers.items():
            if handler is not None:
                signal.signal(sig, handler)


def run_loop(app_state: App) -> None:
    import termios
    import tty

    fd = sys.stdin.fileno()
    old_settings = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd)
        with stop_on_signals() as stop, \
                Live(app_state.frame(), console=console, auto_refresh=False, screen=True) as live:
            while not stop.is_set():
                key = read_key(fd)
                if key is None:
                    continue
                if not app_state.handle_input(key):
                    break
                live.update(app_state.frame(), refresh=True)
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


@app.command()
def run(config: Optional[str] = typer.Option(None, help="Path to hookmap.yaml")):
    """Browse the hook diagram interactively."""
    cfg = load_config_or_exit(config)
    if not sys.stdin.isatty():
        typer.secho("hookmap needs an interactive terminal", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    run_loop(App(cfg))


@app.command()
def show(hook: HookKind = typer.Option(HookKind.IN, help="Hook to highlight"),
         family: ProtoFamilyKind = typer.Option(ProtoFamilyKind.INET, help="Protocol family to highlight"),
         config: Optional[str] = typer.Option(None, help="Path to hookmap.yaml")):
    """Print one frame with the given hook selected."""
    cfg = load_config_or_exit(config)
    try:
        point = find_point(hook, family)
    except KeyError as e:
        typer.secho(str(e.args[0]), fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    app_state = App(cfg, SelectionModel(point))
    console.print(app_state.frame())


@app.command()
def catalog():
    """List every selectable hook with its diagram coordinates."""
    tbl = Table(box=box.SIMPLE_HEAVY, padding=(0, 1))
    tbl.add_column("Hook", no_wrap=True)
    tbl.add_column("Family", no_wrap=True)
    tbl.add_column("x", justify="right")
    tbl.add_column("y", justify="right")
    tbl.add_column("Label", no_wrap=True)
    for p in CATALOG:
        tbl.add_row(p.hook.value, p.family.value, str(p.x), str(p.y), Text(format_label(p), style="bold"))
    console.print(tbl)


if __name__ == "__main__":
    app()

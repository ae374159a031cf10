# diagram.py
"""
Hookmap core — the netfilter hook/family points, directional selection and the
diagram renderer. No terminal I/O happens here; the host loop in tui.py feeds
directions in and puts the painted cell buffer on screen.

Pieces:
- HookKind / ProtoFamilyKind: closed label vocabularies
- CATALOG: the 12 selectable points and their diagram coordinates
- SelectionModel: nearest point in a direction, with a 3x penalty on sideways drift
- DiagramRenderer: paints the fixed 23x10 background plus one highlighted cell
- format_label: "HOOK: inet   | input " style labels
"""
from __future__ import annotations

import enum
import math
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from rich.style import Style
from rich.text import Text


class InvariantError(AssertionError, ValueError):
    """A programming error: bad buffer size, off-grid selection or unsupported label."""


# --------------------
# Hook / family kinds
# --------------------

class HookKind(enum.Enum):
    IN = "input"
    OUT = "output"
    FORWARD = "forward"
    PREROUTING = "prerouting"
    POSTROUTING = "postrouting"


class ProtoFamilyKind(enum.Enum):
    UNSPEC = "unspec"
    INET = "inet"
    IPV4 = "ipv4"
    ARP = "arp"
    NETDEV = "netdev"
    BRIDGE = "bridge"
    IPV6 = "ipv6"
    DECNET = "decnet"


# never on the diagram, so they have no label
UNLABELLED_FAMILIES = frozenset({ProtoFamilyKind.UNSPEC, ProtoFamilyKind.DECNET})


# --------------------
# Catalog
# --------------------

@dataclass(frozen=True)
class Point:
    hook: HookKind
    family: ProtoFamilyKind
    x: int
    y: int

    @property
    def xy(self) -> Tuple[int, int]:
        return self.x, self.y


def _catalog() -> Tuple[Point, ...]:
    H, F = HookKind, ProtoFamilyKind
    return (
        Point(H.IN, F.INET, 9, 1),
        Point(H.OUT, F.INET, 15, 1),
        Point(H.PREROUTING, F.INET, 7, 3),
        Point(H.FORWARD, F.INET, 11, 3),
        Point(H.POSTROUTING, F.INET, 15, 3),
        Point(H.IN, F.BRIDGE, 9, 5),
        Point(H.OUT, F.BRIDGE, 15, 5),
        Point(H.PREROUTING, F.BRIDGE, 7, 7),
        Point(H.FORWARD, F.BRIDGE, 11, 7),
        Point(H.POSTROUTING, F.BRIDGE, 15, 7),
        Point(H.IN, F.ARP, 9, 9),
        Point(H.OUT, F.ARP, 15, 9),
    )


CATALOG: Tuple[Point, ...] = _catalog()
DEFAULT_POINT = CATALOG[0]


def find_point(hook: HookKind, family: ProtoFamilyKind) -> Point:
    for p in CATALOG:
        if p.hook == hook and p.family == family:
            return p
    raise KeyError(f"{family.value}/{hook.value} is not on the diagram")


# --------------------
# Directional selection
# --------------------

class Direction(enum.Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


# Score of the current point against itself: worse than any point ahead,
# better than anything behind.
STAY_SCORE = sys.maxsize
SIDE_PENALTY = 3


def move_score(offset: Tuple[int, int], direction: Direction) -> float:
    """Score a candidate at `offset` from the current point; lower is better."""
    dx, dy = offset
    if direction == Direction.UP:
        major, minor = -dy, dx
    elif direction == Direction.DOWN:
        major, minor = dy, dx
    elif direction == Direction.LEFT:
        major, minor = -dx, dy
    else:
        major, minor = dx, dy

    if major < 0 or (major == 0 and minor != 0):
        return math.inf
    if major == 0:
        return STAY_SCORE
    return major + SIDE_PENALTY * abs(minor)


class SelectionModel:
    """The currently selected catalog point, moved around with directions."""

    def __init__(self, start: Optional[Point] = None):
        self._current = DEFAULT_POINT
        if start is not None:
            self.select(start)

    def current(self) -> Point:
        return self._current

    def select(self, point: Point) -> Point:
        if point not in CATALOG:
            raise InvariantError(f"{point} is not a catalog point")
        self._current = point
        return point

    def move_by_direction(self, direction: Direction) -> Point:
        sx, sy = self._current.xy
        # min() keeps the first of equal scores, so catalog order breaks ties
        self._current = min(
            CATALOG,
            key=lambda p: move_score((p.x - sx, p.y - sy), direction),
        )
        return self._current


# --------------------
# Cell buffer
# --------------------

DEFAULT_STYLE = Style.null()


@dataclass
class Cell:
    symbol: str = " "
    style: Style = DEFAULT_STYLE

    def set_fg(self, color) -> None:
        self.style = self.style + Style(color=color)


@dataclass
class CellBuffer:
    width: int
    height: int
    cells: List[List[Cell]] = field(default_factory=list)

    def __post_init__(self):
        if not self.cells:
            self.cells = [[Cell() for _ in range(self.width)] for _ in range(self.height)]

    def get(self, x: int, y: int) -> Cell:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise InvariantError(f"cell ({x}, {y}) outside {self.width}x{self.height} buffer")
        return self.cells[y][x]

    def set_string(self, x: int, y: int, s: str, style: Style = DEFAULT_STYLE) -> None:
        for i, ch in enumerate(s):
            cell = self.get(x + i, y)
            cell.symbol = ch
            cell.style = style

    def lines(self) -> List[str]:
        return ["".join(c.symbol for c in row) for row in self.cells]

    def to_text(self) -> Text:
        text = Text(no_wrap=True, overflow="crop")
        for y, row in enumerate(self.cells):
            if y:
                text.append("\n")
            for c in row:
                text.append(c.symbol, style=c.style)
        return text


# --------------------
# Diagram
# --------------------

DIAGRAM_WIDTH = 23
DIAGRAM_HEIGHT = 10

_DIAGRAM_LINES = [
    "         ┌┄┄┄┐",
    "         █   └─█",
    "         │     │",
    "     ┌─█─┴─█───█─┬─┐",
    "     │ │         │ │",
    "     │ └─█     █─┘ │",
    "     │   │     │   │",
    "┄┄┄█─┼─█─┴─█───█───█┄┄┄",
    "     │             │",
    "     └───█┄┄┄┄┄█───┘",
]
DIAGRAM: Tuple[str, ...] = tuple(line.ljust(DIAGRAM_WIDTH) for line in _DIAGRAM_LINES)


class DiagramRenderer:
    def __init__(self, highlight: Optional[Style] = None, rows: Tuple[str, ...] = DIAGRAM):
        self.highlight = highlight if highlight is not None else Style(color="red")
        self.rows = rows
        self.width = max(len(r) for r in rows)
        self.height = len(rows)

    def new_buffer(self) -> CellBuffer:
        return CellBuffer(self.width, self.height)

    def render(self, selection: Point, target: CellBuffer) -> None:
        """Paint the background into `target`, then recolour the selected cell."""
        if (target.width, target.height) != (self.width, self.height):
            raise InvariantError(
                f"buffer is {target.width}x{target.height}, diagram needs {self.width}x{self.height}"
            )
        if not (0 <= selection.x < self.width and 0 <= selection.y < self.height):
            raise InvariantError(f"selection {selection.xy} is outside the {self.width}x{self.height} diagram")
        for y, line in enumerate(self.rows):
            target.set_string(0, y, line, DEFAULT_STYLE)

        target.get(selection.x, selection.y).set_fg(self.highlight.color)


# --------------------
# Labels
# --------------------

def format_label(point: Point) -> str:
    if point.family in UNLABELLED_FAMILIES:
        raise InvariantError(f"protocol family {point.family.name} has no label")
    return f"HOOK: {point.family.value:6} | {point.hook.value} "

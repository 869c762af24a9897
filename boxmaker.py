#!/usr/bin/env python3
# Copyright (C) 2026  Lesco Design & Mfg. Co., Inc.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""
Finger-Joint Box Maker: Joint Layouts, Panel Paths, Sheet Packing + SVG
=======================================================================
Designs flat panels that interlock through finger joints to form a box
(optionally with a lid and crossing dividers) and arranges them on stock
sheets for CNC routing or laser cutting.

Architecture
------------
  layout_fingers()          Symmetric odd finger layout for one span.
  FingerJointCalculator     The ten axis layouts of a box configuration.
  PanelPathGenerator        Closed outlines (tabs, slots, divider notches)
                              plus dogbone corner-relief circles.
  SheetPackingOptimizer     Greedy bottom-left packing across sheets with
                              optional 90° rotation.
  PanelSVGGenerator         One SVG drawing per panel.
  SheetSVGGenerator         One cutting-layout SVG per packed sheet.
  generate_box_files()      Full pipeline: layouts, packing, SVG files.

Usage
-----
    python boxmaker.py -l 100 -w 80 -H 40 -t 6
    python boxmaker.py --preset "Tool Box" -o toolbox
    python boxmaker.py --config boxmaker.conf --lid --dividers

Coordinate Convention
---------------------
    Panel outlines start at (0, 0) and run along +x first.  Tabs may
    protrude outside the nominal panel rectangle by the joint depth
    (stock thickness + kerf).  Sheet placements use the sheet's top-left
    corner as origin, exactly like the SVG canvas.

Dependencies
------------
    Required : svgwrite
"""

import argparse
import configparser
import logging
import math
import os
import sys
from dataclasses import dataclass, field, replace as dataclass_replace
from enum import Enum, IntEnum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import svgwrite

__version__ = "1.0.0"

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

EPSILON = 1e-9
WIDTH_TOLERANCE = 0.2           # accepted deviation from the target finger width
CORNER_TOLERANCE = 0.001        # |cross| below this is a straight run
COS_45 = math.cos(math.radians(45))


# ============================================================================
# ERRORS
# ============================================================================

class BoxMakerError(Exception):
    """Base class for every error raised by this module."""


class InvalidDimension(BoxMakerError, ValueError):
    """A span, finger width, stock or box dimension is unusable."""


class MalformedPath(BoxMakerError, ValueError):
    """A command sequence does not describe exactly one closed contour."""


def _require_positive(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidDimension(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number) or number <= 0:
        raise InvalidDimension(f"{name} must be a positive finite number, got {value!r}")
    return number


def _require_non_negative(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidDimension(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number) or number < 0:
        raise InvalidDimension(f"{name} must be zero or a positive finite number, got {value!r}")
    return number


# ============================================================================
# CONFIGURATION
# ============================================================================

class ReliefStyle(IntEnum):
    """
    Corner-relief (dogbone) style for inside corners.

    Only FILLET_45 produces geometry; LONG_SIDE and T_BONE are accepted
    so existing configurations keep loading, but they add nothing.
    """

    NONE = 0
    LONG_SIDE = 1
    T_BONE = 2
    FILLET_45 = 3

    @classmethod
    def parse(cls, value: Union[int, str, "ReliefStyle"]) -> "ReliefStyle":
        """Accept a member, its integer value, or a name such as ``t-bone``."""
        if isinstance(value, ReliefStyle):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        key = text.upper().replace('-', '_').replace(' ', '_')
        key = {'TBONE': 'T_BONE', 'LONGSIDE': 'LONG_SIDE',
               'FILLET': 'FILLET_45', 'FILLETS_45': 'FILLET_45'}.get(key, key)
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown relief style: {value!r}") from None


@dataclass(frozen=True)
class BoxConfig:
    """
    Immutable description of one box and the material it is cut from.

    All dimensions are in millimetres.  Box dimensions are the nominal
    panel footprints; the lid is sized to slip over the box walls.

    Attributes
    ----------
    box_length, box_width, box_height : Box footprint along X, Y and Z.
    stock_thickness : Sheet material thickness.
    stock_width, stock_height : Size of one stock sheet.
    finger_width    : Target finger width; actual widths are adjusted so
                      every span holds an odd number of equal fingers.
    bit_diameter    : Cutting tool diameter (relief circle size).
    kerf            : Material removed by the tool; added to joint depth.
    lid_height      : Height of the lid walls.
    lid_tolerance   : Clearance between lid and box walls on each side.
    part_spacing    : Minimum gap between packed panels and sheet edges.
    relief_style    : Inside-corner relief style.
    enable_lid, enable_dividers, enable_x_divider, enable_y_divider :
                      Optional panel groups.
    """

    box_length: float = 100.0
    box_width: float = 80.0
    box_height: float = 40.0
    stock_thickness: float = 6.0
    stock_width: float = 300.0
    stock_height: float = 300.0
    finger_width: float = 15.0
    bit_diameter: float = 3.175
    kerf: float = 0.2
    lid_height: float = 20.0
    lid_tolerance: float = 0.5
    part_spacing: float = 10.0
    relief_style: ReliefStyle = ReliefStyle.FILLET_45
    enable_lid: bool = False
    enable_dividers: bool = False
    enable_x_divider: bool = True
    enable_y_divider: bool = True

    @property
    def lid_length(self) -> float:
        return self.box_length + 2 * self.stock_thickness + 2 * self.lid_tolerance

    @property
    def lid_width(self) -> float:
        return self.box_width + 2 * self.stock_thickness + 2 * self.lid_tolerance

    @property
    def joint_depth(self) -> float:
        """Depth of every tab and slot: stock thickness plus kerf."""
        return self.stock_thickness + self.kerf

    @property
    def bit_radius(self) -> float:
        return self.bit_diameter / 2.0

    @property
    def x_divider_enabled(self) -> bool:
        return self.enable_dividers and self.enable_x_divider

    @property
    def y_divider_enabled(self) -> bool:
        return self.enable_dividers and self.enable_y_divider

    def validate(self) -> "BoxConfig":
        """
        Check every dimension and return self.

        Raises
        ------
        InvalidDimension
            If a size is not a positive finite number, or kerf / lid
            tolerance is negative.
        """
        for name in ('box_length', 'box_width', 'box_height',
                     'stock_thickness', 'stock_width', 'stock_height',
                     'finger_width', 'bit_diameter', 'lid_height',
                     'part_spacing'):
            _require_positive(name, getattr(self, name))
        for name in ('kerf', 'lid_tolerance'):
            _require_non_negative(name, getattr(self, name))
        return self

    def replace(self, **changes) -> "BoxConfig":
        """Return a copy with *changes* applied."""
        if 'relief_style' in changes:
            changes['relief_style'] = ReliefStyle.parse(changes['relief_style'])
        return dataclass_replace(self, **changes)

    @classmethod
    def from_preset(cls, name: str, **overrides) -> "BoxConfig":
        """Build a configuration from one of :data:`PRESETS`."""
        values = dict(PRESETS[name])
        values.update(overrides)
        return cls().replace(**values)


PRESETS: Dict[str, Dict[str, object]] = {
    "Small Parts Organizer": dict(box_length=150.0, box_width=100.0, box_height=50.0,
                                  finger_width=20.0, enable_lid=False),
    "Tool Box": dict(box_length=300.0, box_width=200.0, box_height=100.0,
                     finger_width=30.0, enable_lid=True, lid_height=40.0),
    "Electronics Enclosure": dict(box_length=120.0, box_width=80.0, box_height=40.0,
                                  stock_thickness=3.0, finger_width=15.0),
    "Workshop Storage": dict(box_length=400.0, box_width=300.0, box_height=120.0,
                             finger_width=40.0, enable_dividers=True),
    "Jewelry Box": dict(box_length=180.0, box_width=120.0, box_height=40.0,
                        stock_thickness=3.0, kerf=0.1, finger_width=15.0),
    "Document Box": dict(box_length=350.0, box_width=250.0, box_height=80.0,
                         finger_width=35.0, enable_lid=True),
}

# BoxConfig field -> (INI section, option)
CONFIG_FIELDS: Dict[str, Tuple[str, str]] = {
    'box_length': ('box', 'length'),
    'box_width': ('box', 'width'),
    'box_height': ('box', 'height'),
    'enable_lid': ('lid', 'enabled'),
    'lid_height': ('lid', 'height'),
    'lid_tolerance': ('lid', 'tolerance'),
    'enable_dividers': ('dividers', 'enabled'),
    'enable_x_divider': ('dividers', 'x_divider'),
    'enable_y_divider': ('dividers', 'y_divider'),
    'stock_thickness': ('stock', 'thickness'),
    'stock_width': ('stock', 'width'),
    'stock_height': ('stock', 'height'),
    'kerf': ('tool', 'kerf'),
    'bit_diameter': ('tool', 'bit_diameter'),
    'finger_width': ('joints', 'finger_width'),
    'relief_style': ('joints', 'relief_style'),
    'part_spacing': ('layout', 'part_spacing'),
}

CONFIG_SECTIONS = ('box', 'lid', 'dividers', 'stock', 'tool', 'joints', 'layout')


def load_config(path: Optional[str] = None) -> configparser.ConfigParser:
    """
    Load an INI configuration file on top of the built-in defaults.

    Every section in :data:`CONFIG_SECTIONS` is always present and seeded
    with the :class:`BoxConfig` defaults, so callers never have to guard
    against missing options.  A missing file is not an error.

    Parameters
    ----------
    path : Path to the ``.conf`` file, or None for pure defaults.

    Returns
    -------
    A populated ConfigParser.
    """
    defaults = BoxConfig()
    seed: Dict[str, Dict[str, str]] = {section: {} for section in CONFIG_SECTIONS}
    for field_name, (section, option) in CONFIG_FIELDS.items():
        value = getattr(defaults, field_name)
        if isinstance(value, ReliefStyle):
            text = value.name.lower()
        elif isinstance(value, bool):
            text = 'yes' if value else 'no'
        else:
            text = str(value)
        seed[section][option] = text

    cfg = configparser.ConfigParser()
    cfg.read_dict(seed)

    if path:
        if os.path.exists(path):
            cfg.read(path, encoding='utf-8')
            logger.info("Loaded configuration: %s", path)
        else:
            logger.debug("Configuration file %s not found, using defaults", path)
    return cfg


def config_from_parser(cfg: configparser.ConfigParser) -> BoxConfig:
    """
    Convert a parser produced by :func:`load_config` into a validated BoxConfig.

    Raises
    ------
    InvalidDimension
        If a numeric option cannot be parsed or is out of range.
    ValueError
        If a boolean or relief-style option is not recognised.
    """
    defaults = BoxConfig()
    values: Dict[str, object] = {}
    for field_name, (section, option) in CONFIG_FIELDS.items():
        default = getattr(defaults, field_name)
        if isinstance(default, ReliefStyle):
            values[field_name] = ReliefStyle.parse(cfg.get(section, option))
        elif isinstance(default, bool):
            values[field_name] = cfg.getboolean(section, option)
        else:
            try:
                values[field_name] = cfg.getfloat(section, option)
            except ValueError as e:
                raise InvalidDimension(f"[{section}] {option}: {e}") from e
    return BoxConfig(**values).validate()


def setup_logging(log_level: str = "INFO") -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


# ============================================================================
# FINGER LAYOUT CALCULATOR
# ============================================================================

@dataclass(frozen=True)
class FingerLayout:
    """
    Symmetric finger layout along one span.

    Attributes
    ----------
    count : Odd number of equal segments (fingers and gaps alternate).
    width : Segment width; ``count * width`` equals ``span``.
    span  : Length of the jointed edge in mm.
    """

    count: int
    width: float
    span: float

    def segment(self, index: int) -> Tuple[float, float]:
        """
        Return the ``(start, end)`` interval of segment *index*.

        Boundaries are computed as ``i * width`` so neighbouring segments
        share the exact same float.  The last segment always ends at
        ``span`` itself, never at an accumulated sum.
        """
        if not 0 <= index < self.count:
            raise IndexError(f"segment {index} out of range for {self.count} fingers")
        start = index * self.width
        end = self.span if index == self.count - 1 else (index + 1) * self.width
        return start, end

    def segments(self) -> List[Tuple[float, float]]:
        return [self.segment(i) for i in range(self.count)]


def layout_fingers(span: float, target_finger_width: float) -> FingerLayout:
    """
    Compute a symmetric finger layout for *span*.

    Algorithm
    ---------
    1. rough = floor(span / target).
    2. Force an odd count (mirror symmetry end to end): keep rough when
       odd, otherwise drop to rough - 1 (at least 1).
    3. If the resulting uniform width is within 20 % of the target keep
       it; otherwise widen by one finger pair as long as that stays
       within one step of the rough estimate.

    Parameters
    ----------
    span                : Edge length in mm (> 0).
    target_finger_width : Desired finger width in mm (> 0).

    Returns
    -------
    FingerLayout with an odd count >= 1.

    Raises
    ------
    InvalidDimension
        If either argument is not a positive finite number.
    """
    span = _require_positive("span", span)
    target = _require_positive("target_finger_width", target_finger_width)

    rough_count = math.floor(span / target)
    base_count = rough_count if rough_count % 2 == 1 else max(1, rough_count - 1)
    uniform_width = span / base_count

    if abs(uniform_width - target) <= target * WIDTH_TOLERANCE:
        count = base_count
    elif base_count + 2 <= rough_count + 2:
        count = base_count + 2
    else:
        count = base_count

    return FingerLayout(count=count, width=span / count, span=span)


def finger_info(index: int, layout: FingerLayout) -> Tuple[float, float]:
    """Return ``(start, width)`` of finger *index*; the last one ends at the span."""
    start, end = layout.segment(index)
    return start, end - start


AXIS_NAMES = ('box_x', 'box_y', 'box_z', 'lid_x', 'lid_y', 'lid_z',
              'x_divider_x', 'x_divider_z', 'y_divider_y', 'y_divider_z')


class FingerJointCalculator:
    """Derive the finger layout of every box, lid and divider axis."""

    def __init__(self, config: BoxConfig) -> None:
        self.config = config

    def calculate_all_layouts(self) -> Dict[str, FingerLayout]:
        """
        Return a mapping from axis name (see :data:`AXIS_NAMES`) to layout.

        Lid X/Y spans are the outer lid dimensions, which clear the box
        walls by the lid tolerance on each side.
        """
        c = self.config
        spans = {
            'box_x': c.box_length,
            'box_y': c.box_width,
            'box_z': c.box_height,
            'lid_x': c.lid_length,
            'lid_y': c.lid_width,
            'lid_z': c.lid_height,
            'x_divider_x': c.box_length,
            'x_divider_z': c.box_height,
            'y_divider_y': c.box_width,
            'y_divider_z': c.box_height,
        }
        layouts = {axis: layout_fingers(spans[axis], c.finger_width) for axis in AXIS_NAMES}
        for axis, layout in layouts.items():
            logger.debug("%s: %d fingers @ %.3f mm", axis, layout.count, layout.width)
        return layouts


# ============================================================================
# PATH COMMANDS
# ============================================================================

@dataclass(frozen=True)
class MoveTo:
    x: float
    y: float


@dataclass(frozen=True)
class LineTo:
    x: float
    y: float


@dataclass(frozen=True)
class Close:
    pass


PathCommand = Union[MoveTo, LineTo, Close]
Path = List[PathCommand]


def validate_path(path: Sequence[PathCommand], tolerance: float = 1e-6) -> None:
    """
    Check that *path* is exactly one closed contour.

    A valid contour is one MoveTo, one or more LineTo commands whose last
    point returns to the MoveTo point, then one Close.

    Raises
    ------
    MalformedPath
        On any deviation from that shape.
    """
    if not path or not isinstance(path[0], MoveTo):
        raise MalformedPath("path must start with a MoveTo")
    if not isinstance(path[-1], Close):
        raise MalformedPath("path must end with a Close")
    for index, command in enumerate(path[1:-1], start=1):
        if isinstance(command, MoveTo):
            raise MalformedPath(f"unexpected MoveTo at command {index}")
        if isinstance(command, Close):
            raise MalformedPath(f"unexpected Close at command {index}")
        if not isinstance(command, LineTo):
            raise MalformedPath(f"unknown command {command!r} at {index}")
    if len(path) < 3:
        raise MalformedPath("path has no line segments")
    start, last = path[0], path[-2]
    if abs(start.x - last.x) > tolerance or abs(start.y - last.y) > tolerance:
        raise MalformedPath(
            f"path ends at ({last.x}, {last.y}) instead of returning to ({start.x}, {start.y})")


def rectangle_path(width: float, height: float, x0: float = 0.0, y0: float = 0.0) -> Path:
    return [
        MoveTo(x0, y0),
        LineTo(x0 + width, y0),
        LineTo(x0 + width, y0 + height),
        LineTo(x0, y0 + height),
        LineTo(x0, y0),
        Close(),
    ]


def rotate_path(path: Sequence[PathCommand], original_width: float) -> Path:
    """
    Rotate a panel path by 90° into its placed orientation.

    Every point maps ``(x, y) -> (y, original_width - x)``; Close commands
    are kept unchanged.
    """
    rotated: Path = []
    for command in path:
        if isinstance(command, MoveTo):
            rotated.append(MoveTo(command.y, original_width - command.x))
        elif isinstance(command, LineTo):
            rotated.append(LineTo(command.y, original_width - command.x))
        else:
            rotated.append(command)
    return rotated


def _fmt(n: float) -> str:
    text = f"{n:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def path_to_svg_d(path: Sequence[PathCommand], dx: float = 0.0, dy: float = 0.0) -> str:
    """Translate path commands to SVG path data (``M``/``L``/``Z``), offset by (dx, dy)."""
    parts = []
    for command in path:
        if isinstance(command, MoveTo):
            parts.append(f"M {_fmt(command.x + dx)} {_fmt(command.y + dy)}")
        elif isinstance(command, LineTo):
            parts.append(f"L {_fmt(command.x + dx)} {_fmt(command.y + dy)}")
        else:
            parts.append("Z")
    return " ".join(parts)


# ============================================================================
# CORNER GEOMETRY
# ============================================================================

@dataclass(frozen=True)
class ReliefCircle:
    """Dogbone relief circle centred at (cx, cy)."""

    cx: float
    cy: float
    r: float


def _same_point(p: Point, q: Point) -> bool:
    return abs(p[0] - q[0]) <= EPSILON and abs(p[1] - q[1]) <= EPSILON


def contour_points(path: Sequence[PathCommand]) -> List[Point]:
    """
    Vertices of the first contour in *path*.

    Consecutive duplicates are dropped, as is a final point that repeats
    the start.  Returns an empty list when the path does not begin with
    a MoveTo.
    """
    if not path or not isinstance(path[0], MoveTo):
        return []
    points: List[Point] = []
    for command in path:
        if isinstance(command, Close):
            break
        if isinstance(command, MoveTo) and points:
            break
        point = (command.x, command.y)
        if points and _same_point(points[-1], point):
            continue
        points.append(point)
    if len(points) > 1 and _same_point(points[0], points[-1]):
        points.pop()
    return points


def signed_area(points: Sequence[Point]) -> float:
    """Shoelace area; positive for counter-clockwise in a y-up frame."""
    area = 0.0
    n = len(points)
    for i in range(n):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % n]
        area += x1 * y2 - x2 * y1
    return area / 2.0


def polygon_orientation(path: Sequence[PathCommand]) -> int:
    """Return +1 when the first contour's signed area is >= 0, else -1."""
    return 1 if signed_area(contour_points(path)) >= 0 else -1


def is_concave_corner(previous: Point, current: Point, following: Point,
                      orientation: int) -> bool:
    """
    Classify the corner at *current* for a contour of the given orientation.

    The cross product of the incoming and outgoing edge vectors is
    negative at a right turn; on a positively oriented contour right turns
    are the inside corners of the material, and the reverse holds for a
    negatively oriented one.  Near-zero products (straight runs) are never
    concave.
    """
    v1x = current[0] - previous[0]
    v1y = current[1] - previous[1]
    v2x = following[0] - current[0]
    v2y = following[1] - current[1]
    cross = v1x * v2y - v1y * v2x
    if orientation > 0:
        return cross < -CORNER_TOLERANCE
    return cross > CORNER_TOLERANCE


def _cross(previous: Point, current: Point, following: Point) -> float:
    return ((current[0] - previous[0]) * (following[1] - current[1])
            - (current[1] - previous[1]) * (following[0] - current[0]))


def drop_straight_vertices(points: Sequence[Point]) -> List[Point]:
    """
    Remove vertices where the contour runs straight on or doubles back.

    A notch that starts at a panel corner retraces part of the adjacent
    edge; the retraced vertex and its neighbours are only real corners
    once it is gone.  Removal repeats until every vertex turns.
    """
    points = list(points)
    changed = True
    while changed and len(points) >= 3:
        changed = False
        for i in range(len(points)):
            if abs(_cross(points[i - 1], points[i], points[(i + 1) % len(points)])) <= CORNER_TOLERANCE:
                del points[i]
                changed = True
                break
    return points


def concave_corners(path: Sequence[PathCommand],
                    hole: bool = False) -> List[Tuple[Point, Point, Point]]:
    """
    Return ``(previous, corner, next)`` triples for every inside corner.

    The contour is walked cyclically, so the MoveTo vertex is classified
    like any other.  Straight and retraced vertices are dropped first.
    For a *hole* (material outside the contour) the contour's convex
    corners are the material's inside corners.
    """
    points = drop_straight_vertices(contour_points(path))
    if len(points) < 3:
        return []
    orientation = 1 if signed_area(points) >= 0 else -1
    if hole:
        orientation = -orientation

    corners = []
    n = len(points)
    for i, current in enumerate(points):
        previous = points[i - 1]
        following = points[(i + 1) % n]
        if is_concave_corner(previous, current, following, orientation):
            corners.append((previous, current, following))
    return corners


def _unit(dx: float, dy: float) -> Point:
    length = math.hypot(dx, dy)
    return dx / length, dy / length


def corner_relief_circles(path: Sequence[PathCommand], radius: float,
                          hole: bool = False) -> List[ReliefCircle]:
    """
    45° fillet dogbones for every inside corner of *path*.

    Each circle of *radius* is shifted diagonally by ``radius * cos(45°)``
    on both axes into the open quadrant of the corner, so its rim passes
    through the corner point and clears the material a round tool leaves
    behind.  A path without a leading MoveTo yields no circles.
    """
    offset = radius * COS_45
    circles = []
    for previous, current, following in concave_corners(path, hole=hole):
        ux, uy = _unit(current[0] - previous[0], current[1] - previous[1])
        wx, wy = _unit(following[0] - current[0], following[1] - current[1])
        circles.append(ReliefCircle(cx=current[0] + offset * (wx - ux),
                                    cy=current[1] + offset * (wy - uy),
                                    r=radius))
    return circles


# ============================================================================
# PANEL PATH GENERATOR
# ============================================================================

PANEL_TYPES = ('box_bottom', 'box_front', 'box_back', 'box_left', 'box_right',
               'lid_top', 'lid_front', 'lid_back', 'lid_left', 'lid_right',
               'x_divider', 'y_divider')


def finger_edge(layout: FingerLayout, axis: str, fixed: float, offset: float,
                parity: int = 0, reverse: bool = False) -> List[LineTo]:
    """
    Emit the line commands for one jointed edge.

    Parameters
    ----------
    layout  : Finger layout along the edge.
    axis    : ``'x'`` for an edge running along X at ``y = fixed``,
              ``'y'`` for an edge running along Y at ``x = fixed``.
    fixed   : Coordinate of the edge on the other axis.
    offset  : Signed joint depth.  Tabs are drawn on the line
              ``fixed + offset``; the sign picks protrusion or notch.
    parity  : Segments with ``i % 2 == parity`` become tabs, the others
              stay flush.
    reverse : Walk from the span end back to 0.

    Returns
    -------
    Four LineTo commands per tab segment, one per flush segment.
    """
    if axis not in ('x', 'y'):
        raise ValueError(f"axis must be 'x' or 'y', got {axis!r}")

    def point(along: float, across: float) -> LineTo:
        return LineTo(along, across) if axis == 'x' else LineTo(across, along)

    indices = range(layout.count - 1, -1, -1) if reverse else range(layout.count)
    commands: List[LineTo] = []
    for i in indices:
        start, end = layout.segment(i)
        near, far = (end, start) if reverse else (start, end)
        if i % 2 == parity:
            commands.extend([
                point(near, fixed),
                point(near, fixed + offset),
                point(far, fixed + offset),
                point(far, fixed),
            ])
        else:
            commands.append(point(far, fixed))
    return commands


class PanelPathGenerator:
    """
    Build closed cutting outlines for every panel type of a box.

    Joint conventions
    -----------------
    * Bottom and lid top: even segments protrude outward on all edges.
    * Long sides (front/back): bottom edge even segments are notches that
      receive the bottom's tabs; vertical edges carry outward tabs on odd
      segments; the top edge is straight.
    * Short sides (left/right): bottom edge as the long sides; vertical
      edges carry notches on odd segments for the long sides' tabs.
    * Dividers are plain rectangles.  Crossing dividers and the walls
      they meet get a centred slot cut-out, returned as a separate contour.

    Every outline starts with ``MoveTo(0, 0)`` and ends with one Close.
    """

    def __init__(self, config: BoxConfig,
                 layouts: Optional[Dict[str, FingerLayout]] = None) -> None:
        """
        Parameters
        ----------
        config  : Box and material configuration.
        layouts : Axis layouts from FingerJointCalculator; computed from
                  *config* when omitted.
        """
        self.config = config
        self.layouts = (layouts if layouts is not None
                        else FingerJointCalculator(config).calculate_all_layouts())
        self.depth = config.joint_depth
        self.bit_radius = config.bit_radius
        if config.relief_style in (ReliefStyle.LONG_SIDE, ReliefStyle.T_BONE):
            logger.warning("Relief style %s is not implemented; no relief will be cut",
                           config.relief_style.name)

    def panel_dimensions(self, panel_type: str) -> Tuple[float, float]:
        """Nominal ``(width, height)`` footprint of *panel_type*."""
        c = self.config
        if panel_type == 'box_bottom':
            return c.box_length, c.box_width
        if panel_type == 'lid_top':
            return c.lid_length, c.lid_width
        if panel_type in ('box_front', 'box_back', 'x_divider'):
            return c.box_length, c.box_height
        if panel_type in ('box_left', 'box_right', 'y_divider'):
            return c.box_width, c.box_height
        if panel_type in ('lid_front', 'lid_back'):
            return c.lid_length, c.lid_height
        if panel_type in ('lid_left', 'lid_right'):
            return c.lid_width, c.lid_height
        return c.box_length, c.box_width

    def cutting_path(self, panel_type: str, width: Optional[float] = None,
                     height: Optional[float] = None) -> Path:
        """
        Outer outline of *panel_type*.

        *width* and *height* default to :meth:`panel_dimensions`.  A
        footprint that differs from the configured axis span gets its own
        finger layout along that edge.  Unknown panel types produce a plain
        rectangle.
        """
        if width is None or height is None:
            width, height = self.panel_dimensions(panel_type)
        axis = self._layout_for

        if panel_type == 'box_bottom':
            return self._base_path(width, height, axis('box_x', width), axis('box_y', height))
        if panel_type in ('box_front', 'box_back'):
            return self._long_side_path(width, height, axis('box_x', width), axis('box_z', height))
        if panel_type in ('box_left', 'box_right'):
            return self._short_side_path(width, height, axis('box_y', width), axis('box_z', height))
        if panel_type == 'lid_top':
            return self._base_path(width, height, axis('lid_x', width), axis('lid_y', height))
        if panel_type in ('lid_front', 'lid_back'):
            return self._long_side_path(width, height, axis('lid_x', width), axis('lid_z', height))
        if panel_type in ('lid_left', 'lid_right'):
            return self._short_side_path(width, height, axis('lid_y', width), axis('lid_z', height))
        return rectangle_path(width, height)

    def _layout_for(self, axis: str, span: float) -> FingerLayout:
        layout = self.layouts[axis]
        if abs(layout.span - span) <= EPSILON:
            return layout
        return layout_fingers(span, self.config.finger_width)

    def cutouts(self, panel_type: str, width: Optional[float] = None,
                height: Optional[float] = None) -> List[Path]:
        """Interior cut-out contours (divider slots) of *panel_type*."""
        if width is None or height is None:
            width, height = self.panel_dimensions(panel_type)
        c = self.config
        if panel_type in ('box_front', 'box_back', 'x_divider') and c.y_divider_enabled:
            return [self._center_slot(width, height)]
        if panel_type in ('box_left', 'box_right', 'y_divider') and c.x_divider_enabled:
            return [self._center_slot(width, height)]
        return []

    def panel_paths(self, panel_type: str, width: Optional[float] = None,
                    height: Optional[float] = None) -> List[Path]:
        """Outline followed by cut-outs; every entry is one closed contour."""
        return ([self.cutting_path(panel_type, width, height)]
                + self.cutouts(panel_type, width, height))

    def path_commands(self, panel_type: str, width: Optional[float] = None,
                      height: Optional[float] = None) -> Path:
        """All contours of *panel_type* concatenated for export."""
        commands: Path = []
        for contour in self.panel_paths(panel_type, width, height):
            commands.extend(contour)
        return commands

    def relief_circles(self, path: Sequence[PathCommand], hole: bool = False) -> List[ReliefCircle]:
        """Relief circles for one contour under the configured style."""
        if self.config.relief_style != ReliefStyle.FILLET_45:
            return []
        return corner_relief_circles(path, self.bit_radius, hole=hole)

    def panel_reliefs(self, panel_type: str, width: Optional[float] = None,
                      height: Optional[float] = None) -> List[ReliefCircle]:
        circles = self.relief_circles(self.cutting_path(panel_type, width, height))
        for cutout in self.cutouts(panel_type, width, height):
            circles.extend(self.relief_circles(cutout, hole=True))
        return circles

    # ------------------------------------------------------------------
    # Outline builders
    # ------------------------------------------------------------------

    def _base_path(self, width: float, height: float,
                   layout_x: FingerLayout, layout_y: FingerLayout) -> Path:
        d = self.depth
        path: Path = [MoveTo(0.0, 0.0)]
        path += finger_edge(layout_x, 'x', 0.0, -d, parity=0)
        path += finger_edge(layout_y, 'y', width, d, parity=0)
        path += finger_edge(layout_x, 'x', height, d, parity=0, reverse=True)
        path += finger_edge(layout_y, 'y', 0.0, -d, parity=0, reverse=True)
        path.append(Close())
        return path

    def _long_side_path(self, width: float, height: float,
                        layout_x: FingerLayout, layout_z: FingerLayout) -> Path:
        d = self.depth
        path: Path = [MoveTo(0.0, 0.0)]
        path += finger_edge(layout_x, 'x', 0.0, d, parity=0)
        path += finger_edge(layout_z, 'y', width, d, parity=1)
        path.append(LineTo(0.0, height))
        path += finger_edge(layout_z, 'y', 0.0, -d, parity=1, reverse=True)
        path.append(Close())
        return path

    def _short_side_path(self, width: float, height: float,
                         layout_y: FingerLayout, layout_z: FingerLayout) -> Path:
        d = self.depth
        path: Path = [MoveTo(0.0, 0.0)]
        path += finger_edge(layout_y, 'x', 0.0, d, parity=0)
        path += finger_edge(layout_z, 'y', width, -d, parity=1)
        path.append(LineTo(0.0, height))
        path += finger_edge(layout_z, 'y', 0.0, d, parity=1, reverse=True)
        path.append(Close())
        return path

    def _center_slot(self, width: float, height: float) -> Path:
        slot_w = self.depth
        slot_h = height / 2.0
        return rectangle_path(slot_w, slot_h,
                              x0=width / 2.0 - slot_w / 2.0,
                              y0=height / 2.0 - slot_h / 2.0)


# ============================================================================
# SHEET PACKING OPTIMIZER
# ============================================================================

class Orientation(Enum):
    NORMAL = 0
    ROTATED_90 = 90


@dataclass
class Panel:
    """
    One panel instance to be packed.

    ``base_width``/``base_height`` are the panel's own footprint; the
    ``width``/``height`` properties give the footprint in the placed
    orientation.  ``kind`` names the outline type used to re-derive the
    cutting path; ``order`` is the insertion index used to break ties.
    """

    name: str
    base_width: float
    base_height: float
    kind: str = ""
    order: int = 0
    orientation: Orientation = Orientation.NORMAL
    placed: bool = False
    x: float = 0.0
    y: float = 0.0

    def __post_init__(self) -> None:
        if not self.kind:
            self.kind = self.name

    @property
    def area(self) -> float:
        return self.base_width * self.base_height

    def size(self, orientation: Optional[Orientation] = None) -> Tuple[float, float]:
        """Effective ``(width, height)`` in *orientation* (default: current)."""
        if orientation is None:
            orientation = self.orientation
        if orientation is Orientation.ROTATED_90:
            return self.base_height, self.base_width
        return self.base_width, self.base_height

    @property
    def width(self) -> float:
        return self.size()[0]

    @property
    def height(self) -> float:
        return self.size()[1]

    @property
    def rotated(self) -> bool:
        return self.orientation is Orientation.ROTATED_90

    def reset(self) -> None:
        self.orientation = Orientation.NORMAL
        self.placed = False
        self.x = 0.0
        self.y = 0.0


@dataclass
class Sheet:
    """
    One stock sheet and the panels placed on it, in placement order.

    Attributes
    ----------
    width, height : Stock sheet size in mm.
    number        : 1-based sheet number within a packing result.
    panels        : Placed panels.
    area_used     : Sum of the placed panels' areas in mm².
    """

    width: float
    height: float
    number: int = 0
    panels: List[Panel] = field(default_factory=list)
    area_used: float = 0.0

    @property
    def efficiency(self) -> float:
        """Material utilisation as a percentage [0, 100]."""
        total_area = self.width * self.height
        return (self.area_used / total_area * 100) if total_area > 0 else 0.0

    def add(self, panel: Panel) -> None:
        self.panels.append(panel)
        self.area_used += panel.area


@dataclass(frozen=True)
class UnfittablePanel:
    """Warning record for a panel that fits on no sheet in either orientation."""

    name: str
    width: float
    height: float
    stock_width: float
    stock_height: float

    @property
    def message(self) -> str:
        return (f"Panel {self.name} ({self.width:g}x{self.height:g}mm) won't fit on "
                f"{self.stock_width:g}x{self.stock_height:g}mm stock")


@dataclass
class PackingResult:
    sheets: List[Sheet]
    stock_width: float
    stock_height: float
    warnings: List[UnfittablePanel] = field(default_factory=list)

    @property
    def total_sheets(self) -> int:
        return len(self.sheets)

    @property
    def total_area_used(self) -> float:
        return sum(sheet.area_used for sheet in self.sheets)

    @property
    def total_area_available(self) -> float:
        return sum(sheet.width * sheet.height for sheet in self.sheets)

    @property
    def overall_efficiency(self) -> float:
        available = self.total_area_available
        return (self.total_area_used / available * 100) if available > 0 else 0.0

    @property
    def unplaced(self) -> List[str]:
        return [warning.name for warning in self.warnings]

    def placed_panels(self) -> Iterator[Tuple[Sheet, Panel]]:
        for sheet in self.sheets:
            for panel in sheet.panels:
                yield sheet, panel


def rectangles_overlap(x1: float, y1: float, w1: float, h1: float,
                       x2: float, y2: float, w2: float, h2: float) -> bool:
    """Axis-aligned intersection test; touching edges do not overlap."""
    return not (x1 + w1 <= x2 or x2 + w2 <= x1 or y1 + h1 <= y2 or y2 + h2 <= y1)


def _grid(start: float, stop: float, step: float) -> List[float]:
    # Positions are start + i * step, never accumulated, so they stay exact
    # multiples of the spacing.
    if stop < start - EPSILON:
        return []
    n = int(math.floor((stop - start) / step + EPSILON)) + 1
    return [start + i * step for i in range(n)]


class SheetPackingOptimizer:
    """
    Greedy multi-sheet packer with a bottom-left grid search.

    Algorithm overview
    ------------------
    1. Sort panels by area, largest first; equal areas keep the order in
       which they were added.
    2. For each panel try the current sheet unrotated, then rotated 90°.
    3. If neither fits, close the sheet and retry both orientations on a
       fresh one.  A panel that does not fit an empty sheet is reported as
       an :class:`UnfittablePanel` warning and packing continues.

    Placement search scans a grid stepped by the part spacing, starting at
    half the spacing from the sheet edges, and keeps the lowest y (first
    found on ties).  This is a heuristic: it is neither guaranteed optimal
    nor does it revisit earlier sheets.
    """

    def __init__(self, stock_width: float, stock_height: float,
                 part_spacing: float) -> None:
        """
        Parameters
        ----------
        stock_width  : Sheet width in mm.
        stock_height : Sheet height in mm.
        part_spacing : Gap kept between panels; half of it is kept from
                       the sheet edges.  Also the search grid step.
        """
        self.stock_width = _require_positive("stock_width", stock_width)
        self.stock_height = _require_positive("stock_height", stock_height)
        self.part_spacing = _require_positive("part_spacing", part_spacing)
        self._panels: List[Panel] = []

    @classmethod
    def from_config(cls, config: BoxConfig) -> "SheetPackingOptimizer":
        return cls(config.stock_width, config.stock_height, config.part_spacing)

    @property
    def panels(self) -> List[Panel]:
        """Panels in insertion order."""
        return list(self._panels)

    def add_panel(self, name: str, width: float, height: float,
                  quantity: int = 1, kind: Optional[str] = None) -> List[Panel]:
        """
        Queue *quantity* copies of a panel.

        Copies are named ``name_1 .. name_n`` when quantity > 1.  *kind*
        (default: *name*) selects the outline type for rendering.

        Raises
        ------
        InvalidDimension
            If a dimension is not positive or quantity is below 1.
        """
        width = _require_positive(f"{name} width", width)
        height = _require_positive(f"{name} height", height)
        if quantity < 1:
            raise InvalidDimension(f"{name} quantity must be at least 1, got {quantity}")

        added = []
        for i in range(quantity):
            panel = Panel(
                name=f"{name}_{i + 1}" if quantity > 1 else name,
                base_width=width,
                base_height=height,
                kind=kind or name,
                order=len(self._panels),
            )
            self._panels.append(panel)
            added.append(panel)
        return added

    def calculate_layout(self) -> PackingResult:
        """
        Pack every queued panel and return the sheets used.

        Panel records are reset first, so repeated calls on the same
        optimizer produce identical results.

        Returns
        -------
        PackingResult whose sheets each hold at least one panel.  Panels
        that fit nowhere are listed in ``warnings``.
        """
        for panel in self._panels:
            panel.reset()
        ordered = sorted(self._panels, key=lambda p: (-p.area, p.order))

        sheets: List[Sheet] = []
        warnings: List[UnfittablePanel] = []
        current = self._new_sheet(1)

        for panel in ordered:
            placement = self._find_placement(panel, current)

            if placement is None and current.panels:
                sheets.append(current)
                current = self._new_sheet(len(sheets) + 1)
                placement = self._find_placement(panel, current)

            if placement is None:
                warning = UnfittablePanel(panel.name, panel.base_width, panel.base_height,
                                          self.stock_width, self.stock_height)
                warnings.append(warning)
                logger.warning(warning.message)
                continue

            orientation, x, y = placement
            panel.orientation = orientation
            panel.x = x
            panel.y = y
            panel.placed = True
            current.add(panel)
            logger.debug("Placed %s on sheet %d at (%.1f, %.1f)%s", panel.name,
                         current.number, x, y, " rotated" if panel.rotated else "")

        if current.panels:
            sheets.append(current)

        return PackingResult(sheets=sheets, stock_width=self.stock_width,
                             stock_height=self.stock_height, warnings=warnings)

    def try_place_panel(self, panel: Panel, sheet: Sheet,
                        orientation: Orientation = Orientation.NORMAL) -> Optional[Tuple[float, float]]:
        """
        Find the lowest valid position for *panel* on *sheet*.

        Scans x (outer) and y (inner) on the spacing grid.  Neither the
        panel nor the sheet is modified.

        Returns
        -------
        ``(x, y)`` of the chosen origin, or None if no position is valid.
        """
        width, height = panel.size(orientation)
        half = self.part_spacing / 2.0
        best: Optional[Tuple[float, float]] = None

        for x in _grid(half, self.stock_width - width - half, self.part_spacing):
            for y in _grid(half, self.stock_height - height - half, self.part_spacing):
                if self.can_place_at(x, y, width, height, sheet):
                    if best is None or y < best[1]:
                        best = (x, y)
                    # higher y in this column cannot beat this one
                    break
        return best

    def can_place_at(self, x: float, y: float, width: float, height: float,
                     sheet: Sheet) -> bool:
        """
        True if a ``width x height`` rectangle at (x, y) is inside the
        sheet margins and clears every placed panel by the part spacing.
        """
        spacing = self.part_spacing
        half = spacing / 2.0
        if x + width + half > self.stock_width + EPSILON:
            return False
        if y + height + half > self.stock_height + EPSILON:
            return False

        for existing in sheet.panels:
            if rectangles_overlap(x, y, width + spacing, height + spacing,
                                  existing.x, existing.y,
                                  existing.width + spacing, existing.height + spacing):
                return False
        return True

    def build_oriented_outline(self, panel: Panel, generator: PanelPathGenerator) -> Path:
        """Outline of *panel* in its placed orientation, relative to its origin."""
        return self._orient(panel, generator.cutting_path(panel.kind, panel.base_width,
                                                          panel.base_height))

    def build_oriented_paths(self, panel: Panel, generator: PanelPathGenerator) -> List[Path]:
        """Outline and cut-outs of *panel* in its placed orientation."""
        return [self._orient(panel, contour)
                for contour in generator.panel_paths(panel.kind, panel.base_width,
                                                     panel.base_height)]

    def _orient(self, panel: Panel, path: Path) -> Path:
        if panel.rotated:
            return rotate_path(path, panel.base_width)
        return list(path)

    def _find_placement(self, panel: Panel,
                        sheet: Sheet) -> Optional[Tuple[Orientation, float, float]]:
        for orientation in (Orientation.NORMAL, Orientation.ROTATED_90):
            if orientation is Orientation.ROTATED_90 and panel.base_width == panel.base_height:
                continue
            position = self.try_place_panel(panel, sheet, orientation)
            if position is not None:
                return orientation, position[0], position[1]
        return None

    def _new_sheet(self, number: int) -> Sheet:
        return Sheet(width=self.stock_width, height=self.stock_height, number=number)


# ============================================================================
# REPORTING
# ============================================================================

def layout_summary(result: PackingResult) -> List[str]:
    """Human-readable packing summary, one line per entry."""
    waste = result.total_area_available - result.total_area_used
    lines = [
        "Layout Optimization Summary:",
        f"  Total sheets needed: {result.total_sheets}",
        f"  Overall efficiency: {result.overall_efficiency:.2f}%",
        f"  Total area used: {result.total_area_used:.2f}mm²",
        f"  Total area available: {result.total_area_available:.2f}mm²",
        f"  Waste: {waste:.2f}mm²",
    ]
    for sheet in result.sheets:
        lines.append(f"  Sheet {sheet.number}: {sheet.efficiency:.2f}% efficient "
                     f"({len(sheet.panels)} panels)")
        for panel in sheet.panels:
            marker = " (rotated)" if panel.rotated else ""
            lines.append(f"    • {panel.name}: {panel.width:.1f}x{panel.height:.1f}mm "
                         f"at ({panel.x:.1f}, {panel.y:.1f}){marker}")
    for warning in result.warnings:
        lines.append(f"  Warning: {warning.message}")
    return lines


def optimization_suggestions(result: PackingResult) -> List[str]:
    suggestions = []
    for sheet in result.sheets:
        if sheet.efficiency < 50:
            suggestions.append(
                f"Sheet {sheet.number} has low efficiency ({sheet.efficiency:.2f}%). "
                "Consider combining with another sheet or adjusting part spacing.")
    if result.warnings:
        suggestions.append(
            f"{len(result.warnings)} panels don't fit on standard stock. "
            "Consider larger stock or splitting panels.")
    if result.sheets and result.overall_efficiency < 70:
        suggestions.append(
            f"Overall efficiency is {result.overall_efficiency:.2f}%. "
            "Consider optimizing panel sizes or stock dimensions.")
    return suggestions


# ============================================================================
# SVG OUTPUT
# ============================================================================

def _insert_metadata(svg_string: str, lines: Sequence[str]) -> str:
    comment = "\n" + "\n".join(f"<!-- {line} -->" for line in lines) + "\n"
    if svg_string.startswith('<?xml'):
        xml_decl_end = svg_string.find('?>') + 2
        return svg_string[:xml_decl_end] + comment + svg_string[xml_decl_end:]
    return comment + svg_string


class PanelSVGGenerator:
    """
    Render a single panel as an SVG cutting file.

    The canvas is the panel footprint plus the joint depth and a fixed
    margin on every side, so protruding tabs stay visible.  Outline and
    cut-outs are black hairline paths; relief circles are red.
    """

    MARGIN = 10.0
    COLOR_CUT = "black"
    COLOR_RELIEF = "red"

    def __init__(self, config: BoxConfig,
                 layouts: Optional[Dict[str, FingerLayout]] = None) -> None:
        self.config = config
        self.paths = PanelPathGenerator(config, layouts)

    def generate(self, panel_type: str) -> str:
        """Return the SVG document for *panel_type* as a string."""
        width, height = self.paths.panel_dimensions(panel_type)
        pad = self.MARGIN + self.paths.depth
        canvas_w = width + 2 * pad
        canvas_h = height + 2 * pad

        dwg = svgwrite.Drawing(size=(f"{_fmt(canvas_w)}mm", f"{_fmt(canvas_h)}mm"),
                               viewBox=f"0 0 {_fmt(canvas_w)} {_fmt(canvas_h)}")

        cut_group = dwg.g(id='cut_paths')
        for contour in self.paths.panel_paths(panel_type):
            cut_group.add(dwg.path(d=path_to_svg_d(contour, pad, pad), fill='none',
                                   stroke=self.COLOR_CUT, stroke_width=0.5))
        dwg.add(cut_group)

        circles = self.paths.panel_reliefs(panel_type)
        if circles:
            relief_group = dwg.g(id='relief')
            for circle in circles:
                relief_group.add(dwg.circle(center=(circle.cx + pad, circle.cy + pad),
                                            r=circle.r, fill='none',
                                            stroke=self.COLOR_RELIEF, stroke_width=0.3))
            dwg.add(relief_group)

        return _insert_metadata(dwg.tostring(), [
            "Finger-Joint Box Maker",
            f"Panel: {panel_type}",
            f"Size: {width:.2f}x{height:.2f}mm",
            f"Relief: {self.config.relief_style.name}",
        ])


class SheetSVGGenerator:
    """
    Render one packed sheet as a cutting-layout diagram.

    Groups in draw order (back to front):

    =========  ===================================================
    Group id   Content
    =========  ===================================================
    grid       Light reference lines every 100 mm.
    stock      Thick outline of the stock sheet.
    panels     Alternating-colour footprint rectangles.
    cut_paths  Oriented panel outlines and cut-outs.
    relief     Relief circles (only with the FILLET_45 style).
    labels     Panel name, size, rotation marker and index.
    info       Title, stock size, efficiency, part count and legend.
    =========  ===================================================
    """

    MARGIN = 20.0
    INFO_BAND = 50.0
    GRID_STEP = 100
    COLOR_EVEN = "#e3f2fd"
    COLOR_ODD = "#f3e5f5"
    COLOR_EDGE = "#1976d2"

    def __init__(self, config: BoxConfig, optimizer: SheetPackingOptimizer,
                 generator: Optional[PanelPathGenerator] = None) -> None:
        self.config = config
        self.optimizer = optimizer
        self.generator = generator or PanelPathGenerator(config)

    def generate(self, sheet: Sheet) -> str:
        """Return the SVG document for *sheet* as a string."""
        m = self.MARGIN
        canvas_w = sheet.width + 2 * m
        canvas_h = sheet.height + 2 * m + self.INFO_BAND

        dwg = svgwrite.Drawing(size=(f"{_fmt(canvas_w)}mm", f"{_fmt(canvas_h)}mm"),
                               viewBox=f"0 0 {_fmt(canvas_w)} {_fmt(canvas_h)}")
        dwg.add(dwg.rect(insert=(0, 0), size=(canvas_w, canvas_h), fill="#f8f9fa", stroke="none"))

        grid = dwg.g(id='grid')
        for x in range(0, int(sheet.width) + 1, self.GRID_STEP):
            grid.add(dwg.line(start=(x + m, m), end=(x + m, sheet.height + m),
                              stroke="#e9ecef", stroke_width=0.5))
        for y in range(0, int(sheet.height) + 1, self.GRID_STEP):
            grid.add(dwg.line(start=(m, y + m), end=(sheet.width + m, y + m),
                              stroke="#e9ecef", stroke_width=0.5))
        dwg.add(grid)

        stock = dwg.g(id='stock')
        stock.add(dwg.rect(insert=(m, m), size=(sheet.width, sheet.height),
                           fill="white", stroke="black", stroke_width=3.0))
        dwg.add(stock)

        panels = dwg.g(id='panels')
        cuts = dwg.g(id='cut_paths')
        relief = dwg.g(id='relief')
        labels = dwg.g(id='labels')
        for index, panel in enumerate(sheet.panels):
            ox, oy = panel.x + m, panel.y + m
            panels.add(dwg.rect(insert=(ox, oy), size=(panel.width, panel.height),
                                fill=self.COLOR_EVEN if index % 2 == 0 else self.COLOR_ODD,
                                stroke=self.COLOR_EDGE, stroke_width=2.0))

            contours = self.optimizer.build_oriented_paths(panel, self.generator)
            for n, contour in enumerate(contours):
                cuts.add(dwg.path(d=path_to_svg_d(contour, ox, oy), fill='none',
                                  stroke='black', stroke_width=0.5))
                for circle in self.generator.relief_circles(contour, hole=n > 0):
                    relief.add(dwg.circle(center=(circle.cx + ox, circle.cy + oy), r=circle.r,
                                          fill='none', stroke='red', stroke_width=0.3))

            self._add_labels(dwg, labels, panel, index, ox, oy)

        dwg.add(panels)
        dwg.add(cuts)
        if relief.elements:
            dwg.add(relief)
        dwg.add(labels)
        dwg.add(self._info_group(dwg, sheet))

        return _insert_metadata(dwg.tostring(), [
            "Finger-Joint Box Maker",
            f"Sheet: {sheet.number}",
            f"Stock: {sheet.width:g}x{sheet.height:g}mm",
            f"Panels: {len(sheet.panels)}",
            f"Efficiency: {sheet.efficiency:.1f}%",
        ])

    def _add_labels(self, dwg, group, panel: Panel, index: int, ox: float, oy: float) -> None:
        cx = ox + panel.width / 2
        cy = oy + panel.height / 2
        group.add(dwg.text(panel.name, insert=(cx, cy), text_anchor="middle",
                           font_family="Arial", font_size=12, font_weight="bold",
                           fill=self.COLOR_EDGE))
        group.add(dwg.text(f"{panel.width:.1f}×{panel.height:.1f}mm", insert=(cx, cy + 15),
                           text_anchor="middle", font_family="Arial", font_size=10,
                           fill="#424242"))
        if panel.rotated:
            group.add(dwg.text("↻ ROTATED", insert=(cx, cy - 15), text_anchor="middle",
                               font_family="Arial", font_size=8, fill="#d32f2f"))
        group.add(dwg.text(str(index + 1), insert=(ox + 5, oy + 15), font_family="Arial",
                           font_size=10, font_weight="bold", fill="white"))

    def _info_group(self, dwg, sheet: Sheet):
        m = self.MARGIN
        info = dwg.g(id='info')
        info.add(dwg.text(f"CUTTING LAYOUT - Sheet {sheet.number}",
                          insert=(sheet.width / 2 + m, m - 5), text_anchor="middle",
                          font_family="Arial", font_size=16, font_weight="bold", fill="black"))

        info_y = sheet.height + m + 15
        for i, line in enumerate((f"Stock: {sheet.width:g}×{sheet.height:g}mm",
                                  f"Efficiency: {sheet.efficiency:.2f}%",
                                  f"Parts: {len(sheet.panels)}")):
            info.add(dwg.text(line, insert=(m + 10, info_y + 15 * i), font_family="Arial",
                              font_size=12, fill="black"))

        legend_x = max(m + 150, sheet.width - 200 + m)
        info.add(dwg.text("Legend:", insert=(legend_x, info_y), font_family="Arial",
                          font_size=12, font_weight="bold", fill="black"))
        for i, (color, label) in enumerate(((self.COLOR_EVEN, "Even panels"),
                                            (self.COLOR_ODD, "Odd panels"))):
            y = info_y + 5 + 15 * i
            info.add(dwg.rect(insert=(legend_x, y), size=(15, 10), fill=color,
                              stroke=self.COLOR_EDGE, stroke_width=1.0))
            info.add(dwg.text(label, insert=(legend_x + 20, y + 7), font_family="Arial",
                              font_size=10, fill="black"))
        return info


# ============================================================================
# MAIN FUNCTION
# ============================================================================

def panel_specs(config: BoxConfig) -> List[Tuple[str, float, float]]:
    """
    Enabled panels as ``(name, width, height)``: box walls and bottom,
    then the lid, then the dividers.
    """
    c = config
    specs = [
        ('box_bottom', c.box_length, c.box_width),
        ('box_front', c.box_length, c.box_height),
        ('box_back', c.box_length, c.box_height),
        ('box_left', c.box_width, c.box_height),
        ('box_right', c.box_width, c.box_height),
    ]
    if c.enable_lid:
        specs += [
            ('lid_top', c.lid_length, c.lid_width),
            ('lid_front', c.lid_length, c.lid_height),
            ('lid_back', c.lid_length, c.lid_height),
            ('lid_left', c.lid_width, c.lid_height),
            ('lid_right', c.lid_width, c.lid_height),
        ]
    if c.x_divider_enabled:
        specs.append(('x_divider', c.box_length, c.box_height))
    if c.y_divider_enabled:
        specs.append(('y_divider', c.box_width, c.box_height))
    return specs


def generate_box_files(config: BoxConfig, output_dir: str = "output") -> List[str]:
    """
    Full pipeline: finger layouts → sheet packing → SVG files.

    Writes ``cutting_layout_sheet_<n>.svg`` for every packed sheet and
    ``<panel>.svg`` for every enabled panel into *output_dir* (created
    when missing).

    Parameters
    ----------
    config     : Box configuration; validated before use.
    output_dir : Destination directory.

    Returns
    -------
    List of written file paths, layouts first.
    """
    config.validate()

    print("=" * 70)
    print("FINGER-JOINT BOX MAKER")
    print("=" * 70)
    print(f"\nBox: {config.box_length:g}×{config.box_width:g}×{config.box_height:g}mm, "
          f"{config.stock_thickness:g}mm stock, {config.kerf:g}mm kerf")

    layouts = FingerJointCalculator(config).calculate_all_layouts()
    print("\nCalculated finger layouts:")
    for axis, layout in layouts.items():
        print(f"  {axis.replace('_', ' ').capitalize()}: {layout.count} fingers "
              f"@ {layout.width:.2f}mm each")

    print(f"\n{'─' * 70}")
    print("OPTIMIZING LAYOUT FOR STOCK MATERIAL")
    print(f"{'─' * 70}")
    optimizer = SheetPackingOptimizer.from_config(config)
    for name, width, height in panel_specs(config):
        optimizer.add_panel(name, width, height)
    result = optimizer.calculate_layout()
    for line in layout_summary(result):
        print(line)
    suggestions = optimization_suggestions(result)
    if suggestions:
        print("\nOptimization suggestions:")
        for suggestion in suggestions:
            print(f"  • {suggestion}")

    os.makedirs(output_dir, exist_ok=True)
    generator = PanelPathGenerator(config, layouts)

    print(f"\n{'─' * 70}")
    print("GENERATING SVG FILES")
    print(f"{'─' * 70}")
    output_files = []

    sheet_svg = SheetSVGGenerator(config, optimizer, generator)
    for sheet in result.sheets:
        filename = os.path.join(output_dir, f"cutting_layout_sheet_{sheet.number}.svg")
        with open(filename, 'w', encoding='utf-8') as f:
            f.write(sheet_svg.generate(sheet))
        output_files.append(filename)
        print(f"  📄 {os.path.basename(filename)}")

    panel_svg = PanelSVGGenerator(config, layouts)
    for name, _, _ in panel_specs(config):
        filename = os.path.join(output_dir, f"{name}.svg")
        with open(filename, 'w', encoding='utf-8') as f:
            f.write(panel_svg.generate(name))
        output_files.append(filename)
        print(f"  📄 {os.path.basename(filename)}")

    print(f"\n{'═' * 70}")
    print(f"✅ SUCCESS: Generated {len(output_files)} SVG file(s) in {output_dir}")
    print(f"{'═' * 70}\n")

    return output_files


# ============================================================================
# CLI INTERFACE
# ============================================================================

# argparse dest -> BoxConfig field
_CLI_OVERRIDES = {
    'length': 'box_length',
    'width': 'box_width',
    'height': 'box_height',
    'thickness': 'stock_thickness',
    'stock_width': 'stock_width',
    'stock_height': 'stock_height',
    'finger_width': 'finger_width',
    'kerf': 'kerf',
    'bit_diameter': 'bit_diameter',
    'lid': 'enable_lid',
    'dividers': 'enable_dividers',
    'lid_height': 'lid_height',
    'lid_tolerance': 'lid_tolerance',
    'spacing': 'part_spacing',
    'relief': 'relief_style',
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="boxmaker",
        description="Generate finger-jointed box panels and sheet cutting layouts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  boxmaker -l 100 -w 80 -H 40 -t 6
  boxmaker --preset "Tool Box" -o toolbox
  boxmaker --config boxmaker.conf --lid --dividers

All measurements are in millimetres.  Command-line values override the
preset, which overrides the configuration file.
        """
    )
    parser.add_argument("--config", metavar="FILE", help="INI configuration file")
    parser.add_argument("--preset", choices=sorted(PRESETS), help="Start from a preset box")

    box = parser.add_argument_group("box dimensions")
    box.add_argument("-l", "--length", type=float, help="Box length (mm)")
    box.add_argument("-w", "--width", type=float, help="Box width (mm)")
    box.add_argument("-H", "--height", type=float, help="Box height (mm)")

    material = parser.add_argument_group("material")
    material.add_argument("-t", "--thickness", type=float, help="Stock thickness (mm)")
    material.add_argument("--stock-width", type=float, help="Stock sheet width (mm)")
    material.add_argument("--stock-height", type=float, help="Stock sheet height (mm)")
    material.add_argument("-f", "--finger-width", type=float, help="Target finger width (mm)")
    material.add_argument("-k", "--kerf", type=float, help="Kerf compensation (mm)")
    material.add_argument("-b", "--bit-diameter", type=float, help="End mill diameter (mm)")
    material.add_argument("--relief", choices=[s.name.lower() for s in ReliefStyle],
                          help="Inside-corner relief style")

    features = parser.add_argument_group("features")
    features.add_argument("--lid", action=argparse.BooleanOptionalAction, default=None,
                          help="Enable/disable the lid")
    features.add_argument("--dividers", action=argparse.BooleanOptionalAction, default=None,
                          help="Enable/disable crossing dividers")
    features.add_argument("--lid-height", type=float, help="Lid height (mm)")
    features.add_argument("--lid-tolerance", type=float, help="Lid tolerance (mm)")

    output = parser.add_argument_group("output")
    output.add_argument("-o", "--output", default="output", help="Output directory (default: output)")
    output.add_argument("-s", "--spacing", type=float, help="Part spacing (mm)")
    output.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> BoxConfig:
    """Combine configuration file, preset and command-line overrides."""
    if args.config:
        if not os.path.exists(args.config):
            raise FileNotFoundError(args.config)
        config = config_from_parser(load_config(args.config))
    else:
        config = BoxConfig()
    if args.preset:
        config = config.replace(**PRESETS[args.preset])
    overrides = {field_name: getattr(args, dest)
                 for dest, field_name in _CLI_OVERRIDES.items()
                 if getattr(args, dest) is not None}
    if overrides:
        config = config.replace(**overrides)
    return config.validate()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = config_from_args(args)
        generate_box_files(config, args.output)
    except FileNotFoundError as e:
        print(f"\n❌ Error: File '{e.filename or e}' not found")
        return 1
    except (BoxMakerError, ValueError) as e:
        print(f"\n❌ Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

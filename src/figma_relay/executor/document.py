"""In-memory design document.

A small scene graph with the shape the command handlers expect from a
live design tool: a DOCUMENT root holding PAGEs, pages holding
RECTANGLE / TEXT / FRAME / COMPONENT nodes, a selection, local styles and
a font registry. Text edits require the node's font to be loaded first,
and loading is asynchronous.
"""

from __future__ import annotations

import asyncio
import io
import itertools
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple
from xml.sax.saxutils import escape

from PIL import Image, ImageDraw

logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    DOCUMENT = "DOCUMENT"
    PAGE = "PAGE"
    FRAME = "FRAME"
    RECTANGLE = "RECTANGLE"
    TEXT = "TEXT"
    COMPONENT = "COMPONENT"


class FontName(NamedTuple):
    family: str
    style: str


DEFAULT_FONT = FontName("Inter", "Regular")

DEFAULT_FONTS = frozenset(
    {
        FontName("Inter", "Regular"),
        FontName("Inter", "Medium"),
        FontName("Inter", "Bold"),
        FontName("Roboto", "Regular"),
    }
)

EXPORT_FORMATS = ("PNG", "SVG", "PDF", "JPG")

# Export format -> Pillow save format
_RASTER_FORMATS = {"PNG": "PNG", "JPG": "JPEG", "PDF": "PDF"}

# Nodes of these types have no geometry or paints of their own
_CONTAINER_TYPES = (NodeType.DOCUMENT, NodeType.PAGE)


@dataclass
class Color:
    """RGBA color, every component in [0, 1]."""

    r: float
    g: float
    b: float
    a: float = 1.0

    def __post_init__(self) -> None:
        for channel in ("r", "g", "b", "a"):
            value = getattr(self, channel)
            if not 0 <= value <= 1:
                raise ValueError(f"Color component {channel}={value} outside [0, 1]")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Color:
        try:
            return cls(
                r=float(data["r"]),
                g=float(data["g"]),
                b=float(data["b"]),
                a=float(data.get("a", 1.0)),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid color: {data!r}") from e

    def to_hex(self) -> str:
        return rgb_to_hex(self.r, self.g, self.b)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Convert 0-1 float channels to a ``#rrggbb`` string."""
    return "#" + "".join(f"{round(v * 255):02x}" for v in (r, g, b))


@dataclass
class Paint:
    """A solid fill."""

    color: Color
    type: str = "SOLID"

    @property
    def opacity(self) -> float:
        return self.color.a


@dataclass
class Style:
    id: str
    name: str
    type: str  # PAINT | TEXT | EFFECT | GRID


@dataclass(eq=False)
class Node:
    """A scene graph node. Capabilities depend on ``type``."""

    id: str
    type: NodeType
    name: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    visible: bool = True
    fills: list[Paint] = field(default_factory=list)
    characters: str = ""
    font_size: float = 16.0
    font_name: FontName = DEFAULT_FONT
    description: str = ""
    children: list[Node] = field(default_factory=list)
    parent: Node | None = field(default=None, repr=False)

    @property
    def has_geometry(self) -> bool:
        """Whether the node supports position, size and resize."""
        return self.type not in _CONTAINER_TYPES

    @property
    def has_fills(self) -> bool:
        return self.type not in _CONTAINER_TYPES

    @property
    def has_children(self) -> bool:
        return self.type in (*_CONTAINER_TYPES, NodeType.FRAME, NodeType.COMPONENT)

    def resize(self, width: float, height: float) -> None:
        if not self.has_geometry:
            raise ValueError(f"Node {self.id} does not support resize")
        if width < 0 or height < 0:
            raise ValueError("Width and height must be non-negative")
        self.width = float(width)
        self.height = float(height)

    def walk(self) -> Iterator[Node]:
        """Depth-first iteration over this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()


class Document:
    """Live document state operated on by the command handlers."""

    def __init__(
        self,
        name: str = "Untitled",
        available_fonts: frozenset[FontName] | set[FontName] | None = None,
        font_load_delay: float = 0.0,
    ) -> None:
        self._page_ids = itertools.count(1)
        self._node_ids = itertools.count(2)
        self._style_ids = itertools.count(1)
        self._nodes: dict[str, Node] = {}

        self.root = Node(id="0:0", type=NodeType.DOCUMENT, name=name)
        self._nodes[self.root.id] = self.root

        self.available_fonts = frozenset(available_fonts or DEFAULT_FONTS)
        self.font_load_delay = font_load_delay
        self._loaded_fonts: set[FontName] = set()

        self.styles: dict[str, list[Style]] = {"PAINT": [], "TEXT": [], "EFFECT": [], "GRID": []}
        self.selection: list[Node] = []
        self.viewport: list[str] = []
        self.current_page = self.create_page("Page 1")

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_node_by_id(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def find_all(self, predicate: Callable[[Node], bool]) -> list[Node]:
        """All nodes below the root matching ``predicate``."""
        return [n for n in self.root.walk() if n is not self.root and predicate(n)]

    @property
    def pages(self) -> list[Node]:
        return list(self.root.children)

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    def create_page(self, name: str) -> Node:
        page = Node(id=f"0:{next(self._page_ids)}", type=NodeType.PAGE, name=name)
        self.append_child(self.root, page)
        return page

    def _create(self, node_type: NodeType, name: str, **attrs: Any) -> Node:
        node = Node(id=f"1:{next(self._node_ids)}", type=node_type, name=name, **attrs)
        self.append_child(self.current_page, node)
        return node

    def create_rectangle(self) -> Node:
        return self._create(
            NodeType.RECTANGLE,
            "Rectangle",
            width=100.0,
            height=100.0,
            fills=[Paint(Color(0.85, 0.85, 0.85))],
        )

    def create_frame(self) -> Node:
        return self._create(
            NodeType.FRAME, "Frame", width=100.0, height=100.0, fills=[Paint(Color(1, 1, 1))]
        )

    def create_text(self) -> Node:
        return self._create(NodeType.TEXT, "Text", fills=[Paint(Color(0, 0, 0))])

    def create_component(self, name: str, description: str = "") -> Node:
        return self._create(
            NodeType.COMPONENT, name, width=100.0, height=100.0, description=description
        )

    def append_child(self, parent: Node, child: Node) -> None:
        if not parent.has_children:
            raise ValueError(f"Node {parent.id} cannot have children")
        if child.parent is not None:
            child.parent.children.remove(child)
        child.parent = parent
        parent.children.append(child)
        for node in child.walk():
            self._nodes[node.id] = node

    def remove(self, node: Node) -> None:
        """Remove a node and its subtree from the document."""
        if node.type in _CONTAINER_TYPES:
            raise ValueError(f"Cannot remove {node.type.value} node {node.id}")
        if node.parent is not None:
            node.parent.children.remove(node)
            node.parent = None
        removed = {n.id for n in node.walk()}
        for node_id in removed:
            self._nodes.pop(node_id, None)
        self.selection = [n for n in self.selection if n.id not in removed]

    def select(self, nodes: list[Node]) -> None:
        self.selection = list(nodes)

    def scroll_and_zoom_into_view(self, nodes: list[Node]) -> None:
        self.viewport = [n.id for n in nodes]

    def add_style(self, style_type: str, name: str) -> Style:
        style_type = style_type.upper()
        if style_type not in self.styles:
            raise ValueError(f"Unknown style type: {style_type}")
        style = Style(id=f"S:{next(self._style_ids)}", name=name, type=style_type)
        self.styles[style_type].append(style)
        return style

    # -------------------------------------------------------------------------
    # Text
    # -------------------------------------------------------------------------

    async def load_font(self, font: FontName) -> None:
        """Make a font available for text edits.

        Raises:
            ValueError: If the font is not installed
        """
        if font in self._loaded_fonts:
            return
        if font not in self.available_fonts:
            raise ValueError(f"Font not available: {font.family} {font.style}")
        await asyncio.sleep(self.font_load_delay)
        self._loaded_fonts.add(font)
        logger.debug(f"Loaded font {font.family} {font.style}")

    def is_font_loaded(self, font: FontName) -> bool:
        return font in self._loaded_fonts

    def set_characters(self, node: Node, text: str) -> None:
        if node.type != NodeType.TEXT:
            raise ValueError(f"Node {node.id} is not a text node")
        if not self.is_font_loaded(node.font_name):
            raise ValueError(
                f"Font {node.font_name.family} {node.font_name.style} must be loaded "
                "before editing text"
            )
        node.characters = text

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    async def export_node(self, node: Node, format: str = "PNG", scale: float = 1.0) -> bytes:
        """Export a node's rendering.

        SVG is rendered as markup; PNG, JPG and PDF are rasterized with
        Pillow onto a white canvas at the requested scale.

        Raises:
            ValueError: For unknown formats, a bad scale or a node without
                geometry
        """
        fmt = format.upper()
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unknown export format: {format}")
        if scale <= 0:
            raise ValueError("Export scale must be positive")
        if not node.has_geometry:
            raise ValueError(f"Node {node.id} cannot be exported")

        await asyncio.sleep(0)
        if fmt == "SVG":
            return _render_svg(node, scale).encode("utf-8")
        return _render_raster(node, scale, _RASTER_FORMATS[fmt])


def _fill_attrs(node: Node) -> str:
    if not node.fills:
        return 'fill="none"'
    paint = node.fills[-1]
    return f'fill="{paint.color.to_hex()}" fill-opacity="{paint.opacity:g}"'


def _render_element(node: Node, dx: float, dy: float) -> list[str]:
    x, y = node.x - dx, node.y - dy
    if node.type == NodeType.TEXT:
        return [
            f'<text x="{x:g}" y="{y + node.font_size:g}" font-family="{escape(node.font_name.family)}" '
            f'font-size="{node.font_size:g}" {_fill_attrs(node)}>{escape(node.characters)}</text>'
        ]

    parts = [
        f'<rect x="{x:g}" y="{y:g}" width="{node.width:g}" height="{node.height:g}" {_fill_attrs(node)}/>'
    ]
    # Children of frames are positioned relative to the frame
    for child in node.children:
        parts.extend(_render_element(child, dx - node.x, dy - node.y))
    return parts


def _render_svg(node: Node, scale: float) -> str:
    width = node.width * scale
    height = node.height * scale
    body = "".join(_render_element(node, node.x, node.y))
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width:g}" height="{height:g}" '
        f'viewBox="0 0 {node.width:g} {node.height:g}">{body}</svg>'
    )


def _fill_rgba(node: Node) -> tuple[int, int, int, int] | None:
    if not node.fills:
        return None
    color = node.fills[-1].color
    r, g, b, a = (round(v * 255) for v in (color.r, color.g, color.b, color.a))
    return (r, g, b, a)


def _draw_element(
    draw: ImageDraw.ImageDraw, node: Node, dx: float, dy: float, scale: float
) -> None:
    x, y = (node.x - dx) * scale, (node.y - dy) * scale
    fill = _fill_rgba(node)
    if node.type == NodeType.TEXT:
        if fill is not None and node.characters:
            draw.text((x, y), node.characters, fill=fill)
        return

    width, height = node.width * scale, node.height * scale
    if fill is not None and width >= 1 and height >= 1:
        draw.rectangle([x, y, x + width - 1, y + height - 1], fill=fill)
    for child in node.children:
        _draw_element(draw, child, dx - node.x, dy - node.y, scale)


def _render_raster(node: Node, scale: float, pil_format: str) -> bytes:
    size = (max(1, round(node.width * scale)), max(1, round(node.height * scale)))
    image = Image.new("RGB", size, (255, 255, 255))
    # RGBA drawing mode blends translucent fills onto the canvas
    _draw_element(ImageDraw.Draw(image, "RGBA"), node, node.x, node.y, scale)

    buffer = io.BytesIO()
    image.save(buffer, format=pil_format)
    return buffer.getvalue()

"""Design command handlers.

Each handler takes the request ``params`` dict (camelCase keys, as sent by
the tool layer) and returns a JSON-serializable result. Handlers raise on
failure; the executor turns the exception message into the reply's
``error`` field.
"""

from __future__ import annotations

from typing import Any

from .dispatcher import Handler
from .document import DEFAULT_FONT, Color, Document, Node, NodeType, Paint


def _require(params: dict[str, Any], key: str) -> Any:
    if params.get(key) is None:
        raise ValueError(f"Missing required parameter: {key}")
    return params[key]


def _optional(params: dict[str, Any], key: str, default: Any) -> Any:
    """Value for ``key``, or ``default`` when absent or null."""
    value = params.get(key)
    return default if value is None else value


def _position(params: dict[str, Any]) -> tuple[float, float]:
    return float(_optional(params, "x", 0)), float(_optional(params, "y", 0))


def _size(params: dict[str, Any], width: float, height: float) -> tuple[float, float]:
    w = float(_optional(params, "width", width))
    h = float(_optional(params, "height", height))
    if w < 0 or h < 0:
        raise ValueError("Width and height must be non-negative")
    return w, h


def _fills(color: dict[str, Any] | None) -> list[Paint]:
    return [Paint(Color.from_dict(color))] if color else []


def serialize_node(node: Node) -> dict[str, Any]:
    """JSON view of a node: geometry, fills as hex colors, children recursively."""
    data: dict[str, Any] = {
        "id": node.id,
        "name": node.name,
        "type": node.type.value,
    }
    if node.has_geometry:
        data.update(x=node.x, y=node.y, width=node.width, height=node.height)
    data["visible"] = node.visible

    if node.has_fills:
        data["fills"] = [
            {"type": paint.type, "color": paint.color.to_hex(), "opacity": paint.opacity}
            for paint in node.fills
        ]

    if node.type == NodeType.TEXT:
        data["characters"] = node.characters
        data["fontSize"] = node.font_size

    if node.has_children:
        data["childCount"] = len(node.children)
        data["children"] = [serialize_node(child) for child in node.children]

    return data


class DocumentCommands:
    """Command handlers bound to one live document."""

    def __init__(self, document: Document) -> None:
        self.document = document

    def handlers(self) -> dict[str, Handler]:
        """The dispatch table: command name -> handler."""
        return {
            "get_document_info": self.get_document_info,
            "get_selection": self.get_selection,
            "get_node_info": self.get_node_info,
            "get_nodes_info": self.get_nodes_info,
            "get_styles": self.get_styles,
            "get_local_components": self.get_local_components,
            "create_rectangle": self.create_rectangle,
            "create_text": self.create_text,
            "create_frame": self.create_frame,
            "set_fill_color": self.set_fill_color,
            "move_node": self.move_node,
            "resize_node": self.resize_node,
            "delete_node": self.delete_node,
            "set_text_content": self.set_text_content,
            "export_node_as_image": self.export_node_as_image,
        }

    def _node(self, node_id: str) -> Node:
        node = self.document.get_node_by_id(node_id)
        if node is None:
            raise ValueError(f"Node not found: {node_id}")
        return node

    def _focus(self, node: Node) -> None:
        self.document.select([node])
        self.document.scroll_and_zoom_into_view([node])

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_document_info(self, params: dict[str, Any]) -> dict[str, Any]:
        doc = self.document
        return {
            "id": doc.root.id,
            "name": doc.root.name,
            "type": doc.root.type.value,
            "pageCount": len(doc.pages),
            "pages": [{"id": p.id, "name": p.name} for p in doc.pages],
            "currentPage": {"id": doc.current_page.id, "name": doc.current_page.name},
        }

    def get_selection(self, params: dict[str, Any]) -> dict[str, Any]:
        selection = self.document.selection
        return {"count": len(selection), "nodes": [serialize_node(n) for n in selection]}

    def get_node_info(self, params: dict[str, Any]) -> dict[str, Any]:
        return serialize_node(self._node(_require(params, "nodeId")))

    def get_nodes_info(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        results = []
        for node_id in _require(params, "nodeIds"):
            node = self.document.get_node_by_id(node_id)
            results.append(serialize_node(node) if node else {"id": node_id, "error": "Not found"})
        return results

    def get_styles(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            kind.lower(): [{"id": s.id, "name": s.name, "type": s.type} for s in styles]
            for kind, styles in self.document.styles.items()
        }

    def get_local_components(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        components = self.document.find_all(lambda n: n.type == NodeType.COMPONENT)
        return [{"id": n.id, "name": n.name, "description": n.description} for n in components]

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    # Parameters are validated before the node is created so a bad request
    # never leaves a half-built node in the document.

    def create_rectangle(self, params: dict[str, Any]) -> dict[str, Any]:
        x, y = _position(params)
        width, height = _size(params, 100, 100)
        fills = _fills(params.get("color"))

        rect = self.document.create_rectangle()
        rect.x, rect.y = x, y
        rect.resize(width, height)
        if params.get("name"):
            rect.name = params["name"]
        if fills:
            rect.fills = fills
        self._focus(rect)
        return serialize_node(rect)

    async def create_text(self, params: dict[str, Any]) -> dict[str, Any]:
        x, y = _position(params)
        font_size = float(_optional(params, "fontSize", 16))
        if font_size <= 0:
            raise ValueError("fontSize must be positive")
        fills = _fills(params.get("color"))

        await self.document.load_font(DEFAULT_FONT)
        text = self.document.create_text()
        text.x, text.y = x, y
        self.document.set_characters(text, str(_optional(params, "text", "Hello")))
        text.font_size = font_size
        if params.get("name"):
            text.name = params["name"]
        if fills:
            text.fills = fills
        self._focus(text)
        return serialize_node(text)

    def create_frame(self, params: dict[str, Any]) -> dict[str, Any]:
        x, y = _position(params)
        width, height = _size(params, 375, 812)
        fills = _fills(params.get("backgroundColor"))

        frame = self.document.create_frame()
        frame.x, frame.y = x, y
        frame.resize(width, height)
        if params.get("name"):
            frame.name = params["name"]
        if fills:
            frame.fills = fills
        self._focus(frame)
        return serialize_node(frame)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def set_fill_color(self, params: dict[str, Any]) -> dict[str, Any]:
        node_id = _require(params, "nodeId")
        node = self._node(node_id)
        if not node.has_fills:
            raise ValueError("Node does not support fills")
        node.fills = [Paint(Color.from_dict(_require(params, "color")))]
        return {"success": True, "nodeId": node_id}

    def move_node(self, params: dict[str, Any]) -> dict[str, Any]:
        node_id = _require(params, "nodeId")
        x, y = _require(params, "x"), _require(params, "y")
        node = self._node(node_id)
        if not node.has_geometry:
            raise ValueError("Node does not support position")
        node.x, node.y = float(x), float(y)
        return {"success": True, "nodeId": node_id, "x": x, "y": y}

    def resize_node(self, params: dict[str, Any]) -> dict[str, Any]:
        node_id = _require(params, "nodeId")
        width, height = _require(params, "width"), _require(params, "height")
        self._node(node_id).resize(width, height)
        return {"success": True, "nodeId": node_id, "width": width, "height": height}

    def delete_node(self, params: dict[str, Any]) -> dict[str, Any]:
        node_id = _require(params, "nodeId")
        self.document.remove(self._node(node_id))
        return {"success": True, "nodeId": node_id}

    async def set_text_content(self, params: dict[str, Any]) -> dict[str, Any]:
        node_id = _require(params, "nodeId")
        text = _require(params, "text")
        node = self.document.get_node_by_id(node_id)
        if node is None or node.type != NodeType.TEXT:
            raise ValueError(f"Text node not found: {node_id}")
        await self.document.load_font(node.font_name)
        self.document.set_characters(node, str(text))
        return {"success": True, "nodeId": node_id}

    async def export_node_as_image(self, params: dict[str, Any]) -> dict[str, Any]:
        node_id = _require(params, "nodeId")
        fmt = _optional(params, "format", "PNG")
        scale = _optional(params, "scale", 1)
        data = await self.document.export_node(self._node(node_id), fmt, float(scale))
        return {"success": True, "nodeId": node_id, "format": fmt, "byteLength": len(data)}

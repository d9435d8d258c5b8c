"""Unit tests for the design command handlers.

Handlers are driven through ``create_document_executor`` so failures are
checked the way the remote caller sees them: as reply error strings.
"""

from __future__ import annotations

from typing import Any

import pytest

from figma_relay.executor import Document, create_document_executor
from figma_relay.protocol import CommandReply, CommandRequest

ALL_COMMANDS = [
    "create_frame",
    "create_rectangle",
    "create_text",
    "delete_node",
    "export_node_as_image",
    "get_document_info",
    "get_local_components",
    "get_node_info",
    "get_nodes_info",
    "get_selection",
    "get_styles",
    "move_node",
    "resize_node",
    "set_fill_color",
    "set_text_content",
]


class Harness:
    """Runs commands against one document."""

    def __init__(self) -> None:
        self.document = Document("Test file")
        self.executor = create_document_executor(self.document)

    async def reply(self, command: str, params: dict[str, Any] | None = None) -> CommandReply:
        return await self.executor.execute(CommandRequest(command=command, params=params or {}))

    async def run(self, command: str, params: dict[str, Any] | None = None) -> Any:
        reply = await self.reply(command, params)
        assert not reply.is_error, reply.error
        return reply.result

    async def error(self, command: str, params: dict[str, Any] | None = None) -> str:
        reply = await self.reply(command, params)
        assert reply.is_error
        return reply.error or ""


@pytest.fixture
def harness() -> Harness:
    return Harness()


def test_command_table() -> None:
    assert create_document_executor().commands == ALL_COMMANDS


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Tests for read-only commands."""

    @pytest.mark.asyncio
    async def test_document_info(self, harness: Harness) -> None:
        info = await harness.run("get_document_info")

        assert info["name"] == "Test file"
        assert info["type"] == "DOCUMENT"
        assert info["pageCount"] == 1
        assert info["currentPage"] == {"id": "0:1", "name": "Page 1"}

    @pytest.mark.asyncio
    async def test_node_info(self, harness: Harness) -> None:
        created = await harness.run("create_rectangle", {"x": 5, "y": 6})

        info = await harness.run("get_node_info", {"nodeId": created["id"]})

        assert info["type"] == "RECTANGLE"
        assert (info["x"], info["y"], info["width"], info["height"]) == (5, 6, 100, 100)
        assert info["fills"] == [{"type": "SOLID", "color": "#d9d9d9", "opacity": 1.0}]

    @pytest.mark.asyncio
    async def test_node_info_page_has_no_geometry(self, harness: Harness) -> None:
        info = await harness.run("get_node_info", {"nodeId": "0:1"})

        assert info["type"] == "PAGE"
        assert "x" not in info
        assert info["childCount"] == 0

    @pytest.mark.asyncio
    async def test_node_info_missing(self, harness: Harness) -> None:
        assert await harness.error("get_node_info", {"nodeId": "9:9"}) == "Node not found: 9:9"

    @pytest.mark.asyncio
    async def test_node_info_requires_id(self, harness: Harness) -> None:
        assert await harness.error("get_node_info") == "Missing required parameter: nodeId"

    @pytest.mark.asyncio
    async def test_nodes_info_reports_missing_inline(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        infos = await harness.run("get_nodes_info", {"nodeIds": [rect["id"], "9:9"]})

        assert infos[0]["id"] == rect["id"]
        assert infos[1] == {"id": "9:9", "error": "Not found"}

    @pytest.mark.asyncio
    async def test_selection_follows_creation(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        selection = await harness.run("get_selection")

        assert selection["count"] == 1
        assert selection["nodes"][0]["id"] == rect["id"]
        assert harness.document.viewport == [rect["id"]]

    @pytest.mark.asyncio
    async def test_styles(self, harness: Harness) -> None:
        harness.document.add_style("TEXT", "Heading")

        styles = await harness.run("get_styles")

        assert styles["paint"] == []
        assert styles["text"] == [{"id": "S:1", "name": "Heading", "type": "TEXT"}]

    @pytest.mark.asyncio
    async def test_local_components(self, harness: Harness) -> None:
        button = harness.document.create_component("Button", "Primary")

        components = await harness.run("get_local_components")

        assert components == [{"id": button.id, "name": "Button", "description": "Primary"}]


# =============================================================================
# Creation
# =============================================================================


class TestCreation:
    """Tests for create_* commands."""

    @pytest.mark.asyncio
    async def test_create_rectangle(self, harness: Harness) -> None:
        rect = await harness.run(
            "create_rectangle",
            {
                "x": 10,
                "y": 20,
                "width": 30,
                "height": 40,
                "name": "Box",
                "color": {"r": 1, "g": 0, "b": 0, "a": 0.5},
            },
        )

        assert rect["name"] == "Box"
        assert (rect["x"], rect["y"], rect["width"], rect["height"]) == (10, 20, 30, 40)
        assert rect["fills"] == [{"type": "SOLID", "color": "#ff0000", "opacity": 0.5}]

    @pytest.mark.asyncio
    async def test_create_frame_defaults(self, harness: Harness) -> None:
        frame = await harness.run("create_frame")

        assert frame["type"] == "FRAME"
        assert (frame["width"], frame["height"]) == (375, 812)
        assert frame["childCount"] == 0

    @pytest.mark.asyncio
    async def test_create_frame_background(self, harness: Harness) -> None:
        frame = await harness.run("create_frame", {"backgroundColor": {"r": 0, "g": 0, "b": 1}})

        assert frame["fills"][0]["color"] == "#0000ff"

    @pytest.mark.asyncio
    async def test_create_text(self, harness: Harness) -> None:
        text = await harness.run("create_text", {"text": "Hello world", "fontSize": 24})

        assert text["type"] == "TEXT"
        assert text["characters"] == "Hello world"
        assert text["fontSize"] == 24

    @pytest.mark.asyncio
    async def test_create_text_null_text_uses_default(self, harness: Harness) -> None:
        text = await harness.run("create_text", {"text": None, "fontSize": None})

        assert text["characters"] == "Hello"
        assert text["fontSize"] == 16

    @pytest.mark.asyncio
    async def test_bad_color_creates_nothing(self, harness: Harness) -> None:
        error = await harness.error("create_rectangle", {"color": {"r": 2, "g": 0, "b": 0}})

        assert "outside [0, 1]" in error
        assert harness.document.current_page.children == []

    @pytest.mark.asyncio
    async def test_negative_size_creates_nothing(self, harness: Harness) -> None:
        error = await harness.error("create_frame", {"width": -1})

        assert error == "Width and height must be non-negative"
        assert harness.document.current_page.children == []


# =============================================================================
# Mutation
# =============================================================================


class TestMutation:
    """Tests for commands that modify existing nodes."""

    @pytest.mark.asyncio
    async def test_set_fill_color(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        result = await harness.run(
            "set_fill_color", {"nodeId": rect["id"], "color": {"r": 0, "g": 1, "b": 0}}
        )

        assert result == {"success": True, "nodeId": rect["id"]}
        info = await harness.run("get_node_info", {"nodeId": rect["id"]})
        assert info["fills"][0]["color"] == "#00ff00"

    @pytest.mark.asyncio
    async def test_set_fill_color_on_page(self, harness: Harness) -> None:
        error = await harness.error(
            "set_fill_color", {"nodeId": "0:1", "color": {"r": 0, "g": 1, "b": 0}}
        )

        assert error == "Node does not support fills"

    @pytest.mark.asyncio
    async def test_move_node(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        result = await harness.run("move_node", {"nodeId": rect["id"], "x": 7, "y": 8})

        assert result == {"success": True, "nodeId": rect["id"], "x": 7, "y": 8}
        node = harness.document.get_node_by_id(rect["id"])
        assert node is not None
        assert (node.x, node.y) == (7, 8)

    @pytest.mark.asyncio
    async def test_move_page(self, harness: Harness) -> None:
        error = await harness.error("move_node", {"nodeId": "0:1", "x": 1, "y": 1})

        assert error == "Node does not support position"

    @pytest.mark.asyncio
    async def test_resize_node(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        await harness.run("resize_node", {"nodeId": rect["id"], "width": 1, "height": 2})

        info = await harness.run("get_node_info", {"nodeId": rect["id"]})
        assert (info["width"], info["height"]) == (1, 2)

    @pytest.mark.asyncio
    async def test_resize_requires_dimensions(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        error = await harness.error("resize_node", {"nodeId": rect["id"], "width": 10})

        assert error == "Missing required parameter: height"

    @pytest.mark.asyncio
    async def test_delete_node(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        await harness.run("delete_node", {"nodeId": rect["id"]})

        assert await harness.error("get_node_info", {"nodeId": rect["id"]}) == (
            f"Node not found: {rect['id']}"
        )
        assert (await harness.run("get_selection"))["count"] == 0

    @pytest.mark.asyncio
    async def test_set_text_content(self, harness: Harness) -> None:
        text = await harness.run("create_text", {"text": "before"})

        await harness.run("set_text_content", {"nodeId": text["id"], "text": "after"})

        info = await harness.run("get_node_info", {"nodeId": text["id"]})
        assert info["characters"] == "after"

    @pytest.mark.asyncio
    async def test_set_text_content_on_rectangle(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        error = await harness.error("set_text_content", {"nodeId": rect["id"], "text": "x"})

        assert error == f"Text node not found: {rect['id']}"

    @pytest.mark.asyncio
    async def test_export_svg(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        result = await harness.run(
            "export_node_as_image", {"nodeId": rect["id"], "format": "SVG", "scale": 1}
        )

        assert result["success"] is True
        assert result["format"] == "SVG"
        assert result["byteLength"] > 0

    @pytest.mark.asyncio
    async def test_export_defaults_to_png(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle", {"width": 10, "height": 10})

        result = await harness.run("export_node_as_image", {"nodeId": rect["id"]})

        assert result["success"] is True
        assert result["format"] == "PNG"
        assert result["byteLength"] > 0

    @pytest.mark.asyncio
    async def test_export_null_options_use_defaults(self, harness: Harness) -> None:
        rect = await harness.run("create_rectangle")

        result = await harness.run(
            "export_node_as_image", {"nodeId": rect["id"], "format": None, "scale": None}
        )

        assert result["format"] == "PNG"

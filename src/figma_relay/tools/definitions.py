"""Tool definitions exposed to the upstream caller.

Each tool maps one-to-one onto an executor command. Parameters are
declared as pydantic models (snake_case fields, camelCase wire aliases);
their JSON schema is what the caller sees, and validation happens before
anything is sent over the relay.

Adding a tool means adding an entry to TOOL_DEFINITIONS; the correlation
core is untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ToolParams(BaseModel):
    """Base for tool parameter models."""

    model_config = ConfigDict(populate_by_name=True)


class ColorParam(ToolParams):
    """RGBA color, channel values 0-1."""

    r: float = Field(ge=0, le=1, description="Red (0-1)")
    g: float = Field(ge=0, le=1, description="Green (0-1)")
    b: float = Field(ge=0, le=1, description="Blue (0-1)")
    a: float | None = Field(default=None, ge=0, le=1, description="Alpha (0-1, default 1)")


class NoParams(ToolParams):
    pass


class NodeParams(ToolParams):
    node_id: str = Field(alias="nodeId", description="The ID of the Figma node")


class NodesParams(ToolParams):
    node_ids: list[str] = Field(alias="nodeIds", description="Array of node IDs")


class CreateRectangleParams(ToolParams):
    x: float = Field(description="X position")
    y: float = Field(description="Y position")
    width: float = Field(ge=0, description="Width")
    height: float = Field(ge=0, description="Height")
    color: ColorParam | None = Field(default=None, description="Fill color (RGBA, values 0-1)")
    name: str | None = Field(default=None, description="Layer name")


class CreateTextParams(ToolParams):
    x: float = Field(description="X position")
    y: float = Field(description="Y position")
    text: str = Field(description="Text content")
    font_size: float | None = Field(default=None, alias="fontSize", gt=0, description="Font size")
    color: ColorParam | None = Field(default=None, description="Text color (RGBA, values 0-1)")
    name: str | None = Field(default=None, description="Layer name")


class CreateFrameParams(ToolParams):
    x: float = Field(description="X position")
    y: float = Field(description="Y position")
    width: float = Field(ge=0, description="Width")
    height: float = Field(ge=0, description="Height")
    name: str | None = Field(default=None, description="Frame name")
    background_color: ColorParam | None = Field(
        default=None, alias="backgroundColor", description="Background color (RGBA, values 0-1)"
    )


class SetFillColorParams(NodeParams):
    color: ColorParam = Field(description="Fill color (RGBA, values 0-1)")


class MoveNodeParams(NodeParams):
    x: float = Field(description="New X position")
    y: float = Field(description="New Y position")


class ResizeNodeParams(NodeParams):
    width: float = Field(ge=0, description="New width")
    height: float = Field(ge=0, description="New height")


class SetTextContentParams(NodeParams):
    text: str = Field(description="New text content")


class ExportNodeParams(NodeParams):
    format: Literal["PNG", "SVG", "PDF", "JPG"] | None = Field(
        default=None, description="Export format (default: PNG)"
    )
    scale: float | None = Field(default=None, gt=0, description="Export scale (default: 1)")


@dataclass(frozen=True)
class ToolDefinition:
    """A named operation offered to the upstream caller."""

    name: str
    description: str
    params_model: type[ToolParams] = NoParams

    @property
    def command(self) -> str:
        """Executor command invoked by this tool."""
        return self.name

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.params_model.model_json_schema(by_alias=True)

    def validate_arguments(self, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Validate caller arguments into wire params (aliases, unset optionals dropped).

        Raises:
            pydantic.ValidationError: If the arguments do not match the schema
        """
        params = self.params_model.model_validate(arguments or {})
        return params.model_dump(by_alias=True, exclude_none=True)


TOOL_DEFINITIONS: list[ToolDefinition] = [
    ToolDefinition("get_document_info", "Get basic info about the current Figma document"),
    ToolDefinition("get_selection", "Get the currently selected nodes in Figma"),
    ToolDefinition(
        "get_node_info", "Get detailed info about a specific Figma node by ID", NodeParams
    ),
    ToolDefinition("get_nodes_info", "Get detailed info about multiple Figma nodes", NodesParams),
    ToolDefinition("get_styles", "Get all styles defined in the Figma document"),
    ToolDefinition("get_local_components", "Get all local components in the Figma document"),
    ToolDefinition("create_rectangle", "Create a rectangle in Figma", CreateRectangleParams),
    ToolDefinition("create_text", "Create a text node in Figma", CreateTextParams),
    ToolDefinition("create_frame", "Create a frame in Figma", CreateFrameParams),
    ToolDefinition("set_fill_color", "Set the fill color of a Figma node", SetFillColorParams),
    ToolDefinition("move_node", "Move a Figma node to a new position", MoveNodeParams),
    ToolDefinition("resize_node", "Resize a Figma node", ResizeNodeParams),
    ToolDefinition("delete_node", "Delete a node from Figma", NodeParams),
    ToolDefinition(
        "set_text_content", "Update the text content of a text node", SetTextContentParams
    ),
    ToolDefinition(
        "export_node_as_image",
        "Export a Figma node as an image (PNG/SVG/PDF/JPG)",
        ExportNodeParams,
    ),
]

TOOLS_BY_NAME: dict[str, ToolDefinition] = {tool.name: tool for tool in TOOL_DEFINITIONS}


def get_tool(name: str) -> ToolDefinition:
    """Look up a tool by name.

    Raises:
        ValueError: If no such tool exists
    """
    try:
        return TOOLS_BY_NAME[name]
    except KeyError:
        raise ValueError(f"Unknown tool: {name}") from None

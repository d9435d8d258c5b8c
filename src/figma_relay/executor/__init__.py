"""Command executor: dispatch table, in-memory document and hub agent."""

from .agent import ExecutorAgent
from .dispatcher import CommandExecutor, Handler
from .document import Color, Document, FontName, Node, NodeType
from .handlers import DocumentCommands, serialize_node


def create_document_executor(document: Document | None = None) -> CommandExecutor:
    """Executor serving the design commands against ``document``."""
    return CommandExecutor(DocumentCommands(document or Document()).handlers())


__all__ = [
    "Color",
    "CommandExecutor",
    "Document",
    "DocumentCommands",
    "ExecutorAgent",
    "FontName",
    "Handler",
    "Node",
    "NodeType",
    "create_document_executor",
    "serialize_node",
]

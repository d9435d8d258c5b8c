"""Figma relay - command relay between automation agents and a design document.

Three roles meet on a shared hub channel:
- hub: WebSocket server forwarding messages between channel members
- issuer: sends correlated commands and awaits their replies
- executor: runs commands against the document and replies
"""

__version__ = "0.1.0"

"""Tool-request wire convention embedded in model output.

A model asks for a tool by writing the marker followed by a tool id::

    MCP_REQUEST:workspace-create-task {"title": "Fix login"}

or with the payload on the following lines::

    MCP_REQUEST:workspace-create-task
    {"title": "Fix login"}

or with the payload in a fenced block earlier in the same message.

Only the LAST marker in a message counts, so deliberation text that quotes
the marker earlier is never mistaken for a request. Payload precedence:
inline text after the id > text after the first newline > the last fenced
block before the marker (a block tagged ``json`` wins over a later untagged one).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

TOOL_MARKER = "MCP_REQUEST:"

_FENCED_BLOCK_RE = re.compile(r"```(?:([a-zA-Z0-9_-]+))?\s*([\s\S]*?)```")


@dataclass(frozen=True)
class ToolRequest:
    tool_id: str
    payload: str | None = None


def contains_tool_marker(text: str) -> bool:
    return TOOL_MARKER in text


def extract_last_code_block(text: str) -> str | None:
    """Body of the last ``json``-tagged fenced block in *text*, else of the last block.

    Returns None if there is no block or the chosen block is empty.
    """
    matches = list(_FENCED_BLOCK_RE.finditer(text))
    if not matches:
        return None
    tagged = [m for m in matches if (m.group(1) or "").lower() == "json"]
    target = tagged[-1] if tagged else matches[-1]
    body = (target.group(2) or "").strip()
    return body or None


def parse_tool_request(response: str) -> ToolRequest | None:
    """Extract the tool request from one assistant message, if any."""
    index = response.rfind(TOOL_MARKER)
    if index < 0:
        return None
    remainder = response[index + len(TOOL_MARKER):].lstrip()
    if not remainder:
        return None

    first_line, newline, rest = remainder.partition("\n")
    if not first_line.strip():
        return None
    tool_id, _, inline = first_line.partition(" ")
    tool_id = tool_id.strip()
    if not tool_id:
        return None

    inline_payload = inline.strip() or None
    block_payload = rest.strip() or None if newline else None
    payload = inline_payload or block_payload or extract_last_code_block(response[:index])
    return ToolRequest(tool_id=tool_id, payload=payload)

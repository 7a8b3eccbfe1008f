"""Rich-Text Compiler — lightweight markup to structured document.

Converts the markdown-like text authors type into spreadsheet cells into
the node tree stored for StructuredText fields. Supported constructs:

- Headings (``#`` … ``######``)
- Paragraphs
- Bold (``**text**``) and italic (``*text*``)
- Unordered lists (``- item`` / ``* item``)
- Ordered lists (``1. item``)
- Blockquotes (``> text``, single line)
- Horizontal rules (``---``)
- Links (``[text](url)``)

Every container in the produced tree has at least one child, so
downstream renderers never see an empty document or paragraph.
"""

import re
from typing import Any, Optional

Node = dict[str, Any]

_HR_RE = re.compile(r"^---+$")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_UNORDERED_ITEM_RE = re.compile(r"^\s*[-*]\s+")
_ORDERED_ITEM_RE = re.compile(r"^\s*\d+\.\s+")

# Leftmost match of the alternation wins, not a fixed priority between kinds.
_INLINE_RE = re.compile(r"(\*\*(.+?)\*\*)|(\*(.+?)\*)|(\[(.+?)\]\((.+?)\))")


def _text(value: str, marks: tuple[str, ...] = ()) -> Node:
    return {
        "nodeType": "text",
        "value": value,
        "marks": [{"type": m} for m in marks],
        "data": {},
    }


def _block(node_type: str, content: list[Node], data: Optional[dict] = None) -> Node:
    return {"nodeType": node_type, "data": data or {}, "content": content}


def parse_inline(text: str) -> list[Node]:
    """Split one line of text into text and hyperlink nodes."""
    nodes: list[Node] = []
    last = 0

    for match in _INLINE_RE.finditer(text):
        if match.start() > last:
            nodes.append(_text(text[last:match.start()]))

        if match.group(1):
            nodes.append(_text(match.group(2), ("bold",)))
        elif match.group(3):
            nodes.append(_text(match.group(4), ("italic",)))
        else:
            nodes.append(_block(
                "hyperlink",
                [_text(match.group(6))],
                data={"uri": match.group(7)},
            ))
        last = match.end()

    if last < len(text):
        nodes.append(_text(text[last:]))

    if not nodes:
        nodes.append(_text(text))
    return nodes


def _paragraph(text: str) -> Node:
    return _block("paragraph", parse_inline(text))


def _collect_list(
    lines: list[str],
    start: int,
    item_re: re.Pattern,
    node_type: str,
) -> tuple[Node, int]:
    """Group consecutive list lines starting at ``start`` into one list block."""
    items: list[Node] = []
    i = start
    while i < len(lines) and item_re.match(lines[i]):
        item_text = item_re.sub("", lines[i], count=1)
        items.append(_block("list-item", [_paragraph(item_text)]))
        i += 1
    return _block(node_type, items), i


def _empty_document() -> Node:
    return _block("document", [_block("paragraph", [_text("")])])


def compile_markup(markup: str) -> Node:
    """Compile markup text into a rich-text document tree."""
    lines = markup.splitlines()
    content: list[Node] = []
    i = 0

    while i < len(lines):
        line = lines[i]

        if line.strip() == "":
            i += 1
            continue

        if _HR_RE.match(line.strip()):
            content.append(_block("hr", []))
            i += 1
            continue

        heading = _HEADING_RE.match(line)
        if heading:
            level = len(heading.group(1))
            content.append(_block(f"heading-{level}", parse_inline(heading.group(2))))
            i += 1
            continue

        if line.startswith("> "):
            content.append(_block("blockquote", [_paragraph(line[2:])]))
            i += 1
            continue

        if _UNORDERED_ITEM_RE.match(line):
            block, i = _collect_list(lines, i, _UNORDERED_ITEM_RE, "unordered-list")
            content.append(block)
            continue

        if _ORDERED_ITEM_RE.match(line):
            block, i = _collect_list(lines, i, _ORDERED_ITEM_RE, "ordered-list")
            content.append(block)
            continue

        content.append(_paragraph(line))
        i += 1

    if not content:
        return _empty_document()
    return _block("document", content)

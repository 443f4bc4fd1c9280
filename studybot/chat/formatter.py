"""Text formatter for assistant replies.

Turns raw reply text into a flat tree of display nodes. Only a fixed set of
transformations is recognised, always applied in the same order:

1. fenced code blocks (contents kept verbatim)
2. per line: a leading ``*`` or ``-`` bullet marker
3. within a line: ``**bold**`` then ``*italic*``
4. newlines between lines become line breaks

Everything else stays plain text. ``to_html`` escapes all text, so the
reply can never inject markup.
"""

import html
import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

# A language tag only counts when a newline follows it
_CODE_BLOCK = re.compile(r"```(?:(\w*)\n)?([\s\S]*?)```")
_BULLET = re.compile(r"^[ \t]*[*-][ \t]+")
# Bold wins over italic when both could start at the same position.
_EMPHASIS = re.compile(r"\*\*(.+?)\*\*|\*([^*\n]+?)\*")

_CODE_BLOCK_CLASSES = "bg-gray-800 text-gray-100 rounded-lg p-3 my-2 overflow-x-auto text-xs"


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)


class Plain(_Node):
    kind: Literal["plain"] = "plain"
    text: str


class Bold(_Node):
    kind: Literal["bold"] = "bold"
    text: str


class Italic(_Node):
    kind: Literal["italic"] = "italic"
    text: str


class CodeBlock(_Node):
    kind: Literal["code_block"] = "code_block"
    text: str
    language: str = ""


class Bullet(_Node):
    kind: Literal["bullet"] = "bullet"


class LineBreak(_Node):
    kind: Literal["line_break"] = "line_break"


Node = Annotated[
    Plain | Bold | Italic | CodeBlock | Bullet | LineBreak,
    Field(discriminator="kind"),
]


def _format_inline(line: str) -> list[Node]:
    nodes: list[Node] = []
    pos = 0
    for match in _EMPHASIS.finditer(line):
        if match.start() > pos:
            nodes.append(Plain(text=line[pos : match.start()]))
        if match.group(1) is not None:
            nodes.append(Bold(text=match.group(1)))
        else:
            nodes.append(Italic(text=match.group(2)))
        pos = match.end()
    if pos < len(line):
        nodes.append(Plain(text=line[pos:]))
    return nodes


def _format_prose(segment: str) -> list[Node]:
    if not segment:
        return []

    nodes: list[Node] = []
    for index, line in enumerate(segment.split("\n")):
        if index:
            nodes.append(LineBreak())
        bullet = _BULLET.match(line)
        if bullet:
            nodes.append(Bullet())
            line = line[bullet.end() :]
        nodes.extend(_format_inline(line))
    return nodes


def format_text(text: str) -> list[Node]:
    """Convert raw reply text into display nodes.

    Deterministic and side-effect free: identical input gives identical
    output.
    """
    nodes: list[Node] = []
    pos = 0
    for match in _CODE_BLOCK.finditer(text):
        nodes.extend(_format_prose(text[pos : match.start()]))
        nodes.append(CodeBlock(language=match.group(1) or "", text=match.group(2)))
        pos = match.end()
    nodes.extend(_format_prose(text[pos:]))
    return nodes


def to_html(nodes: list[Node]) -> str:
    """Render display nodes to HTML, escaping every piece of text."""
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, Bold):
            parts.append(f"<strong>{html.escape(node.text)}</strong>")
        elif isinstance(node, Italic):
            parts.append(f"<em>{html.escape(node.text)}</em>")
        elif isinstance(node, CodeBlock):
            parts.append(
                f'<pre class="{_CODE_BLOCK_CLASSES}"><code>{html.escape(node.text)}</code></pre>'
            )
        elif isinstance(node, Bullet):
            parts.append("&bull; ")
        elif isinstance(node, LineBreak):
            parts.append("<br>")
        else:
            parts.append(html.escape(node.text))
    return "".join(parts)


def plain_to_html(text: str) -> str:
    """Render user-typed text: escaped, with line breaks kept."""
    return html.escape(text).replace("\n", "<br>")

# backend/services/resume_renderer.py
"""
Markdown render pipeline for the benchmark resume.

Supports the restricted markdown the analysis model is asked to produce:
a "# " title, one contact line, "## " section headings, "* " / "- " bullets,
plain paragraphs and **bold** spans.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple


HEADING = "heading"
CONTACT = "contact"
SUBHEADING = "subheading"
LIST = "list"
PARAGRAPH = "paragraph"


@dataclass(frozen=True)
class TextSpan:
    text: str
    bold: bool = False


@dataclass(frozen=True)
class Block:
    """
    One rendered block.

    Text blocks carry spans; list blocks carry items, each a tuple of spans.
    """
    kind: str
    spans: Tuple[TextSpan, ...] = ()
    items: Tuple[Tuple[TextSpan, ...], ...] = ()

    @property
    def text(self) -> str:
        return "".join(span.text for span in self.spans)


def parse_bold(text: str) -> Tuple[TextSpan, ...]:
    """
    Split a line on '**' and emphasise every odd segment.

    An unmatched trailing '**' emphasises the rest of the line.
    """
    if "**" not in text:
        return (TextSpan(text),) if text else ()

    return tuple(
        TextSpan(part, bold=index % 2 == 1)
        for index, part in enumerate(text.split("**"))
        if part
    )


def render_markdown(markdown: str) -> List[Block]:
    """
    Classify markdown lines into blocks, in order.

    Args:
        markdown: Resume markdown

    Returns:
        List of Block objects
    """
    rendered: List[Block] = []
    current_list: List[Tuple[TextSpan, ...]] = []
    non_blank_index = -1

    def flush_list():
        if current_list:
            rendered.append(Block(kind=LIST, items=tuple(current_list)))
            current_list.clear()

    for line in (markdown or "").splitlines():
        t = line.strip()
        if not t:
            continue
        non_blank_index += 1

        if t.startswith("# "):
            flush_list()
            rendered.append(Block(kind=HEADING, spans=parse_bold(t[2:])))
        elif (
            non_blank_index == 1
            and len(rendered) == 1
            and rendered[0].kind == HEADING
            and not t.startswith("##")
        ):
            rendered.append(Block(kind=CONTACT, spans=parse_bold(t)))
        elif t.startswith("## "):
            flush_list()
            rendered.append(Block(kind=SUBHEADING, spans=parse_bold(t[3:])))
        elif t.startswith("* ") or t.startswith("- "):
            current_list.append(parse_bold(t[2:]))
        else:
            flush_list()
            rendered.append(Block(kind=PARAGRAPH, spans=parse_bold(t)))

    flush_list()
    return rendered


def _spans_to_dict(spans: Tuple[TextSpan, ...]) -> List[Dict[str, Any]]:
    return [{"text": s.text, "bold": s.bold} for s in spans]


def blocks_to_dict(blocks: List[Block]) -> List[Dict[str, Any]]:
    """JSON-friendly form of rendered blocks."""
    result = []
    for block in blocks:
        if block.kind == LIST:
            result.append({"kind": LIST, "items": [_spans_to_dict(item) for item in block.items]})
        else:
            result.append({"kind": block.kind, "spans": _spans_to_dict(block.spans)})
    return result

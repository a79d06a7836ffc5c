"""
Test suite for the benchmark resume markdown renderer

This module tests the restricted markdown pipeline to ensure:
- Lines are classified in order (heading, contact, sub-heading, list, paragraph)
- The contact line only follows a leading title
- Consecutive bullets collapse into one list
- Bold spans alternate on '**', including an unmatched trailing marker

Run tests with: pytest backend/tests/test_resume_renderer.py -v
"""

from services.resume_renderer import (
    CONTACT,
    HEADING,
    LIST,
    PARAGRAPH,
    SUBHEADING,
    TextSpan,
    blocks_to_dict,
    parse_bold,
    render_markdown,
)


# ============================================================================
# BOLD SPANS
# ============================================================================

class TestParseBold:

    def test_plain_text(self):
        assert parse_bold("Plain") == (TextSpan("Plain"),)

    def test_alternating_segments(self):
        assert parse_bold("Did **great** things") == (
            TextSpan("Did "),
            TextSpan("great", bold=True),
            TextSpan(" things"),
        )

    def test_unmatched_marker_emphasises_to_end(self):
        assert parse_bold("Led **payments rebuild") == (
            TextSpan("Led "),
            TextSpan("payments rebuild", bold=True),
        )

    def test_leading_bold(self):
        assert parse_bold("**Python** expert") == (
            TextSpan("Python", bold=True),
            TextSpan(" expert"),
        )

    def test_empty_text(self):
        assert parse_bold("") == ()


# ============================================================================
# LINE CLASSIFICATION
# ============================================================================

class TestRenderMarkdown:

    def test_reference_resume(self):
        blocks = render_markdown("# Jane Doe\njane@x.com\n## Experience\n* Did **great** things")

        assert [b.kind for b in blocks] == [HEADING, CONTACT, SUBHEADING, LIST]
        assert blocks[0].text == "Jane Doe"
        assert blocks[1].text == "jane@x.com"
        assert blocks[2].text == "Experience"
        assert blocks[3].items == (
            (TextSpan("Did "), TextSpan("great", bold=True), TextSpan(" things")),
        )

    def test_blank_lines_do_not_count(self):
        blocks = render_markdown("\n\n# Jane Doe\n\n   \njane@x.com\n")
        assert [b.kind for b in blocks] == [HEADING, CONTACT]

    def test_second_line_without_title_is_paragraph(self):
        blocks = render_markdown("Summary line\nAnother line")
        assert [b.kind for b in blocks] == [PARAGRAPH, PARAGRAPH]

    def test_subheading_on_second_line_is_not_contact(self):
        blocks = render_markdown("# Jane Doe\n## Summary")
        assert [b.kind for b in blocks] == [HEADING, SUBHEADING]

    def test_only_one_contact_line(self):
        blocks = render_markdown("# Jane Doe\njane@x.com\nLondon, UK")
        assert [b.kind for b in blocks] == [HEADING, CONTACT, PARAGRAPH]

    def test_consecutive_bullets_form_one_list(self):
        blocks = render_markdown("## Skills\n* Python\n- Go\n* Rust\nTrailing paragraph")

        assert [b.kind for b in blocks] == [SUBHEADING, LIST, PARAGRAPH]
        assert [item[0].text for item in blocks[1].items] == ["Python", "Go", "Rust"]

    def test_list_flushed_at_end_of_input(self):
        blocks = render_markdown("## Skills\n* Python\n* Go")
        assert blocks[-1].kind == LIST
        assert len(blocks[-1].items) == 2

    def test_lists_split_by_heading(self):
        blocks = render_markdown("## A\n* one\n## B\n* two")
        assert [b.kind for b in blocks] == [SUBHEADING, LIST, SUBHEADING, LIST]

    def test_lines_are_trimmed(self):
        blocks = render_markdown("   # Jane Doe   \n  jane@x.com \n   * indented bullet")
        assert blocks[0].text == "Jane Doe"
        assert blocks[1].text == "jane@x.com"
        assert blocks[2].items[0][0].text == "indented bullet"

    def test_empty_input(self):
        assert render_markdown("") == []
        assert render_markdown(None) == []


class TestBlocksToDict:

    def test_json_shape(self):
        data = blocks_to_dict(render_markdown("# **Jane** Doe\n* item"))

        assert data == [
            {"kind": "heading", "spans": [{"text": "Jane", "bold": True}, {"text": " Doe", "bold": False}]},
            {"kind": "contact", "spans": [{"text": "* item", "bold": False}]},
        ]

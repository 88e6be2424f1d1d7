from __future__ import annotations

from renewals.render.markdown import (
    BULLET,
    HEADING,
    NUMBERED,
    PARAGRAPH,
    RULE,
    MarkdownBlock,
    StyledRun,
    indent_level,
    parse_inline,
    parse_markdown_to_blocks,
)


def test_parse_markdown_to_blocks_covers_line_kinds() -> None:
    text = """
# Executive **Summary**

Acme has **$15,000** renewing soon.
- Catalyst switches reach LDOS in March
    * Plan refresh with the account team
        • Confirm quantities
1. Renew Umbrella
2) Review Webex seats
---
## Next_Steps
"""

    blocks = parse_markdown_to_blocks(text)

    assert blocks == [
        MarkdownBlock(HEADING, "Executive Summary", level=1),
        MarkdownBlock(PARAGRAPH, "Acme has **$15,000** renewing soon."),
        MarkdownBlock(BULLET, "Catalyst switches reach LDOS in March", level=0),
        MarkdownBlock(BULLET, "Plan refresh with the account team", level=1),
        MarkdownBlock(BULLET, "Confirm quantities", level=2),
        MarkdownBlock(NUMBERED, "Renew Umbrella", level=0, marker="1."),
        MarkdownBlock(NUMBERED, "Review Webex seats", level=0, marker="2)"),
        MarkdownBlock(RULE),
        MarkdownBlock(HEADING, "NextSteps", level=2),
    ]


def test_parse_markdown_handles_empty_and_deep_headings() -> None:
    assert parse_markdown_to_blocks("") == []
    assert parse_markdown_to_blocks("\n\n   \n") == []
    # four hashes is not a supported heading level
    assert parse_markdown_to_blocks("#### Deep") == [MarkdownBlock(PARAGRAPH, "#### Deep")]


def test_indent_level_thresholds() -> None:
    assert indent_level("- a") == 0
    assert indent_level("   - a") == 0
    assert indent_level("    - a") == 1
    assert indent_level("       - a") == 1
    assert indent_level("        - a") == 2
    assert indent_level("            - a") == 2


def test_parse_inline_spans() -> None:
    runs = parse_inline("Renew **now**, see *notes*, run `show ver` or [portal](https://example.com).")

    assert runs == [
        StyledRun("Renew "),
        StyledRun("now", bold=True),
        StyledRun(", see "),
        StyledRun("notes", italic=True),
        StyledRun(", run "),
        StyledRun("show ver", code=True),
        StyledRun(" or "),
        StyledRun("portal", link=True),
        StyledRun("."),
    ]


def test_parse_inline_plain_and_unmatched_markers() -> None:
    assert parse_inline("") == [StyledRun("")]
    assert parse_inline("2 * 3 = 6") == [StyledRun("2 * 3 = 6")]
    assert parse_inline("**unterminated") == [StyledRun("**unterminated")]


def test_parse_inline_inherits_bold_and_color() -> None:
    runs = parse_inline("Total *estimated*", bold=True, color="1B4F72")

    assert runs == [
        StyledRun("Total ", bold=True, color="1B4F72"),
        StyledRun("estimated", italic=True, color="1B4F72"),
    ]


def test_parse_inline_precedence() -> None:
    assert parse_inline("**bold** and *italic*") == [
        StyledRun("bold", bold=True),
        StyledRun(" and "),
        StyledRun("italic", italic=True),
    ]
    assert parse_inline("**a*b*c**") == [StyledRun("a*b*c", bold=True)]
    assert parse_inline("**x***y*") == [StyledRun("x", bold=True), StyledRun("y", italic=True)]

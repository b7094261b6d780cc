"""
tests/talkops/test_masking.py - Tests for masking opaque wikitext regions
"""

from __future__ import annotations

from talkops.masking import (
    MASK_END,
    MASK_START,
    apply_mask,
    hide_sensitive_code,
    mask_code,
    outermost_spans,
    unhide_text,
)


class TestMaskCode:
    """Tests for the length-preserving mask."""

    def test_length_preserved(self, conventions):
        """Test that masked code has the length of the original."""
        code = "a <!-- hidden --> b <nowiki>[[x]]</nowiki> c {{tpl|x}}"
        masked = mask_code(code, conventions, templates=True)
        assert len(masked) == len(code)

    def test_comment_masked(self, conventions):
        """Test that HTML comments are replaced by a placeholder."""
        code = "before <!-- [[User:X|X]] --> after"
        masked = mask_code(code, conventions)
        assert "User:X" not in masked
        assert masked.startswith("before ")
        assert masked.endswith(" after")
        start = code.index("<!--")
        assert masked[start] == MASK_START
        assert masked[code.index("-->") + 2] == MASK_END

    def test_nowiki_masked(self, conventions):
        """Test that <nowiki> blocks are hidden with their tags."""
        code = "x <nowiki>== Not a heading ==</nowiki> y"
        masked = mask_code(code, conventions)
        assert "heading" not in masked

    def test_templates_untouched_by_default(self, conventions):
        """Test that templates stay visible unless asked for."""
        code = "text {{outdent}} more"
        assert mask_code(code, conventions) == code

    def test_unsigned_templates_only(self, conventions):
        """Test masking only the unsigned templates."""
        code = "{{Talk header}} hi {{unsigned|Bob}}"
        masked = mask_code(code, conventions, unsigned_templates=True)
        assert masked.startswith("{{Talk header}}")
        assert "Bob" not in masked

    def test_tables_masked(self, conventions):
        """Test that tables are masked when asked for."""
        code = "before\n{|\n| cell\n|}\nafter"
        masked = mask_code(code, conventions, tables=True)
        assert "cell" not in masked
        assert masked.endswith("\nafter")

    def test_empty_code(self, conventions):
        assert mask_code("", conventions) == ""

    def test_closed_discussion_keeps_indentation(self, conventions):
        """Test that a closed discussion reads as one line of masked indentation."""
        code = (
            "Open [[User:A|A]] 10:00, 1 May 2021 (UTC)\n"
            ":{{Hidden archive top}}\n"
            ":Closed talk\n"
            ":{{Hidden archive bottom}}\n"
            "After"
        )
        masked = mask_code(code, conventions, closed_discussions=True)
        assert len(masked) == len(code)
        block_start = code.index(":{{Hidden")
        assert masked[block_start] == MASK_START
        assert "Closed talk" not in masked
        assert masked.endswith("\nAfter")


class TestSpans:
    """Tests for span helpers."""

    def test_outermost_spans_drop_nested(self):
        assert outermost_spans([(5, 8), (0, 10), (12, 14)]) == [(0, 10), (12, 14)]

    def test_outermost_spans_merge_overlap(self):
        assert outermost_spans([(0, 5), (3, 9)]) == [(0, 9)]

    def test_apply_mask_short_spans(self):
        """Test one- and two-character spans."""
        assert apply_mask("abc", [(1, 2)]) == "a" + MASK_START + "c"
        assert apply_mask("abcd", [(1, 3)]) == "a" + MASK_START + MASK_END + "d"


class TestHideSensitiveCode:
    """Tests for placeholder hiding."""

    def test_hide_and_unhide_restores_text(self):
        """Test that unhiding restores the hidden regions verbatim."""
        code = "See {{cite|x=1}} and <!-- note --> here.\n{|\n| a\n|}"
        hidden_code, hidden = hide_sensitive_code(code)
        assert "{{cite" not in hidden_code
        assert "note" not in hidden_code
        assert unhide_text(hidden_code, hidden) == code

    def test_table_placeholder_kind(self):
        """Test that tables get their own placeholder kind."""
        hidden_code, hidden = hide_sensitive_code("{|\n| a\n|}")
        assert hidden_code == "\x010_table\x02"
        assert hidden == ["{|\n| a\n|}"]

    def test_nested_template_hidden_once(self):
        """Test that a template inside a template is part of the outer placeholder."""
        hidden_code, hidden = hide_sensitive_code("{{outer|{{inner}}}}")
        assert len(hidden) == 1
        assert hidden[0] == "{{outer|{{inner}}}}"

    def test_unknown_placeholder_kept(self):
        """Test that a placeholder without a stored region is left as is."""
        assert unhide_text("a \x017_block\x02 b", []) == "a \x017_block\x02 b"

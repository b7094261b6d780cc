"""
tests/talkops/test_signatures.py - Tests for signature and heading extraction
"""

from __future__ import annotations

from datetime import datetime, timezone

from talkops.headings import extract_headings
from talkops.models import UNDATED
from talkops.signatures import extract_signatures


class TestRegularSignatures:
    """Tests for user link + timestamp signatures."""

    def test_simple_signature(self, conventions):
        """Test a signature with a user link and a timestamp."""
        code = "Hi. [[User:Alice|Alice]] 12:34, 5 January 2021 (UTC)"
        signatures = extract_signatures(code, conventions)

        assert len(signatures) == 1
        signature = signatures[0]
        assert signature.author == "Alice"
        assert signature.timestamp == "12:34, 5 January 2021 (UTC)"
        assert signature.date == datetime(2021, 1, 5, 12, 34, tzinfo=timezone.utc)
        assert signature.start_index == code.index("[[User:Alice")
        assert signature.end_index == len(code)
        assert signature.comment_start_index == 0
        assert not signature.is_unsigned

    def test_talk_link_only_signature(self, conventions):
        """Test a signature whose only user link points to the talk page."""
        code = "Hi there [[User talk:Alice|Alice]] 12:34, 5 January 2021 (UTC)\n"
        signatures = extract_signatures(code, conventions)

        assert len(signatures) == 1
        assert signatures[0].author == "Alice"
        assert signatures[0].start_index == code.index("[[User talk:")

    def test_talk_link_belongs_to_signature(self, conventions):
        """Test that a run of links to the same user starts the signature at the first."""
        code = "Hi. [[User:Alice|Alice]] ([[User talk:Alice|talk]]) 12:34, 5 January 2021 (UTC)"
        signature = extract_signatures(code, conventions)[0]
        assert signature.dirty_code.startswith("[[User:Alice|Alice]]")

    def test_author_is_normalized(self, conventions):
        """Test that user names get the MediaWiki canonical form."""
        code = "Hi. [[User:some_user|me]] 12:34, 5 January 2021 (UTC)"
        assert extract_signatures(code, conventions)[0].author == "Some user"

    def test_contributions_link(self, conventions):
        """Test that anonymous users sign with a contributions link."""
        code = "Hi. [[Special:Contributions/192.0.2.1|192.0.2.1]] 12:34, 5 January 2021 (UTC)"
        assert extract_signatures(code, conventions)[0].author == "192.0.2.1"

    def test_timestamp_without_user_link_ignored(self, conventions):
        """Test that a bare timestamp is not a signature."""
        code = "The meeting was at 12:34, 5 January 2021 (UTC)."
        assert extract_signatures(code, conventions) == []

    def test_user_link_too_far_ignored(self, conventions):
        """Test that links far before the timestamp do not sign it."""
        code = "[[User:Alice|Alice]] " + "x" * 150 + " 12:34, 5 January 2021 (UTC)"
        assert extract_signatures(code, conventions) == []

    def test_signature_in_comment_ignored(self, conventions):
        """Test that signatures inside HTML comments are not found."""
        code = "<!-- [[User:X|X]] 10:00, 1 May 2021 (UTC) -->"
        assert extract_signatures(code, conventions) == []

    def test_impossible_date_discarded(self, conventions):
        """Test that a timestamp that is not a real date is discarded."""
        code = "Hi. [[User:Alice|Alice]] 10:00, 31 February 2021 (UTC)"
        assert extract_signatures(code, conventions) == []

    def test_last_timestamp_on_line_wins(self, conventions):
        """Test that only the last timestamp of a line is a signature."""
        code = (
            "Quoting [[User:Bob|Bob]] 09:00, 1 May 2021 (UTC): "
            "no. [[User:Alice|Alice]] 10:00, 1 May 2021 (UTC)"
        )
        signatures = extract_signatures(code, conventions)
        assert [s.author for s in signatures] == ["Alice"]

    def test_small_tail_included(self, conventions):
        """Test that a closing </small> after the timestamp belongs to the signature."""
        code = "<small>Note [[User:A|A]] 10:00, 1 May 2021 (UTC)</small>"
        signature = extract_signatures(code, conventions)[0]
        assert signature.end_index == len(code)


class TestUnsignedTemplates:
    """Tests for signatures added by unsigned templates."""

    def test_unsigned_template(self, conventions):
        """Test an unsigned template with a user and a date."""
        code = "Some text {{unsigned|Bob|12:00, 3 March 2021 (UTC)}}"
        signature = extract_signatures(code, conventions)[0]

        assert signature.author == "Bob"
        assert signature.is_unsigned
        assert signature.timestamp == "12:00, 3 March 2021 (UTC)"
        assert signature.date == datetime(2021, 3, 3, 12, 0, tzinfo=timezone.utc)
        assert signature.dirty_code == "{{unsigned|Bob|12:00, 3 March 2021 (UTC)}}"

    def test_unsigned_named_arguments(self, conventions):
        """Test an unsigned template using named arguments."""
        code = "Text {{Unsigned|user=Bob|date=12:00, 3 March 2021 (UTC)}}"
        signature = extract_signatures(code, conventions)[0]
        assert signature.author == "Bob"
        assert signature.date is not None

    def test_unsigned_without_user(self, conventions):
        """Test that an unsigned template naming nobody gets the placeholder author."""
        signature = extract_signatures("Text {{unsigned}}", conventions)[0]
        assert signature.author == UNDATED
        assert signature.timestamp == ""
        assert signature.date is None

    def test_unsigned_with_unparsable_date(self, conventions):
        """Test that an unsigned template keeps its date text when it does not parse."""
        signature = extract_signatures("Text {{unsigned|Bob|sometime in May}}", conventions)[0]
        assert signature.timestamp == "sometime in May"
        assert signature.date is None


class TestSignatureMerging:
    """Tests for comments split by markup."""

    def test_split_comment_merged(self, conventions):
        """Test that two identical signatures separated by inline text are one comment."""
        code = (
            "Part one [[User:A|A]] 10:00, 1 May 2021 (UTC)\n"
            "continued [[User:A|A]] 10:00, 1 May 2021 (UTC)"
        )
        signatures = extract_signatures(code, conventions)
        assert len(signatures) == 1
        assert signatures[0].comment_start_index == 0
        assert signatures[0].start_index == code.rindex("[[User:A")

    def test_paragraphs_not_merged(self, conventions):
        """Test that a blank line keeps identical signatures apart."""
        code = (
            "First [[User:A|A]] 10:00, 1 May 2021 (UTC)\n"
            "\n"
            "Second [[User:A|A]] 10:00, 1 May 2021 (UTC)"
        )
        signatures = extract_signatures(code, conventions)
        assert len(signatures) == 2
        assert signatures[1].comment_start_index == code.index("Second")

    def test_ids_in_document_order(self, conventions, thread_wikitext):
        """Test that signatures are numbered in document order."""
        signatures = extract_signatures(thread_wikitext, conventions)
        assert [s.id for s in signatures] == [0, 1, 2]
        assert [s.author for s in signatures] == ["A", "B", "C"]


class TestExtractHeadings:
    """Tests for heading extraction."""

    def test_levels_and_headlines(self):
        """Test heading levels and plain headlines."""
        code = "== A ==\ntext\n=== B ===\nmore\n== C ==\n"
        headings = extract_headings(code)
        assert [(h.level, h.headline) for h in headings] == [(2, "A"), (3, "B"), (2, "C")]
        assert headings[0].start_index == 0
        assert headings[0].end_index == len("== A ==\n")

    def test_headline_markup(self):
        """Test that the headline is plain text and the code is kept."""
        headings = extract_headings("== [[Foo|Bar]] baz ==\n")
        assert headings[0].headline == "Bar baz"
        assert headings[0].headline_code == "[[Foo|Bar]] baz"

    def test_heading_in_nowiki_ignored(self, conventions):
        """Test that headings inside <nowiki> are not found."""
        code = "<nowiki>\n== Not ==\n</nowiki>\n== Real ==\n"
        headings = extract_headings(code, conventions)
        assert [h.headline for h in headings] == ["Real"]

    def test_heading_without_trailing_newline(self):
        """Test a heading on the last line."""
        headings = extract_headings("text\n== Last ==")
        assert headings[0].headline == "Last"

"""
tests/test_talk_routes.py - Tests for the talk page JSON API

Wiki access goes through the app's MediaWiki client, which is patched here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from talkops.api import PageSource, Revision, SaveStatus
from talkops.errors import TalkError

ANCHOR_A = "A#2021-05-01T10:00Z"
ANCHOR_B = "B#2021-05-01T10:05Z"
ANCHOR_C = "C#2021-05-01T10:10Z"


@pytest.fixture
def wiki_client(app):
    return app.extensions["wiki"]["client"]


class TestParseRoute:
    """Tests for POST /api/parse."""

    def test_parse_wikitext(self, auth_client, thread_wikitext):
        """Test that comments, sections and own comments are returned."""
        response = auth_client.post("/api/parse", json={"wikitext": thread_wikitext})

        assert response.status_code == 200
        data = response.get_json()
        assert [c["anchor"] for c in data["comments"]] == [ANCHOR_A, ANCHOR_B, ANCHOR_C]
        assert data["comments"][1]["is_own"] is True
        assert data["comments"][2]["parent_id"] == data["comments"][1]["id"]
        assert data["sections"][0]["headline"] == "Topic"
        assert data["comments"][0]["is_new"] is None
        assert "changes" not in data

    def test_parse_fetches_page(self, auth_client, wiki_client, thread_wikitext):
        """Test that a page title is resolved through the wiki."""
        source = PageSource(title="Talk:Foo", code=thread_wikitext, revision_id=5)
        with patch.object(wiki_client, "get_page_source", return_value=source) as get_source:
            response = auth_client.post("/api/parse", json={"page": "Talk:Foo"})

        assert response.status_code == 200
        assert response.get_json()["revision_id"] == 5
        get_source.assert_called_once_with("Talk:Foo", None)

    def test_parse_missing_page(self, auth_client, wiki_client):
        error = TalkError("api", "missingtitle", "The page you specified doesn't exist.")
        with patch.object(wiki_client, "get_page_source", side_effect=error):
            response = auth_client.post("/api/parse", json={"page": "Talk:Nope"})
        assert response.status_code == 404
        assert response.get_json()["error"]["code"] == "missingtitle"

    def test_parse_network_failure(self, auth_client, wiki_client):
        with patch.object(wiki_client, "get_page_source", side_effect=TalkError("network", "timeout")):
            response = auth_client.post("/api/parse", json={"page": "Talk:Foo"})
        assert response.status_code == 504

    def test_parse_invalid_title(self, auth_client):
        response = auth_client.post("/api/parse", json={"page": "Talk:A|B"})
        assert response.status_code == 400
        assert "invalid character" in response.get_json()["error"]["message"].lower()

    def test_parse_requires_json_object(self, auth_client):
        response = auth_client.post("/api/parse", data="not json", content_type="text/plain")
        assert response.status_code == 400
        assert response.get_json()["error"]["type"] == "input"

    def test_parse_requires_source(self, auth_client):
        response = auth_client.post("/api/parse", json={"title": "Talk:Foo"})
        assert response.status_code == 400

    def test_track_requires_title(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/parse", json={"wikitext": thread_wikitext, "track": True})
        assert response.status_code == 400

    def test_track_reports_changes(self, auth_client, thread_wikitext):
        """Test that a tracked page reports comments added since the last visit."""
        first = auth_client.post("/api/parse", json={
            "wikitext": thread_wikitext, "title": "Talk:Foo", "track": True,
        }).get_json()
        assert first["changes"] == {"new": [], "changed": [], "deleted": []}
        assert first["comments"][0]["is_seen"] is True

        new_code = thread_wikitext + "::: Reply D [[User:D|D]] 10:20, 1 May 2021 (UTC)\n"
        second = auth_client.post("/api/parse", json={
            "wikitext": new_code, "title": "Talk:Foo", "track": True,
        }).get_json()

        assert second["changes"]["new"] == ["D#2021-05-01T10:20Z"]
        assert second["comments"][3]["is_new"] is True
        assert second["comments"][3]["is_seen"] is False

    def test_track_marks_seen(self, app, auth_client, thread_wikitext):
        new_code = thread_wikitext + "::: Reply D [[User:D|D]] 10:20, 1 May 2021 (UTC)\n"
        auth_client.post("/api/parse", json={"wikitext": thread_wikitext, "title": "Talk:Foo", "track": True})
        auth_client.post("/api/parse", json={
            "wikitext": new_code, "title": "Talk:Foo", "track": True, "seen": ["D#2021-05-01T10:20Z"],
        })

        third = auth_client.post("/api/parse", json={
            "wikitext": new_code, "title": "Talk:Foo", "track": True,
        }).get_json()

        assert third["comments"][3]["is_new"] is False
        assert third["comments"][3]["is_seen"] is True


class TestLocateRoute:
    """Tests for POST /api/locate."""

    def test_locate_by_anchor(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/locate", json={"wikitext": thread_wikitext, "anchor": ANCHOR_B})

        assert response.status_code == 200
        data = response.get_json()
        assert data["location"]["code"] == "Reply B"
        assert data["location"]["reply_indentation_chars"] == "::"
        assert data["comment"]["author"] == "B"

    def test_locate_in_base_wikitext(self, auth_client, thread_wikitext):
        """Test that a comment seen in an older version is found in the new one."""
        new_code = "== Earlier ==\nHello [[User:D|D]] 09:00, 2 May 2021 (UTC)\n\n" + thread_wikitext
        response = auth_client.post("/api/locate", json={
            "wikitext": new_code, "base_wikitext": thread_wikitext, "anchor": ANCHOR_C,
        })
        location = response.get_json()["location"]
        assert location["start_index"] == new_code.index("Reply C")

    def test_locate_with_comment_data(self, auth_client, thread_wikitext):
        comment = auth_client.post("/api/locate", json={
            "wikitext": thread_wikitext, "anchor": ANCHOR_A,
        }).get_json()["comment"]

        response = auth_client.post("/api/locate", json={"wikitext": thread_wikitext, "comment": comment})

        assert response.get_json()["location"]["code"] == "Comment A"

    def test_locate_unknown_anchor(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/locate", json={"wikitext": thread_wikitext, "anchor": "Z#2020-01-01T00:00Z"})
        assert response.status_code == 422
        error = response.get_json()["error"]
        assert error["type"] == "parse"
        assert error["code"] == "locateComment"

    def test_locate_fetches_base_revision(self, auth_client, wiki_client, thread_wikitext):
        """Test that the base revision is fetched when only its id is known."""
        new_code = thread_wikitext.replace("Reply C", "Reply C, edited")
        source = PageSource(title="Talk:Foo", code=new_code, revision_id=6)
        with patch.object(wiki_client, "get_page_source", return_value=source), \
                patch.object(wiki_client, "get_page_wikitext", return_value=thread_wikitext) as get_wikitext:
            response = auth_client.post("/api/locate", json={
                "page": "Talk:Foo", "base_revision_id": 5, "anchor": ANCHOR_C,
            })

        assert response.get_json()["location"]["code"] == "Reply C, edited"
        get_wikitext.assert_called_once_with("Talk:Foo", 5)


class TestReplyRoute:
    """Tests for POST /api/reply."""

    def test_reply_to_comment(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/reply", json={
            "wikitext": thread_wikitext, "anchor": ANCHOR_B, "text": "Thanks.",
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["action"] == "reply"
        assert data["wikitext"] == thread_wikitext + ":: Thanks. ~~~~\n"

    def test_reply_in_section(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/reply", json={
            "wikitext": thread_wikitext, "section": "Topic", "text": "Hi",
        })

        data = response.get_json()
        assert data["action"] == "replyInSection"
        assert data["wikitext"] == thread_wikitext + "Hi ~~~~\n"

    def test_reply_unknown_section(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/reply", json={
            "wikitext": thread_wikitext, "section": "Nothing", "text": "Hi",
        })
        assert response.status_code == 422
        assert response.get_json()["error"]["code"] == "locateSection"

    def test_reply_requires_text(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/reply", json={"wikitext": thread_wikitext, "anchor": ANCHOR_B})
        assert response.status_code == 400

    def test_reply_and_save(self, auth_client, wiki_client, thread_wikitext):
        """Test that the reply is saved against the revision it was computed from."""
        with patch.object(wiki_client, "save_page", return_value=SaveStatus.SUCCESS) as save_page:
            response = auth_client.post("/api/reply", json={
                "wikitext": thread_wikitext, "title": "Talk:Foo", "revision_id": 5,
                "anchor": ANCHOR_B, "text": "Thanks.", "save": True,
            })

        assert response.status_code == 200
        assert response.get_json()["saved"] == "success"
        save_page.assert_called_once_with(
            "Talk:Foo", thread_wikitext + ":: Thanks. ~~~~\n", "Reply", base_revision_id=5,
        )

    def test_save_edit_conflict(self, auth_client, wiki_client, thread_wikitext):
        with patch.object(wiki_client, "save_page", return_value=SaveStatus.EDIT_CONFLICT):
            response = auth_client.post("/api/reply", json={
                "wikitext": thread_wikitext, "title": "Talk:Foo", "revision_id": 5,
                "anchor": ANCHOR_B, "text": "Thanks.", "save": True, "summary": "Answering B",
            })
        assert response.status_code == 409
        assert response.get_json()["saved"] == "edit_conflict"

    def test_save_requires_title(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/reply", json={
            "wikitext": thread_wikitext, "anchor": ANCHOR_B, "text": "Thanks.", "save": True,
        })
        assert response.status_code == 400


class TestAddSectionRoute:
    """Tests for POST /api/add-section."""

    def test_add_section(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/add-section", json={
            "wikitext": thread_wikitext, "headline": "New topic", "text": "Hello",
        })
        data = response.get_json()
        assert data["action"] == "addSection"
        assert data["wikitext"] == thread_wikitext + "\n== New topic ==\nHello ~~~~\n"

    def test_add_section_invalid_level(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/add-section", json={
            "wikitext": thread_wikitext, "headline": "X", "text": "Hello", "level": 7,
        })
        assert response.status_code == 400


class TestEditRoute:
    """Tests for POST /api/edit."""

    def test_edit_text(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/edit", json={
            "wikitext": thread_wikitext, "anchor": ANCHOR_B, "text": "New text",
        })
        data = response.get_json()
        assert data["action"] == "edit"
        assert ": New text [[User:B|B]] 10:05, 1 May 2021 (UTC)\n" in data["wikitext"]

    def test_edit_code_unchanged(self, auth_client, thread_wikitext):
        """Test that writing back the same code leaves the page unchanged."""
        response = auth_client.post("/api/edit", json={
            "wikitext": thread_wikitext, "anchor": ANCHOR_C, "code": "Reply C",
        })
        assert response.get_json()["wikitext"] == thread_wikitext

    def test_edit_headline_of_opening_comment(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/edit", json={
            "wikitext": thread_wikitext, "anchor": ANCHOR_A, "text": "Comment A", "headline": "Renamed",
        })
        assert response.get_json()["wikitext"].startswith("== Renamed ==\n")

    def test_edit_requires_text_or_code(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/edit", json={"wikitext": thread_wikitext, "anchor": ANCHOR_B})
        assert response.status_code == 400


class TestDeleteRoute:
    """Tests for POST /api/delete."""

    def test_delete_with_replies_refused(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/delete", json={"wikitext": thread_wikitext, "anchor": ANCHOR_B})
        assert response.status_code == 422
        assert response.get_json()["error"]["code"] == "delete-repliesToComment"

    def test_delete_leaf(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/delete", json={"wikitext": thread_wikitext, "anchor": ANCHOR_C})
        data = response.get_json()
        assert data["action"] == "delete"
        assert "Reply C" not in data["wikitext"]


class TestAddingEditRoute:
    """Tests for POST /api/adding-edit."""

    def test_adding_edit(self, auth_client, wiki_client, thread_wikitext):
        """Test that the matching revision and a diff link are returned."""
        revision = Revision(revid=10, timestamp=datetime(2021, 5, 1, 10, 5, 20, tzinfo=timezone.utc), user="B")
        diff = (
            '<tr><td colspan="2" class="diff-empty diff-side-deleted"></td>'
            '<td class="diff-marker" data-marker="+"></td>'
            '<td class="diff-addedline diff-side-added"><div>'
            ": Reply B [[User:B|B]] 10:05, 1 May 2021 (UTC)</div></td></tr>"
        )
        with patch.object(wiki_client, "list_revisions", return_value=[revision]), \
                patch.object(wiki_client, "get_diff", return_value=diff):
            response = auth_client.post("/api/adding-edit", json={
                "wikitext": thread_wikitext, "title": "Talk:Foo", "anchor": ANCHOR_B,
            })

        assert response.status_code == 200
        data = response.get_json()
        assert data["revision"]["revid"] == 10
        assert data["link"] == "https://test.invalid/w/index.php?title=Talk%3AFoo&diff=10"

    def test_adding_edit_requires_title(self, auth_client, thread_wikitext):
        response = auth_client.post("/api/adding-edit", json={"wikitext": thread_wikitext, "anchor": ANCHOR_B})
        assert response.status_code == 400

    def test_adding_edit_no_revisions(self, auth_client, wiki_client, thread_wikitext):
        with patch.object(wiki_client, "list_revisions", return_value=[]):
            response = auth_client.post("/api/adding-edit", json={
                "wikitext": thread_wikitext, "title": "Talk:Foo", "anchor": ANCHOR_B,
            })
        assert response.status_code == 502
        assert response.get_json()["error"]["code"] == "noData"


class TestAuthentication:
    """Tests for API access without a username."""

    def test_api_requires_username(self, client, thread_wikitext):
        response = client.post("/api/reply", json={"wikitext": thread_wikitext, "anchor": ANCHOR_B, "text": "x"})
        assert response.status_code == 401

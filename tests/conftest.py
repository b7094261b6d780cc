# tests/conftest.py
# Shared pytest fixtures for talk page tests

from pathlib import Path

import pytest

from config import TestingConfig
from main_app import create_app
from talkops.conventions import get_preset


@pytest.fixture
def conventions():
    return get_preset("mw")


@pytest.fixture
def thread_wikitext():
    """One section: an opening comment, a reply and a reply to the reply."""
    return (
        "== Topic ==\n"
        "Comment A [[User:A|A]] 10:00, 1 May 2021 (UTC)\n"
        ": Reply B [[User:B|B]] 10:05, 1 May 2021 (UTC)\n"
        ":: Reply C [[User:C|C]] 10:10, 1 May 2021 (UTC)\n"
    )


@pytest.fixture
def two_sections_wikitext():
    """Two sections whose comments share author and timestamp."""
    return (
        "== One ==\n"
        "Apples are red [[User:A|A]] 10:00, 1 May 2021 (UTC)\n"
        "\n"
        "== Two ==\n"
        "Bananas are yellow [[User:A|A]] 10:00, 1 May 2021 (UTC)\n"
    )


@pytest.fixture
def talk_page_wikitext():
    """Realistic page: header text, talk links, an unsigned comment and a second section."""
    return (
        "{{Talk header}}\n"
        "\n"
        "== Merge proposal ==\n"
        "I propose merging [[Foo]] into [[Bar]], the articles cover the same subject. "
        "[[User:Alice|Alice]] ([[User talk:Alice|talk]]) 09:15, 3 March 2021 (UTC)\n"
        ":Support, there is not enough material for two articles. "
        "[[User:Bob|Bob]] ([[User talk:Bob|talk]]) 11:02, 3 March 2021 (UTC)\n"
        "::Agreed. {{unsigned|Carol|12:30, 3 March 2021 (UTC)}}\n"
        "\n"
        "== Infobox image ==\n"
        "Could someone replace the infobox image? "
        "[[User:Dave|Dave]] ([[User talk:Dave|talk]]) 08:00, 5 March 2021 (UTC)\n"
    )


@pytest.fixture
def app(tmp_path: Path):
    """Application with a temporary snapshot root."""
    test_config = type(
        "TestConfig",
        (TestingConfig,),
        {"TALK_DATA_ROOT": tmp_path / "data"}
    )
    return create_app(test_config)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    """Test client with a username in the session."""
    with client.session_transaction() as sess:
        sess["username"] = "B"
    return client

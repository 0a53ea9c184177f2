"""Common test fixtures for the notelinks engine."""

import tempfile
from pathlib import Path

import pytest

from notelinks.config import config
from notelinks.models.schema import Note
from notelinks.observability import metrics
from notelinks.services.link_service import LinkService
from notelinks.storage.sql_store import SqlNoteStore
from tests.fakes import CountingNoteStore, FlakyNoteStore


@pytest.fixture(params=["asyncio"])
def anyio_backend(request):
    """Restrict anyio tests to asyncio only (trio is not installed)."""
    return request.param


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector isolated between tests."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for databases and logs."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def test_config(temp_dir, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "base_dir", temp_dir)
    monkeypatch.setattr(config, "database_path", temp_dir / "db" / "notelinks.db")
    monkeypatch.setattr(config, "log_dir", temp_dir / "logs")
    yield config


@pytest.fixture
def sample_notes():
    """A small linked collection.

    Project Plan -> Book Review, Meeting Notes, Missing Note (dangling)
    Book Review  -> Project Plan
    Meeting Notes -> Project Plan, Project Plan (repeated entry)
    Inbox has no links.
    """
    return [
        Note(
            id="n1",
            title="Project Plan",
            content="See [[Book Review|my review]] and [[Meeting Notes]], also [[Missing Note]].",
            outgoing_links=["Book Review", "Meeting Notes", "Missing Note"],
            tags=["work"],
        ),
        Note(
            id="n2",
            title="Book Review",
            content="Related to [[Project Plan]].",
            outgoing_links=["Project Plan"],
            tags=["reading"],
        ),
        Note(
            id="n3",
            title="Meeting Notes",
            content="[[Project Plan]] was discussed. Again: [[Project Plan|the plan]].",
            outgoing_links=["Project Plan", "Project Plan"],
        ),
        Note(id="n4", title="Inbox", content="Nothing linked yet."),
    ]


@pytest.fixture
def counting_store(sample_notes):
    """In-memory store preloaded with the sample notes."""
    return CountingNoteStore(sample_notes)


@pytest.fixture
def link_service(counting_store):
    """LinkService over the counting store."""
    return LinkService(counting_store)


@pytest.fixture
def flaky_store(sample_notes):
    """Store whose failures each test switches on as needed."""
    return FlakyNoteStore(sample_notes)


@pytest.fixture
def sql_store(test_config):
    """SQL store on a temporary SQLite file."""
    store = SqlNoteStore(db_url=test_config.get_db_url())
    yield store
    store.close()

from types import SimpleNamespace

import pytest

from pagesync.config import Settings
from pagesync.lists import SEGMENT_SORTS, default_query, document_key, segment_query
from pagesync.statuses import is_quiet_status, is_transient_document, is_transient_status, status_of


@pytest.mark.parametrize(
    ("status", "transient"),
    [
        ("pending", True),
        ("embedding", True),
        ("storing", True),
        ("maintenance", True),
        ("restoring", True),
        ("completed", False),
        ("error", False),
        ("archived", False),
        (None, False),
    ],
)
def test_transient_statuses(status, transient) -> None:
    assert is_transient_status(status) is transient


def test_status_of_reads_mappings_and_objects() -> None:
    assert status_of({"status": " Embedding "}) == "embedding"
    assert status_of(SimpleNamespace(status="COMPLETED")) == "completed"
    assert status_of({"status": ""}) is None
    assert is_transient_document({"status": "chunking"})
    assert not is_transient_document(object())
    assert is_quiet_status("restoring")
    assert not is_quiet_status("embedding")


def test_document_key_prefers_document_id() -> None:
    assert document_key({"document_id": "doc-1", "id": 7}) == "doc-1"
    assert document_key({"id": 7}) == "7"


def test_list_queries_follow_settings() -> None:
    settings = Settings(page_size=20, default_sort="name asc")

    assert default_query(settings, keywords="manual").to_params() == {"keywords": "manual", "sort": "name asc"}
    assert default_query(settings).page_size == 20
    assert segment_query(settings, "votes").sort == SEGMENT_SORTS["votes"]
    assert segment_query(settings).sort is None

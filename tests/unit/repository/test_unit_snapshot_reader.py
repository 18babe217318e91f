# tests/unit/repository/test_unit_snapshot_reader.py — v1
"""Tests for repository/snapshot_reader.py — commit-scoped git reads."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import GitRepoBuilder
from quartocache.core.errors import NotFoundError, RepositoryStateError
from quartocache.repository.snapshot_reader import GitSnapshotReader


@pytest.fixture
def reader() -> GitSnapshotReader:
    return GitSnapshotReader()


class TestResolve:
    def test_resolve_head(self, reader, doc_repo: GitRepoBuilder):
        assert reader.resolve_head(doc_repo.path) == doc_repo.head

    def test_resolve_branch_and_hash(self, reader, doc_repo: GitRepoBuilder):
        assert reader.resolve_ref(doc_repo.path, "main") == doc_repo.head
        assert reader.resolve_ref(doc_repo.path, doc_repo.head[:12]) == doc_repo.head

    def test_head_follows_branch(self, reader, doc_repo: GitRepoBuilder):
        first = doc_repo.head
        doc_repo.create_branch("feature")
        doc_repo.checkout("feature")
        second = doc_repo.commit({"new.qmd": "# New\n"})
        assert reader.resolve_head(doc_repo.path) == second
        assert reader.resolve_ref(doc_repo.path, "main") == first

    def test_empty_repository(self, reader, git_repo: GitRepoBuilder):
        with pytest.raises(RepositoryStateError, match="no commits"):
            reader.resolve_head(git_repo.path)

    def test_not_a_repository(self, reader, tmp_path: Path):
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(RepositoryStateError):
            reader.resolve_head(plain)

    def test_unknown_ref(self, reader, doc_repo: GitRepoBuilder):
        with pytest.raises(RepositoryStateError, match="nope"):
            reader.resolve_ref(doc_repo.path, "nope")


class TestReadFile:
    def test_reads_committed_bytes(self, reader, doc_repo: GitRepoBuilder):
        assert reader.read_file_at(doc_repo.path, doc_repo.head, "README.md") == b"# repo\n"

    def test_reads_old_commit_not_working_tree(self, reader, doc_repo: GitRepoBuilder):
        old = doc_repo.head
        doc_repo.commit({"README.md": "# changed\n"})
        (doc_repo.path / "README.md").write_text("# dirty\n", encoding="utf-8")
        assert reader.read_file_at(doc_repo.path, old, "README.md") == b"# repo\n"
        assert reader.read_file_at(doc_repo.path, doc_repo.head, "README.md") == b"# changed\n"

    def test_missing_path(self, reader, doc_repo: GitRepoBuilder):
        with pytest.raises(NotFoundError) as exc_info:
            reader.read_file_at(doc_repo.path, doc_repo.head, "nope.qmd")
        assert exc_info.value.commit == doc_repo.head

    def test_directory_is_not_a_file(self, reader, doc_repo: GitRepoBuilder):
        with pytest.raises(NotFoundError):
            reader.read_file_at(doc_repo.path, doc_repo.head, "reports")

    def test_escaping_path(self, reader, doc_repo: GitRepoBuilder):
        with pytest.raises(NotFoundError):
            reader.read_file_at(doc_repo.path, doc_repo.head, "../outside.qmd")

    def test_deleted_file(self, reader, doc_repo: GitRepoBuilder):
        doc_repo.commit({}, remove=("README.md",))
        with pytest.raises(NotFoundError):
            reader.read_file_at(doc_repo.path, doc_repo.head, "README.md")


class TestListing:
    def test_list_files_sorted_and_nested(self, reader, doc_repo: GitRepoBuilder):
        assert reader.list_files_at(doc_repo.path, doc_repo.head) == [
            "README.md",
            "reports/img/sales.png",
            "reports/q3.qmd",
        ]

    def test_list_documents(self, reader, doc_repo: GitRepoBuilder):
        doc_repo.commit({"notes/Draft.QMD": "# d\n", "notes/readme.md": "x"})
        assert reader.list_documents_at(doc_repo.path, "main") == [
            "notes/Draft.QMD",
            "reports/q3.qmd",
        ]

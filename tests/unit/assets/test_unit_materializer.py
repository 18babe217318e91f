# tests/unit/assets/test_unit_materializer.py — v1
"""Tests for assets/materializer.py — commit-scoped asset copies."""

from __future__ import annotations

import pytest

from conftest import PNG_BYTES, GitRepoBuilder
from quartocache.assets.materializer import AssetMaterializer
from quartocache.cache.keys import derive_asset_dir
from quartocache.config.settings import CacheConfig
from quartocache.core.errors import CacheWriteError
from quartocache.core.models import Document, ImageAttrs, ImageNode, ParagraphNode, TextNode
from quartocache.repository.snapshot_reader import GitSnapshotReader

DOC = "reports/q3.qmd"


def _doc(*sources: str) -> Document:
    return Document(
        content=[
            ParagraphNode(
                content=[TextNode(text="See ")]
                + [ImageNode(attrs=ImageAttrs(src=src, alt="x")) for src in sources]
            )
        ]
    )


@pytest.fixture
def asset_repo(git_repo: GitRepoBuilder) -> GitRepoBuilder:
    git_repo.commit(
        {
            DOC: "# T\n",
            "reports/img.png": PNG_BYTES,
            "reports/q3_files/figure-html/plot.png": b"plot",
            "shared/logo.png": b"logo",
        }
    )
    return git_repo


@pytest.fixture
def materializer(cache_config: CacheConfig) -> AssetMaterializer:
    return AssetMaterializer(cache_config, GitSnapshotReader())


class TestMaterialize:
    @pytest.mark.asyncio
    async def test_copies_and_rewrites(self, materializer, asset_repo, cache_config):
        commit = asset_repo.head
        tree, warnings = await materializer.materialize(
            "7", asset_repo.path, commit, DOC, _doc("./img.png")
        )
        image = next(tree.iter_images())
        asset_dir = derive_asset_dir(cache_config.assets_dir, "7", DOC, commit)

        assert warnings == []
        assert image.attrs.src == f"/api/assets/7/{commit}/q3_files/img.png"
        assert image.attrs.original_src == "./img.png"
        assert (asset_dir / "img.png").read_bytes() == PNG_BYTES

    @pytest.mark.asyncio
    async def test_input_tree_not_modified(self, materializer, asset_repo):
        original = _doc("img.png")
        await materializer.materialize("7", asset_repo.path, asset_repo.head, DOC, original)
        assert next(original.iter_images()).attrs.src == "img.png"

    @pytest.mark.asyncio
    async def test_own_files_dir_not_doubled(self, materializer, asset_repo):
        tree, _ = await materializer.materialize(
            "7", asset_repo.path, asset_repo.head, DOC, _doc("q3_files/figure-html/plot.png")
        )
        src = next(tree.iter_images()).attrs.src
        assert src.endswith("/q3_files/figure-html/plot.png")

    @pytest.mark.asyncio
    async def test_outside_document_dir(self, materializer, asset_repo, cache_config):
        commit = asset_repo.head
        tree, warnings = await materializer.materialize(
            "7", asset_repo.path, commit, DOC, _doc("../shared/logo.png", "/shared/logo.png")
        )
        srcs = [img.attrs.src for img in tree.iter_images()]
        assert warnings == []
        assert srcs == [f"/api/assets/7/{commit}/q3_files/_repo/shared/logo.png"] * 2
        asset_dir = derive_asset_dir(cache_config.assets_dir, "7", DOC, commit)
        assert (asset_dir / "_repo" / "shared" / "logo.png").read_bytes() == b"logo"

    @pytest.mark.asyncio
    async def test_missing_asset_warns_on_node(self, materializer, asset_repo):
        tree, warnings = await materializer.materialize(
            "7", asset_repo.path, asset_repo.head, DOC, _doc("gone.png", "img.png")
        )
        missing, found = tree.iter_images()
        assert missing.attrs.src == "gone.png"
        assert missing.attrs.warning
        assert found.attrs.src.startswith("/api/assets/")
        assert [w.code for w in warnings] == ["asset_missing"]

    @pytest.mark.asyncio
    async def test_leaving_repository(self, materializer, asset_repo):
        _, warnings = await materializer.materialize(
            "7", asset_repo.path, asset_repo.head, DOC, _doc("../../etc/passwd")
        )
        assert [w.code for w in warnings] == ["asset_outside_repository"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "src", ["https://example.org/a.png", "//cdn.example.org/a.png", "data:image/png;base64,AA=="]
    )
    async def test_remote_untouched(self, materializer, asset_repo, cache_config, src):
        tree, warnings = await materializer.materialize(
            "7", asset_repo.path, asset_repo.head, DOC, _doc(src)
        )
        assert next(tree.iter_images()).attrs.src == src
        assert warnings == []
        assert not cache_config.assets_dir.exists()

    @pytest.mark.asyncio
    async def test_no_images_no_directory(self, materializer, asset_repo, cache_config):
        await materializer.materialize("7", asset_repo.path, asset_repo.head, DOC, _doc())
        assert not cache_config.assets_dir.exists()


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, materializer, asset_repo, cache_config):
        commit = asset_repo.head
        doc = _doc("img.png", "q3_files/figure-html/plot.png")
        first, _ = await materializer.materialize("7", asset_repo.path, commit, DOC, doc)
        asset_dir = derive_asset_dir(cache_config.assets_dir, "7", DOC, commit)
        snapshot = {
            p.relative_to(asset_dir): (p.read_bytes(), p.stat().st_mtime_ns)
            for p in asset_dir.rglob("*")
            if p.is_file()
        }

        second, _ = await materializer.materialize("7", asset_repo.path, commit, DOC, doc)

        assert second == first
        assert {
            p.relative_to(asset_dir): (p.read_bytes(), p.stat().st_mtime_ns)
            for p in asset_dir.rglob("*")
            if p.is_file()
        } == snapshot

    @pytest.mark.asyncio
    async def test_conflicting_file_not_patched(self, materializer, asset_repo, cache_config):
        commit = asset_repo.head
        asset_dir = derive_asset_dir(cache_config.assets_dir, "7", DOC, commit)
        target = asset_dir / "img.png"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"different")

        tree, warnings = await materializer.materialize("7", asset_repo.path, commit, DOC, _doc("img.png"))

        image = next(tree.iter_images())
        assert warnings == []
        assert target.read_bytes() == b"different"
        assert image.attrs.src == f"/api/assets/7/{commit}/q3_files/_repo/reports/img.png"
        assert (asset_dir / "_repo" / "reports" / "img.png").read_bytes() == PNG_BYTES

    @pytest.mark.asyncio
    async def test_conflict_without_free_name_warns_on_node(
        self, materializer, asset_repo, cache_config
    ):
        commit = asset_repo.head
        asset_dir = derive_asset_dir(cache_config.assets_dir, "7", DOC, commit)
        for target in (asset_dir / "img.png", asset_dir / "_repo" / "reports" / "img.png"):
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(b"different")

        tree, warnings = await materializer.materialize("7", asset_repo.path, commit, DOC, _doc("img.png"))

        image = next(tree.iter_images())
        assert [w.code for w in warnings] == ["asset_conflict"]
        assert image.attrs.src == "img.png"
        assert image.attrs.original_src is None
        assert image.attrs.warning


class TestNameCollisions:
    @pytest.mark.asyncio
    async def test_same_name_within_one_document(self, materializer, git_repo, cache_config):
        git_repo.commit(
            {"doc.qmd": "# T\n", "a.png": b"TOP", "doc_files/a.png": b"FILESDIR"}
        )
        commit = git_repo.head
        tree, warnings = await materializer.materialize(
            "7", git_repo.path, commit, "doc.qmd", _doc("a.png", "doc_files/a.png")
        )
        asset_dir = derive_asset_dir(cache_config.assets_dir, "7", "doc.qmd", commit)
        prefix = f"/api/assets/7/{commit}/doc_files/"

        top, files_dir = tree.iter_images()
        assert warnings == []
        assert top.attrs.src != files_dir.attrs.src
        assert (asset_dir / top.attrs.src[len(prefix):]).read_bytes() == b"TOP"
        assert (asset_dir / files_dir.attrs.src[len(prefix):]).read_bytes() == b"FILESDIR"

    @pytest.mark.asyncio
    async def test_same_stem_two_documents(self, materializer, git_repo, cache_config):
        git_repo.commit(
            {
                "a/doc.qmd": "# A\n",
                "a/img.png": b"AAA",
                "b/doc.qmd": "# B\n",
                "b/img.png": b"BBB",
            }
        )
        commit = git_repo.head
        tree_a, _ = await materializer.materialize(
            "7", git_repo.path, commit, "a/doc.qmd", _doc("img.png")
        )
        tree_b, warnings = await materializer.materialize(
            "7", git_repo.path, commit, "b/doc.qmd", _doc("img.png")
        )
        asset_dir = derive_asset_dir(cache_config.assets_dir, "7", "b/doc.qmd", commit)
        prefix = f"/api/assets/7/{commit}/doc_files/"

        image_a = next(tree_a.iter_images())
        image_b = next(tree_b.iter_images())
        assert warnings == []
        assert image_b.attrs.warning is None
        assert (asset_dir / image_a.attrs.src[len(prefix):]).read_bytes() == b"AAA"
        assert (asset_dir / image_b.attrs.src[len(prefix):]).read_bytes() == b"BBB"

    @pytest.mark.asyncio
    async def test_fallback_name_is_stable(self, materializer, git_repo):
        git_repo.commit({"a/doc.qmd": "# A\n", "a/img.png": b"AAA", "b/doc.qmd": "# B\n", "b/img.png": b"BBB"})
        commit = git_repo.head
        await materializer.materialize("7", git_repo.path, commit, "a/doc.qmd", _doc("img.png"))
        first, _ = await materializer.materialize("7", git_repo.path, commit, "b/doc.qmd", _doc("img.png"))
        second, _ = await materializer.materialize("7", git_repo.path, commit, "b/doc.qmd", _doc("img.png"))
        assert first == second
        assert next(second.iter_images()).attrs.src.endswith("/doc_files/_repo/b/img.png")


class TestWriteFailures:
    @pytest.mark.asyncio
    async def test_write_failure_is_fatal(self, asset_repo, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("x", encoding="utf-8")
        config = CacheConfig(cache_root=tmp_path, rendered_docs_dir=tmp_path / "r", assets_dir=blocker)
        with pytest.raises(CacheWriteError):
            await AssetMaterializer(config, GitSnapshotReader()).materialize(
                "7", asset_repo.path, asset_repo.head, DOC, _doc("img.png")
            )

"""sync.py 单元测试：三方比较、文件列出、复制与 prune"""

from __future__ import annotations

import hashlib
import itertools

import pytest

from knowns.core.models import SKIP_LOCAL_MODIFIED, SKIP_NO_CHANGES, FileAction
from knowns.services.imports.sync import (
    PlannedAction,
    copy_files,
    hash_file,
    list_files,
    matches_any,
    plan_file_action,
    prune_files,
)

ADD = PlannedAction.ADD
UPDATE = PlannedAction.UPDATE
SAME = PlannedAction.SKIP_UNCHANGED
CONFLICT = PlannedAction.SKIP_CONFLICT

# (baseline, target) -> (不带 force, 带 force)；来源哈希固定为 "s"
_DECISIONS = {
    (None, None): (ADD, ADD),
    ("s", None): (ADD, ADD),
    ("t", None): (ADD, ADD),
    ("x", None): (ADD, ADD),
    (None, "s"): (SAME, SAME),
    ("s", "s"): (SAME, SAME),
    ("t", "s"): (SAME, SAME),
    ("x", "s"): (SAME, SAME),
    (None, "t"): (UPDATE, UPDATE),
    ("s", "t"): (CONFLICT, UPDATE),
    ("t", "t"): (UPDATE, UPDATE),
    ("x", "t"): (CONFLICT, UPDATE),
}


class TestPlanFileAction:
    @pytest.mark.parametrize(
        ("baseline", "target", "force"),
        list(itertools.product([None, "s", "t", "x"], [None, "s", "t"], [False, True])),
    )
    def test_decision_table(self, baseline, target, force) -> None:
        expected = _DECISIONS[(baseline, target)][int(force)]
        assert plan_file_action("s", baseline, target, force=force) == expected

    def test_unchanged_checked_before_conflict(self) -> None:
        """目标已与来源一致时即使基线不同也不算冲突"""
        assert plan_file_action("new", "old", "new") == SAME


class TestHashAndMatch:
    def test_hash_prefix(self, tmp_path) -> None:
        path = tmp_path / "a.md"
        path.write_bytes(b"hello")
        assert hash_file(path) == hashlib.sha256(b"hello").hexdigest()[:16]
        assert len(hash_file(path, 8)) == 8

    @pytest.mark.parametrize(("path", "patterns", "expected"), [
        ("guide.md", ["*.md"], True),
        ("sub/guide.md", ["*.md"], True),
        ("sub/guide.md", ["sub/*"], True),
        ("sub/deep/guide.md", ["**/guide.md"], True),
        ("guide.md", ["**/guide.md"], True),
        ("sub/guide.txt", ["*.md"], False),
        ("draft/x.md", ["final/*"], False),
    ])
    def test_matches_any(self, path, patterns, expected) -> None:
        assert matches_any(path, patterns) is expected


class TestListFiles:
    def test_sorted_and_filtered(self, tmp_path) -> None:
        for rel in ["b.md", "a.md", "sub/c.md", "sub/d.txt", ".git/config", "x/.import.json"]:
            (tmp_path / rel).parent.mkdir(parents=True, exist_ok=True)
            (tmp_path / rel).write_text(rel, encoding="utf-8")

        assert list_files(tmp_path) == ["a.md", "b.md", "sub/c.md", "sub/d.txt"]
        assert list_files(tmp_path, include=["*.md"]) == ["a.md", "b.md", "sub/c.md"]
        assert list_files(tmp_path, exclude=["sub/*"]) == ["a.md", "b.md"]
        assert list_files(tmp_path, include=["*.md"], exclude=["a.md"]) == ["b.md", "sub/c.md"]

    def test_missing_dir(self, tmp_path) -> None:
        assert list_files(tmp_path / "nope") == []


class TestCopyFiles:
    @pytest.fixture()
    def dirs(self, tmp_path):
        src, dst = tmp_path / "src", tmp_path / "dst"
        (src / "sub").mkdir(parents=True)
        (src / "a.md").write_text("A1", encoding="utf-8")
        (src / "sub" / "b.md").write_text("B1", encoding="utf-8")
        return src, dst

    def test_first_copy_adds(self, dirs) -> None:
        src, dst = dirs
        changes, hashes = copy_files(src, dst, ["a.md", "sub/b.md"])
        assert [(c.path, c.action) for c in changes] == [
            ("a.md", FileAction.ADD), ("sub/b.md", FileAction.ADD),
        ]
        assert (dst / "sub" / "b.md").read_text(encoding="utf-8") == "B1"
        assert hashes["a.md"] == hash_file(src / "a.md")

    def test_second_copy_skips(self, dirs) -> None:
        src, dst = dirs
        _, hashes = copy_files(src, dst, ["a.md", "sub/b.md"])
        changes, again = copy_files(src, dst, ["a.md", "sub/b.md"], hashes)
        assert all(c.action == FileAction.SKIP and c.skip_reason == SKIP_NO_CHANGES for c in changes)
        assert again == hashes

    def test_upstream_change_updates(self, dirs) -> None:
        src, dst = dirs
        _, hashes = copy_files(src, dst, ["a.md"])
        (src / "a.md").write_text("A2", encoding="utf-8")
        changes, _ = copy_files(src, dst, ["a.md"], hashes)
        assert changes[0].action == FileAction.UPDATE
        assert (dst / "a.md").read_text(encoding="utf-8") == "A2"

    def test_local_edit_protected(self, dirs) -> None:
        src, dst = dirs
        _, hashes = copy_files(src, dst, ["a.md"])
        (dst / "a.md").write_text("LOCAL", encoding="utf-8")
        (src / "a.md").write_text("A2", encoding="utf-8")

        changes, new_hashes = copy_files(src, dst, ["a.md"], hashes)
        assert changes[0].action == FileAction.SKIP
        assert changes[0].skip_reason == SKIP_LOCAL_MODIFIED
        assert (dst / "a.md").read_text(encoding="utf-8") == "LOCAL"
        # 沿用旧基线，再次同步仍能检测到修改
        assert new_hashes["a.md"] == hashes["a.md"]
        changes, _ = copy_files(src, dst, ["a.md"], new_hashes)
        assert changes[0].skip_reason == SKIP_LOCAL_MODIFIED

        changes, _ = copy_files(src, dst, ["a.md"], hashes, force=True)
        assert changes[0].action == FileAction.UPDATE
        assert (dst / "a.md").read_text(encoding="utf-8") == "A2"

    def test_missing_source_file_ignored(self, dirs) -> None:
        src, dst = dirs
        changes, hashes = copy_files(src, dst, ["nope.md"])
        assert changes == [] and hashes == {}


class TestPruneFiles:
    def test_prune_unmodified_and_keep_modified(self, tmp_path) -> None:
        (tmp_path / "old.md").write_text("old", encoding="utf-8")
        (tmp_path / "edited.md").write_text("edited", encoding="utf-8")
        baseline = {
            "old.md": hash_file(tmp_path / "old.md"),
            "edited.md": "0" * 16,
        }

        changes = prune_files(tmp_path, ["old.md", "edited.md", "gone.md"], baseline)
        assert [(c.path, c.action) for c in changes] == [
            ("old.md", FileAction.DELETE), ("edited.md", FileAction.SKIP),
        ]
        assert not (tmp_path / "old.md").exists()
        assert (tmp_path / "edited.md").exists()

    def test_force_prunes_everything(self, tmp_path) -> None:
        (tmp_path / "edited.md").write_text("edited", encoding="utf-8")
        changes = prune_files(tmp_path, ["edited.md"], {}, force=True)
        assert changes[0].action == FileAction.DELETE
        assert not (tmp_path / "edited.md").exists()

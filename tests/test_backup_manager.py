from core.backup_manager import BackupManager
from core.errors import DocumentIOError
from pathlib import Path
import tempfile

import pytest


def test_backup_list_and_read():
    with tempfile.TemporaryDirectory() as td:
        base = Path(td)
        source = base / "espanso" / "match" / "base.yml"

        bm = BackupManager(base / "backups")
        path = bm.backup_bytes(source, b"matches: []\n")
        assert path.exists()
        assert path.name.startswith("base.yml.")
        assert path.suffix == ".bak"

        items = bm.list_backups()
        assert [item["name"] for item in items] == [path.name]
        assert items[0]["meta"]["source"] == str(source)
        assert items[0]["meta"]["size"] == len(b"matches: []\n")

        assert bm.read_backup(path.name) == b"matches: []\n"


def test_list_filters_by_file_name():
    with tempfile.TemporaryDirectory() as td:
        bm = BackupManager(Path(td))
        bm.backup_bytes(Path("/e/match/base.yml"), b"a")
        bm.backup_bytes(Path("/e/config/default.yml"), b"b")
        assert len(bm.list_backups("base.yml")) == 1
        assert len(bm.list_backups("default.yml")) == 1
        assert len(bm.list_backups()) == 2


def test_old_backups_are_pruned():
    with tempfile.TemporaryDirectory() as td:
        bm = BackupManager(Path(td), keep=1)
        for content in (b"one", b"two", b"three"):
            bm.backup_bytes(Path("/e/match/base.yml"), content)
        items = bm.list_backups("base.yml")
        assert len(items) == 1
        assert bm.read_backup(items[0]["name"]) == b"three"
        assert len(list(Path(td).glob("*.json"))) == 1


def test_unknown_backup():
    with tempfile.TemporaryDirectory() as td:
        bm = BackupManager(Path(td))
        with pytest.raises(FileNotFoundError):
            bm.read_backup("nope.bak")


def test_same_name_in_different_folders_is_kept_apart():
    with tempfile.TemporaryDirectory() as td:
        root = Path(td) / "espanso"
        bm = BackupManager(Path(td) / "backups", keep=1, source_root=root)
        top = bm.backup_bytes(root / "match" / "base.yml", b"top")
        nested = bm.backup_bytes(root / "match" / "work" / "base.yml", b"nested")
        assert top.name.startswith("match+base.yml.")
        assert nested.name.startswith("match+work+base.yml.")

        assert [i["name"] for i in bm.list_backups(root / "match" / "base.yml")] == [top.name]
        assert [i["name"] for i in bm.list_backups(root / "match" / "work" / "base.yml")] == [nested.name]
        assert bm.read_backup(top.name) == b"top"


def test_similar_file_names_do_not_share_backups():
    with tempfile.TemporaryDirectory() as td:
        bm = BackupManager(Path(td), keep=1)
        bm.backup_bytes(Path("/e/match/base.yml"), b"a")
        bm.backup_bytes(Path("/e/match/base.yml.old.yml"), b"b")
        assert len(bm.list_backups("base.yml")) == 1
        assert len(bm.list_backups("base.yml.old.yml")) == 1


def test_unwritable_backup_dir_raises_document_io_error():
    with tempfile.TemporaryDirectory() as td:
        root = Path(td) / "backups"
        bm = BackupManager(root)
        root.rmdir()
        root.write_text("not a directory", encoding="utf-8")
        with pytest.raises(DocumentIOError):
            bm.backup_bytes(Path("/e/match/base.yml"), b"a")

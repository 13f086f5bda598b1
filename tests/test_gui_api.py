from pathlib import Path
import tempfile

from core.config_manager import ConfigManager
from core.file_watcher import WatchEvent
from core.parser import parse_config, parse_match_file
from core.watcher_manager import WatcherManager
from ui.gui_api import GUIApi


class FakeWatcher:
    def __init__(self):
        self._events = []

    def start(self):
        pass

    def stop(self):
        pass

    def register_callback(self, cb):
        pass

    def poll(self):
        evs, self._events = self._events, []
        return evs

    def push(self, path):
        self._events.append(WatchEvent(src_path=Path(path), event_type="modified"))


class FakeDialogs:
    def __init__(self, directory=None, file=None):
        self.directory = directory
        self.file = file

    def pick_directory(self, directory=None):
        return self.directory

    def pick_file(self, directory=None):
        return self.file


def _make_espanso(root: Path) -> Path:
    (root / "config").mkdir(parents=True)
    (root / "match").mkdir()
    (root / "config" / "default.yml").write_text("backend: Auto\nfuture_option: 42\n", encoding="utf-8")
    (root / "match" / "base.yml").write_text(
        "matches:\n  - trigger: ':hi'\n    replace: hello\n", encoding="utf-8"
    )
    return root


def _api(td: Path, dialogs=None):
    espanso = _make_espanso(td / "espanso")
    watchers = []

    def factory(paths):
        fake = FakeWatcher()
        watchers.append(fake)
        return WatcherManager(paths, watcher=fake)

    api = GUIApi(
        config_manager=ConfigManager(base_dir=td / "profile"),
        dialogs=dialogs or FakeDialogs(),
        watcher_factory=factory,
        espanso_dir=espanso,
    )
    return api, espanso, watchers


def test_settings_list_match_files():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        settings = api.get_settings()
        assert settings["valid"] is True
        assert settings["watching"] is True
        assert [f["name"] for f in settings["matchFiles"]] == ["base"]
        api.shutdown()


def test_edit_and_save_match_file():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        path = str(espanso / "match" / "base.yml")

        opened = api.open_document(path)
        assert opened["status"] == "success"
        assert opened["document"]["matches"][0]["triggers"] == [":hi"]

        res = api.update_match(path, 0, {"replace": "hey"})
        assert res["session"]["state"] == "dirty"
        assert api.get_settings()["matchFiles"][0]["dirty"] is True

        res = api.save(path)
        assert res["status"] == "success"
        assert "error" not in res
        saved = parse_match_file((espanso / "match" / "base.yml").read_bytes())
        assert saved.matches[0].get("replace") == "hey"


def test_save_with_errors_is_refused():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        path = str(espanso / "match" / "base.yml")
        api.open_document(path)
        api.add_match(path)
        res = api.save(path)
        assert res["status"] == "refused"
        assert any(issue["field"] == "matches[1].trigger" for issue in res["issues"])

        res = api.remove_match(path, 1)
        assert res["session"]["state"] == "dirty"
        assert api.save(path)["status"] == "success"


def test_warnings_need_confirmation_from_the_ui():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        path = str(espanso / "match" / "base.yml")
        api.open_document(path)
        api.add_match(path, {"trigger": ":blank"})
        assert api.save(path)["status"] == "needs_confirmation"
        assert api.save(path, True)["status"] == "success"


def test_config_edit_keeps_unknown_fields():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        opened = api.open_config()
        path = opened["session"]["path"]
        assert opened["document"]["unknown"] == {"future_option": 42}
        assert opened["document"]["effective"]["toggle_key"] == "OFF"

        res = api.set_option(path, "clipboard_threshold", "lots")
        assert res["status"] == "error"
        assert res["field"] == "clipboard_threshold"

        api.set_option(path, "backend", "Clipboard")
        assert api.save(path)["status"] == "success"
        saved = parse_config((espanso / "config" / "default.yml").read_bytes())
        assert saved.get("backend") == "Clipboard"
        assert saved.unknown["future_option"].to_python() == 42


def test_poll_changes_reloads_clean_documents():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, watchers = _api(Path(td))
        target = espanso / "match" / "base.yml"
        api.open_document(str(target))

        target.write_text("matches:\n  - trigger: ':bye'\n    replace: later\n", encoding="utf-8")
        watchers[-1].push(target)
        res = api.poll_changes()
        assert res["changes"][0]["status"] == "reloaded"
        doc = api.get_document(str(target))
        assert doc["document"]["matches"][0]["triggers"] == [":bye"]


def test_poll_changes_flags_conflict_on_dirty_documents():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, watchers = _api(Path(td))
        target = espanso / "match" / "base.yml"
        path = str(target)
        api.open_document(path)
        api.update_match(path, 0, {"replace": "mine"})

        target.write_text("matches:\n  - trigger: ':hi'\n    replace: theirs\n", encoding="utf-8")
        watchers[-1].push(target)
        assert api.poll_changes()["changes"][0]["status"] == "conflict"
        assert api.save(path)["status"] == "conflict"
        assert api.reload(path)["status"] == "reloaded"
        assert api.get_document(path)["document"]["matches"][0]["replace"] == "theirs"


def test_match_file_management():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        res = api.create_match_file("work")
        assert res["status"] == "success"
        assert sorted(f["name"] for f in res["matchFiles"]) == ["base", "work"]

        assert api.create_match_file("bad/name")["status"] == "error"

        res = api.rename_match_file(res["path"], "office")
        assert res["status"] == "success"
        assert (espanso / "match" / "office.yml").exists()

        res = api.delete_match_file(str(espanso / "match" / "office.yml"))
        assert [f["name"] for f in res["matchFiles"]] == ["base"]
        assert api.delete_match_file(str(espanso / "config" / "default.yml"))["status"] == "error"


def test_rename_refused_while_dirty():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        path = str(espanso / "match" / "base.yml")
        api.open_document(path)
        api.update_match(path, 0, {"label": "Greeting"})
        assert api.rename_match_file(path, "other")["status"] == "error"


def test_import_match_file():
    with tempfile.TemporaryDirectory() as td:
        source = Path(td) / "shared.yml"
        source.write_text("matches:\n  - trigger: ':x'\n    replace: y\n", encoding="utf-8")
        api, espanso, _ = _api(Path(td), dialogs=FakeDialogs(file=str(source)))
        res = api.import_match_file()
        assert res["status"] == "success"
        assert (espanso / "match" / "shared.yml").exists()
        assert api.import_match_file()["status"] == "error"


def test_open_malformed_document():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        broken = espanso / "match" / "broken.yml"
        broken.write_text("matches:\n  - triggers: [\n", encoding="utf-8")
        res = api.open_document(str(broken))
        assert res["status"] == "error"
        assert res["kind"] == "malformed"
        assert api.get_document(str(broken))["status"] == "error"


def test_espanso_dir_selection():
    with tempfile.TemporaryDirectory() as td:
        other = _make_espanso(Path(td) / "other")
        api, espanso, watchers = _api(Path(td), dialogs=FakeDialogs(directory=str(other)))

        assert api.set_espanso_dir(str(Path(td) / "missing"))["status"] == "error"
        assert api.set_espanso_dir("  ")["status"] == "error"

        res = api.browse_espanso_dir()
        assert res["espansoDir"] == str(other)
        assert len(watchers) == 2
        assert ConfigManager(base_dir=Path(td) / "profile").get_espanso_dir() == other

        api._dialogs = FakeDialogs()
        assert api.browse_espanso_dir() == {"status": "cancelled"}


def test_schema_for_forms():
    with tempfile.TemporaryDirectory() as td:
        api, _, _ = _api(Path(td))
        fields = {f["name"]: f for f in api.get_schema("config")["fields"]}
        assert fields["backend"]["choices"] == ["Auto", "Clipboard", "Inject"]
        assert fields["toggle_key"]["default"] == "OFF"
        match_schema = api.get_schema("match_file")
        assert "trigger" in [f["name"] for f in match_schema["matchFields"]]


def test_reset_config_to_defaults():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        path = api.open_config()["session"]["path"]
        res = api.reset_to_defaults(path)
        assert res["status"] == "success"
        assert res["session"]["state"] == "dirty"
        assert res["document"]["options"] == {}
        assert res["document"]["unknown"] == {"future_option": 42}
        assert api.save(path)["status"] == "success"
        assert (espanso / "config" / "default.yml").read_bytes() == b"future_option: 42\n"


def test_restore_backup_through_the_api():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        path = str(espanso / "match" / "base.yml")
        api.open_document(path)
        api.update_match(path, 0, {"replace": "hey"})
        api.save(path)

        backups = api.list_backups(path)["backups"]
        assert len(backups) == 1
        assert backups[0]["name"].startswith("match+base.yml.")

        res = api.restore_backup(path, backups[0]["name"])
        assert res["status"] == "success"
        assert res["session"]["state"] == "dirty"
        assert res["document"]["matches"][0]["replace"] == "hello"
        assert api.restore_backup(path, "nope.bak")["status"] == "error"


def test_delete_keeps_the_file_when_backup_fails():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        blocker = Path(td) / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        api._backups.backup_root = blocker
        target = espanso / "match" / "base.yml"
        res = api.delete_match_file(str(target))
        assert res["status"] == "error"
        assert target.exists()


def test_match_body_follows_its_content_field():
    with tempfile.TemporaryDirectory() as td:
        api, espanso, _ = _api(Path(td))
        target = espanso / "match" / "rich.yml"
        target.write_text(
            "matches:\n  - trigger: ':md'\n    markdown: '**bold**'\n  - trigger: ':img'\n    image_path: a.png\n",
            encoding="utf-8",
        )
        doc = api.open_document(str(target))["document"]
        assert [m["contentKey"] for m in doc["matches"]] == ["markdown", "image_path"]

        res = api.update_match(str(target), 0, {"markdown": "*soft*"})
        first = res["document"]["matches"][0]
        assert first["fields"] == {"trigger": ":md", "markdown": "*soft*"}
        assert res["session"]["issues"] == []

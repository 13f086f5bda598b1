from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from core.errors import DocumentIOError


class BackupManager:
    """Keep timestamped copies of documents before the editor overwrites them.

    Backups live in a flat directory as `<label>.<timestamp>.bak`, with a JSON
    sidecar that records where the copy came from. The label is the source's
    path below `source_root` with `+` between the parts (`match+work+base.yml`),
    so files sharing a name in different folders keep separate histories.
    Sources outside `source_root` are labelled by file name.
    """

    def __init__(self, backup_root: Path, keep: int = 20, source_root: Optional[Path] = None) -> None:
        self.backup_root = Path(backup_root)
        self.backup_root.mkdir(parents=True, exist_ok=True)
        self.keep = max(1, keep)
        self.source_root = Path(source_root) if source_root is not None else None

    def label(self, source: Union[Path, str]) -> str:
        path = Path(source)
        if self.source_root is not None:
            try:
                return "+".join(path.relative_to(self.source_root).parts)
            except ValueError:
                pass
        return path.name

    def backup_bytes(self, source: Path, data: bytes) -> Path:
        label = self.label(source)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        target = self.backup_root / f"{label}.{timestamp}.bak"
        meta = {"source": str(source), "timestamp": timestamp, "size": len(data)}
        try:
            target.write_bytes(data)
            target.with_suffix(".json").write_text(json.dumps(meta), encoding="utf-8")
        except OSError as exc:
            print(f"[ERROR] Could not write backup {target}: {exc}", flush=True)
            raise DocumentIOError.from_os_error(target, exc) from exc
        self._prune(source)
        return target

    def list_backups(self, source: Optional[Union[Path, str]] = None) -> List[Dict[str, Any]]:
        """Newest first. `source` narrows the list to one file's backups."""
        label = self.label(source) if source is not None else None
        items = []
        for child in sorted(self.backup_root.glob("*.bak"), reverse=True):
            # <label>.<timestamp>.bak; the timestamp has no dots
            if label is not None and child.name[: -len(".bak")].rpartition(".")[0] != label:
                continue
            meta: Dict[str, Any] = {}
            meta_file = child.with_suffix(".json")
            if meta_file.exists():
                try:
                    meta = json.loads(meta_file.read_text(encoding="utf-8"))
                except (OSError, ValueError):
                    meta = {}
            items.append({"name": child.name, "path": str(child), "meta": meta})
        return items

    def read_backup(self, backup_name: str) -> bytes:
        path = self.backup_root / backup_name
        if path.suffix != ".bak" or path.parent != self.backup_root or not path.is_file():
            raise FileNotFoundError(f"Backup not found: {backup_name}")
        return path.read_bytes()

    def _prune(self, source: Path) -> None:
        stale = self.list_backups(source)[self.keep:]
        for item in stale:
            path = Path(item["path"])
            path.unlink(missing_ok=True)
            path.with_suffix(".json").unlink(missing_ok=True)

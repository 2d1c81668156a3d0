"""
Upload/report state for the HTTP layer.

Uploaded files live in upload_dir (one current file per table kind; a new
upload of the same kind replaces the previous one). The last RunReport and
the report files it produced are kept in memory until the next run or clear().
"""
import logging
import threading
from datetime import datetime
from pathlib import Path

from zapinteligencia.models.records import TableKind
from zapinteligencia.services.file_loader import detect_table_kind
from zapinteligencia.services.pipeline import RunReport

logger = logging.getLogger(__name__)


class RunStore:
    def __init__(self, upload_dir: str | Path, output_dir: str | Path):
        self.upload_dir = Path(upload_dir)
        self.output_dir = Path(output_dir)
        self._lock = threading.Lock()
        self._uploads: dict[TableKind, Path] = {}
        self.last_report: RunReport | None = None
        self.last_files: dict[str, Path] = {}
        self.last_persist: dict | None = None

    def ensure_dirs(self):
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def save_upload(self, filename: str, content: bytes) -> tuple[TableKind, Path]:
        kind = detect_table_kind(filename)
        if kind is None:
            raise ValueError(f"Tipo de arquivo não reconhecido pelo nome: {filename}")
        self.ensure_dirs()
        path = self.upload_dir / Path(filename).name
        with self._lock:
            previous = self._uploads.get(kind)
            if previous is not None and previous != path and previous.exists():
                previous.unlink()
            path.write_bytes(content)
            self._uploads[kind] = path
        logger.info("Upload saved: %s (%s, %d bytes)", path.name, kind.value, len(content))
        return kind, path

    def uploads(self) -> dict[TableKind, Path]:
        with self._lock:
            return {kind: path for kind, path in self._uploads.items() if path.exists()}

    def set_result(self, report: RunReport, files: dict[str, Path], persist: dict | None = None):
        with self._lock:
            self.last_report = report
            self.last_files = dict(files)
            self.last_persist = persist

    def output_file(self, filename: str) -> Path | None:
        """A file inside output_dir, or None. Names with path components are rejected."""
        if not filename or Path(filename).name != filename:
            return None
        path = self.output_dir / filename
        return path if path.is_file() else None

    def status(self) -> dict:
        uploads = self.uploads()
        report = self.last_report
        return {
            "uploaded": {
                kind.value: {
                    "filename": path.name,
                    "size": path.stat().st_size,
                    "modified_at": datetime.fromtimestamp(path.stat().st_mtime).isoformat(),
                }
                for kind, path in uploads.items()
            },
            "missing": [kind.value for kind in TableKind if kind not in uploads],
            "last_run": report.ran_at.isoformat() if report else None,
            "reports": {name: path.name for name, path in self.last_files.items()},
            "last_persist": self.last_persist,
        }

    def clear(self) -> int:
        """Delete uploaded files and forget the last run. Returns files removed."""
        removed = 0
        with self._lock:
            for path in self._uploads.values():
                if path.exists():
                    path.unlink()
                    removed += 1
            self._uploads.clear()
            self.last_report = None
            self.last_files = {}
            self.last_persist = None
        logger.info("Cache cleared: %d uploaded files removed", removed)
        return removed

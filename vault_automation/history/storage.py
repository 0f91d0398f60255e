"""Storage backends for execution history"""

import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from .models import ExecutionRecord

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\s]+')


class HistoryStorage(ABC):
    """Abstract storage interface for execution records"""

    @abstractmethod
    def save_record(self, record: ExecutionRecord):
        """Persist a record, replacing an earlier save of the same id"""
        pass

    @abstractmethod
    def get_record(self, record_id: str) -> Optional[ExecutionRecord]:
        pass

    @abstractmethod
    def load_records(self, workflow_path: str) -> List[ExecutionRecord]:
        """Records of one workflow document, newest first"""
        pass

    @abstractmethod
    def load_all_records(self) -> List[ExecutionRecord]:
        """All records, newest first"""
        pass

    @abstractmethod
    def delete_record(self, record_id: str) -> bool:
        pass

    @abstractmethod
    def delete_all_records(self, workflow_path: Optional[str] = None) -> int:
        """Delete the records of one workflow, or all records. Returns the count"""
        pass


class InMemoryHistoryStorage(HistoryStorage):
    """Keeps records in a dict. Useful for tests and short-lived hosts"""

    def __init__(self):
        self._records: Dict[str, ExecutionRecord] = {}

    def save_record(self, record: ExecutionRecord):
        self._records[record.id] = record

    def get_record(self, record_id: str) -> Optional[ExecutionRecord]:
        return self._records.get(record_id)

    def load_records(self, workflow_path: str) -> List[ExecutionRecord]:
        return [r for r in self.load_all_records() if r.workflow_path == workflow_path]

    def load_all_records(self) -> List[ExecutionRecord]:
        return sorted(self._records.values(), key=lambda r: r.started_at, reverse=True)

    def delete_record(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def delete_all_records(self, workflow_path: Optional[str] = None) -> int:
        doomed = [
            r.id
            for r in self._records.values()
            if workflow_path is None or r.workflow_path == workflow_path
        ]
        for record_id in doomed:
            del self._records[record_id]
        return len(doomed)


class FileSystemHistoryStorage(HistoryStorage):
    """
    One JSON file per execution under a history directory.

    Files are named ``{workflow}_{YYYY-MM-DD_HH-MM-SS}.json``. Only the newest
    ``keep_snapshots`` records of each workflow keep their variable snapshot.
    """

    def __init__(self, history_dir: Path, keep_snapshots: int = 1):
        self.history_dir = Path(history_dir)
        self.keep_snapshots = keep_snapshots
        self.history_dir.mkdir(parents=True, exist_ok=True)
        self._paths: Dict[str, Path] = {}

    def _file_name(self, record: ExecutionRecord) -> str:
        base = record.workflow_name or Path(record.workflow_path).stem or "workflow"
        base = _UNSAFE_CHARS.sub("_", base).strip("_") or "workflow"
        stamp = record.started_at.strftime("%Y-%m-%d_%H-%M-%S")
        candidate = f"{base}_{stamp}.json"
        suffix = 1
        while (self.history_dir / candidate).exists() and self._owner(candidate) != record.id:
            suffix += 1
            candidate = f"{base}_{stamp}_{suffix}.json"
        return candidate

    def _owner(self, file_name: str) -> Optional[str]:
        for record_id, path in self._paths.items():
            if path.name == file_name:
                return record_id
        return None

    def _read(self, path: Path) -> Optional[ExecutionRecord]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                record = ExecutionRecord.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Skipping unreadable history file {path}: {e}")
            return None
        self._paths[record.id] = path
        return record

    def _write(self, path: Path, record: ExecutionRecord):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, indent=2, ensure_ascii=False, default=str)

    def save_record(self, record: ExecutionRecord):
        path = self._paths.get(record.id)
        if path is None:
            path = self.history_dir / self._file_name(record)
            self._paths[record.id] = path
        self._write(path, record)
        self._prune_snapshots(record.workflow_path)

    def _prune_snapshots(self, workflow_path: str):
        """Strip variable snapshots from all but the newest records"""
        for record in self.load_records(workflow_path)[self.keep_snapshots :]:
            if record.variables_snapshot is not None:
                record.variables_snapshot = None
                self._write(self._paths[record.id], record)

    def get_record(self, record_id: str) -> Optional[ExecutionRecord]:
        path = self._paths.get(record_id)
        if path is not None and path.exists():
            return self._read(path)
        for record in self.load_all_records():
            if record.id == record_id:
                return record
        return None

    def load_all_records(self) -> List[ExecutionRecord]:
        if not self.history_dir.exists():
            return []
        records = []
        for path in self.history_dir.glob("*.json"):
            record = self._read(path)
            if record is not None:
                records.append(record)
        records.sort(key=lambda r: r.started_at, reverse=True)
        return records

    def load_records(self, workflow_path: str) -> List[ExecutionRecord]:
        return [r for r in self.load_all_records() if r.workflow_path == workflow_path]

    def delete_record(self, record_id: str) -> bool:
        if self.get_record(record_id) is None:
            return False
        path = self._paths.pop(record_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def delete_all_records(self, workflow_path: Optional[str] = None) -> int:
        records = (
            self.load_all_records()
            if workflow_path is None
            else self.load_records(workflow_path)
        )
        count = 0
        for record in records:
            if self.delete_record(record.id):
                count += 1
        return count

# Local recovery cache - remembers uploads that did not finish so they can be resumed

import json
import os
import time
import uuid
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import List, Optional

# Recovery data expiration time (1 hour, same as presigned URL lifetime)
RECOVERY_DATA_EXPIRY = 60 * 60


def default_cache_path() -> Path:
    base = os.getenv("INSIGHTFUL_CACHE_DIR")
    root = Path(base) if base else Path.home() / ".insightful"
    return root / "recovery.json"


@dataclass
class PendingUpload:
    file_path: str
    file_name: str
    content_type: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: float = field(default_factory=time.time)
    expires_at: float = 0.0
    # Set once the object is in storage; resuming then only needs /complete
    file_key: Optional[str] = None
    file_url: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = None

    def __post_init__(self):
        if not self.expires_at:
            self.expires_at = self.created_at + RECOVERY_DATA_EXPIRY

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) > self.expires_at


class RecoveryCache:
    """JSON file of PendingUpload entries; expired entries are pruned on read"""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_cache_path()

    def _read(self) -> List[PendingUpload]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            # Corrupt cache is dropped rather than blocking uploads
            return []
        entries = []
        for item in raw if isinstance(raw, list) else []:
            try:
                entries.append(PendingUpload(**item))
            except TypeError:
                continue
        return entries

    def _write(self, entries: List[PendingUpload]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps([asdict(e) for e in entries], indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def entries(self, now: Optional[float] = None) -> List[PendingUpload]:
        entries = self._read()
        live = [e for e in entries if not e.is_expired(now)]
        if len(live) != len(entries):
            self._write(live)
        return live

    def get(self, entry_id: str) -> Optional[PendingUpload]:
        for entry in self.entries():
            if entry.id == entry_id:
                return entry
        return None

    def save(self, entry: PendingUpload) -> None:
        entries = [e for e in self.entries() if e.id != entry.id]
        entries.append(entry)
        self._write(entries)

    def remove(self, entry_id: str) -> bool:
        entries = self.entries()
        remaining = [e for e in entries if e.id != entry_id]
        if len(remaining) == len(entries):
            return False
        self._write(remaining)
        return True

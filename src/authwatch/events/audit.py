"""JSONL audit sink - append-only, hash-chained security event log."""

import hashlib
import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, Optional

from authwatch.common.exceptions import AuditLogIntegrityError
from authwatch.core.types import SecurityEventType
from authwatch.data.schemas.event import SecurityEvent


class JsonlAuditSink:
    """Records every security event immutably in daily JSONL files.
    
    Each line carries ``previous_hash`` and ``entry_hash``; the hash is
    computed over the line with ``entry_hash`` set to null, so any edit
    or removal breaks the chain from that line on.
    """
    
    def __init__(
        self,
        log_dir: str,
        log_filename_pattern: str = "authwatch_events_{date}.jsonl",
        enable_hash_chain: bool = True,
        hash_algorithm: str = "sha256",
    ):
        """Initialize the audit sink.
        
        Args:
            log_dir: Directory for audit logs. Created if missing.
            log_filename_pattern: Pattern for log filename. {date} is replaced.
            enable_hash_chain: Whether to chain entry hashes.
            hash_algorithm: hashlib algorithm name.
        """
        self.log_dir = Path(log_dir)
        self.log_filename_pattern = log_filename_pattern
        self.enable_hash_chain = enable_hash_chain
        self.hash_algorithm = hash_algorithm
        
        self._lock = threading.Lock()
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._last_hash: Optional[str] = (
            self._read_last_hash(self._log_path()) if enable_hash_chain else None
        )
    
    def _log_path(self, date: Optional[str] = None) -> Path:
        date = date or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return self.log_dir / self.log_filename_pattern.replace("{date}", date)
    
    @staticmethod
    def _read_last_hash(log_path: Path) -> Optional[str]:
        if not log_path.exists():
            return None
        
        last_hash = None
        with open(log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    last_hash = json.loads(line).get("entry_hash")
        return last_hash
    
    def _compute_hash(self, entry: Dict[str, Any]) -> str:
        content = json.dumps({**entry, "entry_hash": None}, sort_keys=True, default=str)
        hasher = hashlib.new(self.hash_algorithm)
        hasher.update(content.encode("utf-8"))
        return hasher.hexdigest()
    
    def __call__(self, event: SecurityEvent) -> Dict[str, Any]:
        """Append one event (thread-safe). Returns the written entry."""
        entry = event.to_log_dict()
        
        with self._lock:
            log_path = self._log_path()
            if self.enable_hash_chain:
                if not log_path.exists():
                    # New day, new chain
                    self._last_hash = None
                entry["previous_hash"] = self._last_hash
                entry["entry_hash"] = self._compute_hash(entry)
            
            with open(log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, sort_keys=True, default=str) + "\n")
            
            if self.enable_hash_chain:
                self._last_hash = entry["entry_hash"]
        
        return entry
    
    def get_entries(
        self,
        date: Optional[str] = None,
        event_type: Optional[SecurityEventType] = None,
        user_id: Optional[str] = None,
    ) -> Generator[Dict[str, Any], None, None]:
        """Yield logged entries, optionally filtered."""
        log_path = self._log_path(date)
        if not log_path.exists():
            return
        
        with open(log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                
                if event_type and entry.get("type") != SecurityEventType(event_type).value:
                    continue
                if user_id and entry.get("user_id") != user_id:
                    continue
                yield entry
    
    def verify_integrity(self, date: Optional[str] = None) -> bool:
        """Verify the hash chain of one day's log.
        
        Raises:
            AuditLogIntegrityError: On the first broken link or altered entry
        """
        if not self.enable_hash_chain:
            return True
        
        log_path = self._log_path(date)
        if not log_path.exists():
            return True
        
        previous_hash = None
        with open(log_path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError as e:
                    raise AuditLogIntegrityError(
                        f"Malformed entry at line {line_number}", line_number
                    ) from e
                
                if entry.get("previous_hash") != previous_hash:
                    raise AuditLogIntegrityError(
                        f"Hash chain broken at line {line_number}", line_number
                    )
                if self._compute_hash(entry) != entry.get("entry_hash"):
                    raise AuditLogIntegrityError(
                        f"Entry hash mismatch at line {line_number}", line_number
                    )
                previous_hash = entry["entry_hash"]
        
        return True

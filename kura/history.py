"""kura.history - Persistent command history"""

import json
import struct
import time
from pathlib import Path
from typing import Any, Dict, List
try:
    import lmdb
except ImportError:
    print("Please install lmdb: pip install lmdb")
    raise

from .errors import ConfigError

HISTORY_SIZE = 100


class History:
    """
    Command history kept in LMDB, shared by every kura session of a user.

    Entries are keyed by a big-endian sequence number so a cursor walks them
    oldest first. Only the newest `size` entries are kept.
    """

    def __init__(self, db_path: str, size: int = HISTORY_SIZE):
        self.db_path = Path(db_path)
        self.size = size
        try:
            self.db_path.mkdir(parents=True, exist_ok=True)
            self.env = lmdb.open(
                str(self.db_path),
                map_size=16 * 1024 * 1024,
                max_dbs=2,
                metasync=False,
            )
            with self.env.begin(write=True) as txn:
                self.lines_db = self.env.open_db(b'lines', txn=txn)
        except (OSError, lmdb.Error) as e:
            raise ConfigError(f"can't initialize history at {self.db_path}: {e}") from e

    def _serialize(self, obj: Any) -> bytes:
        return json.dumps(obj).encode('utf-8')

    def _deserialize(self, data: bytes) -> Any:
        return json.loads(data.decode('utf-8'))

    @staticmethod
    def _key(seq: int) -> bytes:
        return struct.pack('>Q', seq)

    def append(self, line: str) -> None:
        """Record a line, dropping the oldest entries past the size limit."""
        with self.env.begin(write=True, db=self.lines_db) as txn:
            cursor = txn.cursor()
            seq = struct.unpack('>Q', cursor.key())[0] + 1 if cursor.last() else 0
            entry = {'line': line, 'at': time.time()}
            txn.put(self._key(seq), self._serialize(entry))

            excess = txn.stat(self.lines_db)['entries'] - self.size
            if excess > 0 and cursor.first():
                for _ in range(excess):
                    if not cursor.delete():
                        break

    def entries(self) -> List[Dict]:
        with self.env.begin(db=self.lines_db) as txn:
            return [self._deserialize(value) for _, value in txn.cursor()]

    def lines(self, limit: int = HISTORY_SIZE) -> List[str]:
        """The most recent lines, oldest first."""
        return [e['line'] for e in self.entries()][-limit:]

    def clear(self) -> None:
        with self.env.begin(write=True) as txn:
            txn.drop(self.lines_db, delete=False)

    def close(self):
        """Close the history store."""
        self.env.close()

"""
Data Access Gateway
Async create/read/update/delete over named record collections, plus
file upload against named blob buckets.

Rows are plain dicts. Dates are stored as ISO strings ('YYYY-MM-DD' for
calendar dates, full ISO timestamps for instants) so the in-memory and the
JSON file stores hold exactly the same shapes.
"""

import copy
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


MOTHERS = 'mothers'
HEALTH_RECORDS = 'health_records'
APPOINTMENTS = 'appointments'
EDUCATIONAL_MATERIALS = 'educational_materials'
NOTIFICATIONS = 'notifications'
MOTHER_NOTIFICATIONS = 'mother_notifications'
CHATBOT_QA = 'chatbot_qa'
RISK_REPORTS = 'risk_reports'
USERS = 'users'

COLLECTIONS = {
    MOTHERS, HEALTH_RECORDS, APPOINTMENTS, EDUCATIONAL_MATERIALS,
    NOTIFICATIONS, MOTHER_NOTIFICATIONS, CHATBOT_QA, RISK_REPORTS, USERS,
}

BUCKETS = {'health-records', 'profile-photos', 'educational-images'}


class GatewayError(Exception):
    """A data-access call failed. `message` is safe to show to a user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordNotFound(GatewayError):
    pass


def _sort_key(field: str):
    # rows without the field sort first
    def key(row: Dict[str, Any]):
        value = row.get(field)
        return (value is not None, value if value is not None else '')
    return key


class DataGateway:
    """
    Base gateway. Subclasses only provide `_load` and `_save` for a whole
    collection; every public operation is built on those two.

    There is no locking: each operation loads, mutates and saves without
    yielding to the event loop, and concurrent writers to the same row
    simply overwrite each other.
    """

    def _load(self, collection: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def _save(self, collection: str, rows: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    def _rows(self, collection: str) -> List[Dict[str, Any]]:
        if collection not in COLLECTIONS:
            raise GatewayError(f"Unknown collection '{collection}'")
        return self._load(collection)

    async def query(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        rows = self._rows(collection)
        if filters:
            rows = [r for r in rows if all(r.get(k) == v for k, v in filters.items())]
        if order_by:
            rows = sorted(rows, key=_sort_key(order_by), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def get(self, collection: str, row_id: str) -> Dict[str, Any]:
        for row in self._rows(collection):
            if row.get('id') == row_id:
                return copy.deepcopy(row)
        raise RecordNotFound(f"No {collection} record with id '{row_id}'")

    async def insert(self, collection: str, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._rows(collection)
        new_row = copy.deepcopy(row)
        if not new_row.get('id'):
            new_row['id'] = uuid.uuid4().hex
        elif any(r.get('id') == new_row['id'] for r in rows):
            raise GatewayError(f"Duplicate id '{new_row['id']}' in {collection}")
        rows.append(new_row)
        self._save(collection, rows)
        return copy.deepcopy(new_row)

    async def update(self, collection: str, row_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._rows(collection)
        for row in rows:
            if row.get('id') == row_id:
                row.update({k: v for k, v in patch.items() if k != 'id'})
                self._save(collection, rows)
                return copy.deepcopy(row)
        raise RecordNotFound(f"No {collection} record with id '{row_id}'")

    async def upsert(self, collection: str, row: Dict[str, Any], conflict_key: str) -> Dict[str, Any]:
        if row.get(conflict_key) is None:
            raise GatewayError(f"Upsert into {collection} needs a value for '{conflict_key}'")
        rows = self._rows(collection)
        for existing in rows:
            if existing.get(conflict_key) == row[conflict_key]:
                existing.update({k: v for k, v in row.items() if k != 'id'})
                self._save(collection, rows)
                return copy.deepcopy(existing)
        new_row = copy.deepcopy(row)
        new_row.setdefault('id', uuid.uuid4().hex)
        rows.append(new_row)
        self._save(collection, rows)
        return copy.deepcopy(new_row)

    async def delete(self, collection: str, row_id: str) -> None:
        rows = self._rows(collection)
        remaining = [r for r in rows if r.get('id') != row_id]
        if len(remaining) == len(rows):
            raise RecordNotFound(f"No {collection} record with id '{row_id}'")
        self._save(collection, remaining)


class InMemoryGateway(DataGateway):
    """Process-local store, used for tests and demos."""

    def __init__(self, seed: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._tables: Dict[str, List[Dict[str, Any]]] = {}
        for collection, rows in (seed or {}).items():
            if collection not in COLLECTIONS:
                raise GatewayError(f"Unknown collection '{collection}'")
            self._tables[collection] = copy.deepcopy(rows)

    def _load(self, collection: str) -> List[Dict[str, Any]]:
        return self._tables.setdefault(collection, [])

    def _save(self, collection: str, rows: List[Dict[str, Any]]) -> None:
        self._tables[collection] = rows


class JsonFileGateway(DataGateway):
    """One JSON file per collection, rewritten in full on each write."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _load(self, collection: str) -> List[Dict[str, Any]]:
        filepath = self._path(collection)
        if not filepath.exists():
            return []
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read {filepath}: {e}")
            raise GatewayError(f"Could not read {collection} records") from e
        return data.get('rows', [])

    def _save(self, collection: str, rows: List[Dict[str, Any]]) -> None:
        filepath = self._path(collection)
        tmp_path = filepath.with_suffix('.json.tmp')
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump({'collection': collection, 'rows': rows}, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            tmp_path.replace(filepath)
        except OSError as e:
            logger.error(f"Failed to write {filepath}: {e}")
            raise GatewayError(f"Could not save {collection} records") from e


class LocalBlobStorage:
    """Named buckets as directories under `root`."""

    def __init__(self, root: Path, public_url: str):
        self.root = Path(root)
        self.public_url = public_url.rstrip('/')

    def _target(self, bucket: str, path: str) -> Path:
        if bucket not in BUCKETS:
            raise GatewayError(f"Unknown bucket '{bucket}'")
        clean = path.strip().lstrip('/')
        if not clean or '..' in Path(clean).parts or '\\' in clean:
            raise ValueError(f"Invalid file path '{path}'")
        return self.root / bucket / clean

    async def upload(self, bucket: str, path: str, data: bytes) -> str:
        target = self._target(bucket, path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error(f"Upload to {bucket}/{path} failed: {e}")
            raise GatewayError(f"Could not upload '{path}'") from e
        logger.info(f"Stored {len(data)} bytes at {bucket}/{path}")
        return target.relative_to(self.root / bucket).as_posix()

    def get_public_url(self, bucket: str, path: str) -> str:
        target = self._target(bucket, path)
        return f"{self.public_url}/{bucket}/{target.relative_to(self.root / bucket).as_posix()}"

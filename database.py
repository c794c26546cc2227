"""
JSON file storage

Each collection is one JSON array-of-objects file under DATA_DIR
(resources.json, demos.json, testimonials.json). A write always replaces the
whole file; reads never fail the caller and degrade to an empty collection.
"""
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from config import COLLECTIONS, DATA_DIR
from errors import StorageError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class JsonCollection:
    def __init__(self, path: Path):
        self.path = Path(path)
        self.name = self.path.stem
        self._lock = threading.RLock()

    def load(self) -> List[Record]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable collection {self.path}: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Collection {self.path} is not a JSON array, ignoring it")
            return []
        return [r for r in data if isinstance(r, dict)]

    def save(self, records: List[Record]) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Could not save {self.name}: {e.strerror or e}") from e

    @contextmanager
    def mutate(self) -> Iterator[List[Record]]:
        """Read-modify-write the whole collection under the collection lock.

        The list yielded is written back when the block exits normally; an
        exception inside the block leaves the file untouched.
        """
        with self._lock:
            records = self.load()
            yield records
            self.save(records)

    def all(self) -> List[Record]:
        return self.load()

    def get(self, record_id: str) -> Optional[Record]:
        return next((r for r in self.load() if r.get("id") == record_id), None)

    def put(self, record: Record) -> Record:
        with self.mutate() as records:
            for i, existing in enumerate(records):
                if existing.get("id") == record["id"]:
                    records[i] = record
                    break
            else:
                records.append(record)
        return record

    def remove(self, record_id: str) -> bool:
        with self.mutate() as records:
            before = len(records)
            records[:] = [r for r in records if r.get("id") != record_id]
            return len(records) != before


class JsonDatabase:
    def __init__(self, data_dir: Path, names=COLLECTIONS):
        self.data_dir = Path(data_dir)
        self._collections = {name: JsonCollection(self.data_dir / f"{name}.json") for name in names}

    def __getitem__(self, name: str) -> JsonCollection:
        try:
            return self._collections[name]
        except KeyError:
            raise KeyError(f"Unknown collection: {name}") from None

    def collection_names(self) -> List[str]:
        return list(self._collections)


db = JsonDatabase(DATA_DIR)


def get_db() -> JsonDatabase:
    return db


def create_document(database: JsonDatabase, collection_name: str, data: Record) -> Record:
    return database[collection_name].put(data)


def get_documents(database: JsonDatabase, collection_name: str, filter_dict: Optional[Record] = None) -> List[Record]:
    docs = database[collection_name].load()
    if not filter_dict:
        return docs
    return [d for d in docs if all(d.get(k) == v for k, v in filter_dict.items())]

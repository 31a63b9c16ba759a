"""
Storage Backend Module

Provides an abstract record store over named tables and two implementations:
in-memory (testing) and semicolon-delimited CSV files (persistence).
Every value is stored as a string; tables are always rewritten in full.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Union
from pathlib import Path
import csv
import json
import logging
import threading


logger = logging.getLogger("lending.storage")


class PersistenceError(Exception):
    """Raised when a storage backend cannot read or write a table"""

    def __init__(self, message: str, table: str):
        super().__init__(message)
        self.table = table


class RecordStore(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def load_rows(self, table: str) -> List[Dict[str, str]]:
        """Load all rows of a table, in stored order (empty if the table does not exist)"""
        pass

    @abstractmethod
    def replace_rows(self, table: str, columns: Sequence[str], rows: List[Dict[str, str]]) -> None:
        """Replace the whole content of a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release backend resources"""
        pass


class InMemoryRecordStore(RecordStore):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, List[Dict[str, str]]] = {}
        self._lock = threading.RLock()

    def load_rows(self, table: str) -> List[Dict[str, str]]:
        with self._lock:
            # Deep copy to prevent external mutation
            return json.loads(json.dumps(self._data.get(table, [])))

    def replace_rows(self, table: str, columns: Sequence[str], rows: List[Dict[str, str]]) -> None:
        with self._lock:
            self._data[table] = [
                {column: str(row.get(column, "")) for column in columns}
                for row in rows
            ]

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class CsvRecordStore(RecordStore):
    """
    CSV file storage, one `<table>.csv` file per table

    Files carry one header line followed by one row per record, separated
    by semicolons.
    """

    DELIMITER = ";"

    def __init__(self, data_dir: Union[str, Path] = "data"):
        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()

    def path_for(self, table: str) -> Path:
        return self.data_dir / f"{table}.csv"

    def load_rows(self, table: str) -> List[Dict[str, str]]:
        path = self.path_for(table)
        with self._lock:
            if not path.exists():
                return []
            try:
                with path.open("r", encoding="utf-8", newline="") as handle:
                    reader = csv.reader(handle, delimiter=self.DELIMITER)
                    header = next(reader, None)
                    if header is None:
                        return []
                    rows = []
                    for values in reader:
                        if not values:
                            continue
                        if len(values) != len(header):
                            logger.warning(
                                f"Skipping malformed line {reader.line_num} in {path}: "
                                f"expected {len(header)} fields, got {len(values)}"
                            )
                            continue
                        rows.append(dict(zip(header, values)))
                    return rows
            except (OSError, csv.Error) as e:
                raise PersistenceError(f"Cannot read {path}: {e}", table) from e

    def replace_rows(self, table: str, columns: Sequence[str], rows: List[Dict[str, str]]) -> None:
        path = self.path_for(table)
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with path.open("w", encoding="utf-8", newline="") as handle:
                    writer = csv.writer(handle, delimiter=self.DELIMITER, lineterminator="\n")
                    writer.writerow(columns)
                    for row in rows:
                        writer.writerow([row.get(column, "") for column in columns])
            except OSError as e:
                raise PersistenceError(f"Cannot write {path}: {e}", table) from e

    def close(self) -> None:
        """Close storage (files are opened per operation)"""
        pass

"""
Test suite for storage backends
"""

import pytest

from lending.storage import CsvRecordStore, InMemoryRecordStore, PersistenceError


COLUMNS = ("ID_Prestamo", "ID_Cliente", "Monto")


class TestInMemoryRecordStore:
    """Test in-memory storage implementation"""

    def setup_method(self):
        self.store = InMemoryRecordStore()

    def test_missing_table_is_empty(self):
        assert self.store.load_rows("prestamos") == []

    def test_replace_and_load(self):
        self.store.replace_rows("prestamos", COLUMNS, [
            {"ID_Prestamo": "0001", "ID_Cliente": "123", "Monto": "1000"}
        ])
        assert self.store.load_rows("prestamos") == [
            {"ID_Prestamo": "0001", "ID_Cliente": "123", "Monto": "1000"}
        ]

    def test_replace_overwrites(self):
        self.store.replace_rows("prestamos", COLUMNS, [{"ID_Prestamo": "0001"}])
        self.store.replace_rows("prestamos", COLUMNS, [])
        assert self.store.load_rows("prestamos") == []

    def test_loaded_rows_are_copies(self):
        """Test external mutation does not leak into the store"""
        self.store.replace_rows("prestamos", COLUMNS, [{"ID_Prestamo": "0001"}])
        rows = self.store.load_rows("prestamos")
        rows[0]["ID_Prestamo"] = "9999"

        assert self.store.load_rows("prestamos")[0]["ID_Prestamo"] == "0001"

    def test_values_stored_as_strings(self):
        self.store.replace_rows("prestamos", COLUMNS, [{"ID_Prestamo": 7}])
        row = self.store.load_rows("prestamos")[0]
        assert row == {"ID_Prestamo": "7", "ID_Cliente": "", "Monto": ""}


class TestCsvRecordStore:
    """Test semicolon separated file storage"""

    def test_write_format(self, tmp_path):
        store = CsvRecordStore(tmp_path)
        store.replace_rows("prestamos", COLUMNS, [
            {"ID_Prestamo": "0001", "ID_Cliente": "123", "Monto": "1000.50"},
            {"ID_Prestamo": "0002", "ID_Cliente": "456", "Monto": "20"},
        ])

        content = (tmp_path / "prestamos.csv").read_text(encoding="utf-8")
        assert content == (
            "ID_Prestamo;ID_Cliente;Monto\n"
            "0001;123;1000.50\n"
            "0002;456;20\n"
        )

    def test_round_trip(self, tmp_path):
        store = CsvRecordStore(tmp_path)
        rows = [{"ID_Prestamo": "0001", "ID_Cliente": "123", "Monto": "1000.50"}]
        store.replace_rows("prestamos", COLUMNS, rows)

        assert store.load_rows("prestamos") == rows

    def test_missing_file_is_empty(self, tmp_path):
        assert CsvRecordStore(tmp_path).load_rows("pagos") == []

    def test_creates_data_directory(self, tmp_path):
        store = CsvRecordStore(tmp_path / "nested" / "data")
        store.replace_rows("pagos", COLUMNS, [])

        assert store.path_for("pagos").exists()
        assert store.load_rows("pagos") == []

    def test_malformed_lines_skipped(self, tmp_path):
        """Test lines with the wrong field count are skipped, the rest load"""
        (tmp_path / "prestamos.csv").write_text(
            "ID_Prestamo;ID_Cliente;Monto\n"
            "0001;123;1000\n"
            "0002;456\n"
            "\n"
            "0003;789;300;extra\n"
            "0004;111;400\n",
            encoding="utf-8"
        )
        rows = CsvRecordStore(tmp_path).load_rows("prestamos")

        assert [row["ID_Prestamo"] for row in rows] == ["0001", "0004"]

    def test_empty_file(self, tmp_path):
        (tmp_path / "pagos.csv").write_text("", encoding="utf-8")
        assert CsvRecordStore(tmp_path).load_rows("pagos") == []

    def test_write_failure_raises_persistence_error(self, tmp_path):
        """Test a data directory that is actually a file cannot be written"""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        store = CsvRecordStore(blocker)

        with pytest.raises(PersistenceError) as excinfo:
            store.replace_rows("prestamos", COLUMNS, [])
        assert excinfo.value.table == "prestamos"

"""
Unit tests for schema models.

Tests cover:
- ColumnKind classification
- Record base class
- TableSchema helpers
- StoreConfig validation
- YAML loading helpers
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from models import Contact
from tinystore.schema import (
    DEFAULT_PRAGMAS,
    ColumnKind,
    Record,
    StoreConfig,
    TableSchema,
    load_config,
    load_config_from_string,
)


# =============================================================================
# ColumnKind Tests
# =============================================================================


class TestColumnKind:
    """Tests for ColumnKind."""

    def test_fifteen_kinds(self) -> None:
        assert len(ColumnKind) == 15

    @pytest.mark.parametrize("kind", [ColumnKind.STRING, ColumnKind.OBJECT])
    def test_non_numeric(self, kind: ColumnKind) -> None:
        assert kind.is_number is False

    @pytest.mark.parametrize(
        "kind",
        [k for k in ColumnKind if k not in (ColumnKind.STRING, ColumnKind.OBJECT)],
    )
    def test_numeric(self, kind: ColumnKind) -> None:
        assert kind.is_number is True

    def test_from_value(self) -> None:
        assert ColumnKind("uint16") is ColumnKind.UINT16


# =============================================================================
# Record Tests
# =============================================================================


class TestRecord:
    """Tests for the Record base class."""

    def test_field_names_in_order(self) -> None:
        assert Contact.field_names() == ["id", "name", "age", "email"]

    def test_id_required(self) -> None:
        with pytest.raises(ValidationError):
            Contact(name="a", age=1)

    def test_unknown_input_ignored(self) -> None:
        contact = Contact.model_validate({"id": "a", "name": "n", "age": 1, "legacy": "x"})
        assert not hasattr(contact, "legacy")

    def test_default_template(self) -> None:
        with pytest.raises(NotImplementedError):
            Record.template()


# =============================================================================
# TableSchema Tests
# =============================================================================


class TestTableSchema:
    """Tests for TableSchema."""

    @pytest.fixture
    def schema(self) -> TableSchema:
        return TableSchema(
            name="Note",
            kinds={"id": ColumnKind.STRING, "text": ColumnKind.STRING, "rank": ColumnKind.INT32},
        )

    def test_columns_exclude_id(self, schema: TableSchema) -> None:
        assert schema.columns == ["text", "rank"]

    def test_kind_of(self, schema: TableSchema) -> None:
        assert schema.kind_of("rank") is ColumnKind.INT32
        assert schema.kind_of("missing") is None

    def test_is_numeric(self, schema: TableSchema) -> None:
        assert schema.is_numeric("rank")
        assert not schema.is_numeric("text")
        assert not schema.is_numeric("missing")

    def test_frozen(self, schema: TableSchema) -> None:
        with pytest.raises(ValidationError):
            schema.name = "Other"

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TableSchema(name="", kinds={})


# =============================================================================
# StoreConfig Tests
# =============================================================================


class TestStoreConfig:
    """Tests for StoreConfig."""

    def test_defaults(self) -> None:
        config = StoreConfig()
        assert config.database_path == ":memory:"
        assert config.blob_root is None
        assert config.scheduler_workers is None
        assert config.pragmas == DEFAULT_PRAGMAS
        assert config.log_level == "WARNING"

    def test_log_level_normalized(self) -> None:
        assert StoreConfig(log_level="info").log_level == "INFO"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            StoreConfig(log_level="chatty")

    def test_invalid_pragma_name(self) -> None:
        with pytest.raises(ValidationError):
            StoreConfig(pragmas={"foo; DROP TABLE x": 1})

    def test_workers_positive(self) -> None:
        with pytest.raises(ValidationError):
            StoreConfig(scheduler_workers=0)

    def test_extra_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            StoreConfig(database="x.db")


# =============================================================================
# YAML Loading Tests
# =============================================================================


class TestYamlLoading:
    """Tests for the YAML helpers."""

    def test_load_from_string(self, sample_config_yaml: str) -> None:
        config = load_config_from_string(sample_config_yaml)
        assert config.database_path == "./app.db"
        assert config.blob_root == "./blobs"
        assert config.scheduler_workers == 2
        assert config.pragmas == {"foreign_keys": "ON", "busy_timeout": 1000}
        assert config.log_level == "DEBUG"

    def test_load_from_file(self, temp_dir: Path, sample_config_yaml: str) -> None:
        path = temp_dir / "tinystore.yaml"
        path.write_text(sample_config_yaml)
        assert load_config(path).scheduler_workers == 2

    def test_empty_document(self) -> None:
        assert load_config_from_string("") == StoreConfig()

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(temp_dir / "nope.yaml")

    def test_invalid_document(self) -> None:
        with pytest.raises(ValidationError):
            load_config_from_string("scheduler_workers: many")

"""Tests for RestoreRequestBuilder validation and payload rendering."""

import pytest

from restorectl.errors import ValidationFailure
from restorectl.services.name_inference import (
    CaseMode,
    NameInferenceEngine,
    NamePattern,
    NamePatternList,
)
from restorectl.services.restore_request import (
    BackupType,
    DatabaseMode,
    RestoreType,
    RestoreRequestBuilder,
    convert_slashes,
    detect_backup_type,
)


def _builder(**overrides) -> RestoreRequestBuilder:
    values = {"destination": 0, "backup": "/backups/shop.dump", "database_name": "shop"}
    values.update(overrides)
    return RestoreRequestBuilder(**values)


class TestBackupSource:
    """Tests for backup type detection and slash conversion."""

    @pytest.mark.parametrize("source, expected", [
        ("http://host/backup.dump", BackupType.URL),
        ("https://host/backup.dump", BackupType.URL),
        ("/srv/backup.dump", BackupType.PATH),
        ("\\\\share\\backup.dump", BackupType.PATH),
        ("ftp://host/backup.dump", BackupType.PATH),
    ])
    def test_detect_backup_type(self, source, expected):
        assert detect_backup_type(source) is expected

    def test_convert_forward_to_back(self):
        assert convert_slashes("/srv/db/x.dump") == "\\srv\\db\\x.dump"

    def test_convert_back_to_forward(self):
        assert convert_slashes("C:\\db\\x.dump") == "C:/db/x.dump"


class TestValidate:
    """Tests for pre-submission validation."""

    def test_valid_full_restore(self):
        assert _builder().validate() == []

    def test_missing_destination(self):
        failures = _builder(destination=None).validate()
        assert [f.code for f in failures] == ["E-2001"]
        assert failures[0].field == "destination"

    def test_all_failures_in_form_order(self):
        builder = RestoreRequestBuilder(restore_type=RestoreType.PARTIAL, objects=" , ")
        assert [f.code for f in builder.validate()] == ["E-2001", "E-2002", "E-2003", "E-2004"]

    def test_destination_zero_is_valid(self):
        assert _builder(destination=0).validate() == []

    def test_partial_needs_objects(self):
        failures = _builder(restore_type=RestoreType.PARTIAL).validate()
        assert [f.code for f in failures] == ["E-2004"]

    def test_build_raises_first_failure(self):
        with pytest.raises(ValidationFailure) as exc_info:
            _builder(backup="", database_name="").build()
        assert exc_info.value.code == "E-2002"

    def test_missing_name_mentions_backup(self):
        failures = _builder(database_name="").validate()
        assert "/backups/shop.dump" in failures[0].message


class TestPayload:
    """Tests for RestoreRequest.to_payload."""

    def test_full_restore_payload(self):
        payload = _builder(database=DatabaseMode.DROP_AND_CREATE, ignore_errors=True).build().to_payload()
        assert payload == {
            "destination": 0,
            "backup": {"type": "Path", "path": "/backups/shop.dump"},
            "database_name": "shop",
            "database": "DropAndCreate",
            "restore": {"type": "Full"},
            "ignore_errors": True,
        }

    def test_url_backup(self):
        payload = _builder(backup="https://store/shop.dump").build().to_payload()
        assert payload["backup"] == {"type": "Url", "url": "https://store/shop.dump"}

    def test_partial_restore_payload(self):
        builder = _builder(
            restore_type=RestoreType.PARTIAL,
            objects="sales.orders,  hr.people\nsales.items",
            restore_indexes=False,
        )
        assert builder.build().to_payload()["restore"] == {
            "type": "Partial",
            "objects": ["sales.orders", "hr.people", "sales.items"],
            "restore_schema": True,
            "restore_indexes": False,
        }


class TestFormHelpers:
    """Tests for filling the form from SQL text and naming rules."""

    def test_tables_from_text(self):
        builder = _builder()
        objects = builder.tables_from_text("select * from sales.orders join hr.people on true")
        assert objects == "hr.people, sales.orders"
        assert builder.restore_type is RestoreType.PARTIAL

    def test_schemas_from_text(self):
        builder = _builder()
        builder.schemas_from_text("update sales.orders set x = 1; select 1 from hr.people")
        assert builder.objects == "hr, sales"
        assert builder.build().objects == ["hr", "sales"]

    def test_infer_database_name(self):
        engine = NameInferenceEngine(NamePatternList([
            NamePattern(path_pattern=r"/(\w+)\.dump$", template="$1", case_mode=CaseMode.UPPER),
        ]))
        builder = _builder(database_name="")
        assert builder.infer_database_name(engine) == "SHOP"

    def test_infer_keeps_name_on_no_match(self):
        builder = _builder(database_name="manual")
        assert builder.infer_database_name(NameInferenceEngine()) == "manual"

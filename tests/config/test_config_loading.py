"""
Runtime configuration: defaults, file overlay, environment overrides.
"""

import pytest

from inventory_config import get_active_config
from inventory_config.loader import compute_checksum, merge, parse_bool, parse_config
from inventory_modules.restock.config import RestockPolicy


def _write(tmp_path, body):
    path = tmp_path / "inventory.yaml"
    path.write_text(body, encoding="utf-8")
    return path


class TestDefaults:

    def test_shipped_defaults(self):
        config = get_active_config(environ={})
        assert config.database_url == "sqlite:///inventory.db"
        assert config.log_level == "INFO"
        assert config.restock == RestockPolicy()
        assert config.adjustments.require_reason is True
        assert len(config.sources) == 1

    def test_trace_logged(self, captured_logs):
        config = get_active_config(environ={})
        traces = [r for r in captured_logs() if r["message"] == "INVENTORY_CONFIG_TRACE"]
        assert traces and traces[-1]["checksum"] == config.checksum


class TestOverlays:

    def test_file_overlay_merges_sections(self, tmp_path):
        path = _write(tmp_path, "restock:\n  allow_over_receipt: false\nlog_level: debug\n")

        config = get_active_config(path, environ={})

        assert config.restock.allow_over_receipt is False
        assert config.restock.order_number_prefix == "PO-"
        assert config.log_level == "DEBUG"
        assert config.sources[-1] == str(path)

    def test_file_from_environment(self, tmp_path):
        path = _write(tmp_path, "database_url: postgresql://inv@localhost/inv\n")
        config = get_active_config(environ={"INVENTORY_CONFIG_FILE": str(path)})
        assert config.database_url == "postgresql://inv@localhost/inv"

    def test_environment_wins_over_file(self, tmp_path):
        path = _write(tmp_path, "restock:\n  apply_landed_cost: false\n")
        config = get_active_config(
            path,
            environ={
                "INVENTORY_APPLY_LANDED_COST": "yes",
                "INVENTORY_ORDER_NUMBER_PREFIX": "OC-",
                "INVENTORY_DATABASE_URL": "sqlite:///other.db",
            },
        )
        assert config.restock.apply_landed_cost is True
        assert config.restock.order_number_prefix == "OC-"
        assert config.database_url == "sqlite:///other.db"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml", environ={})


class TestValidation:

    def test_unknown_top_level_key(self, tmp_path):
        path = _write(tmp_path, "databse_url: typo\n")
        with pytest.raises(ValueError, match="databse_url"):
            get_active_config(path, environ={})

    def test_unknown_section_key(self):
        with pytest.raises(ValueError, match="allow_overreceipt"):
            parse_config({"database_url": "sqlite://", "restock": {"allow_overreceipt": True}})

    def test_database_url_required(self):
        with pytest.raises(ValueError):
            parse_config({"log_level": "INFO"})

    def test_non_mapping_file(self, tmp_path):
        path = _write(tmp_path, "- just\n- a list\n")
        with pytest.raises(ValueError):
            get_active_config(path, environ={})

    def test_bad_boolean_override(self):
        with pytest.raises(ValueError):
            get_active_config(environ={"INVENTORY_ALLOW_OVER_RECEIPT": "maybe"})

    def test_bad_order_number_width(self):
        with pytest.raises(ValueError):
            parse_config({"database_url": "sqlite://", "restock": {"order_number_width": 0}})


class TestHelpers:

    @pytest.mark.parametrize("raw,expected", [("1", True), ("ON", True), ("no", False), (False, False)])
    def test_parse_bool(self, raw, expected):
        assert parse_bool(raw) is expected

    def test_merge_is_recursive(self):
        assert merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}}) == {
            "a": {"x": 1, "y": 3},
            "b": 1,
        }

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": {"c": 2}}) == compute_checksum({"b": {"c": 2}, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

"""
Loading and validating ERP configuration from YAML.
"""

from decimal import Decimal

import pytest

from erp_config import get_active_config, reset_active_config
from erp_config.loader import (
    DATABASE_URL_ENV,
    CONFIG_FILE_ENV,
    ConfigLoadError,
    load_config,
)
from erp_config.schema import ErpConfig, InventoryPolicy, NumberingConfig


@pytest.fixture(autouse=True)
def _fresh_active_config():
    reset_active_config()
    yield
    reset_active_config()


class TestPackagedDefaults:

    def test_defaults_load(self):
        config = load_config(environ={})
        assert config.numbering.sales_order == "SO"
        assert config.numbering.production_order == "MO"
        assert config.numbering.transfer == "TR"
        assert config.numbering.transactions["import"] == "IMP"
        assert config.inventory.default_increment == Decimal("1")
        assert config.inventory.allow_overproduction is True
        assert config.log_level == "INFO"

    def test_database_url_override(self):
        config = load_config(environ={DATABASE_URL_ENV: "postgresql://u:p@db/erp"})
        assert config.database.url == "postgresql://u:p@db/erp"

    def test_config_file_from_environment(self, tmp_path):
        path = tmp_path / "erp.yaml"
        path.write_text("log_level: debug\nnumbering:\n  sales_order: ORD\n")
        config = load_config(environ={CONFIG_FILE_ENV: str(path)})
        assert config.log_level == "DEBUG"
        assert config.numbering.sales_order == "ORD"

    def test_active_config_is_cached(self):
        assert get_active_config() is get_active_config()


class TestYamlParsing:

    def test_unit_increments_are_decimals(self, tmp_path):
        path = tmp_path / "erp.yaml"
        path.write_text(
            "inventory:\n"
            "  unit_increments:\n"
            "    kg: 0.01\n"
            "    unit: 1\n"
        )
        config = load_config(path, environ={})
        assert config.inventory.unit_increments == {"kg": Decimal("0.01"), "unit": Decimal("1")}

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "erp.yaml"
        path.write_text("")
        assert load_config(path, environ={}) == ErpConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigLoadError, match="file not found"):
            load_config(tmp_path / "absent.yaml", environ={})

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "erp.yaml"
        path.write_text("numbering: [unclosed\n")
        with pytest.raises(ConfigLoadError, match="invalid YAML"):
            load_config(path, environ={})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "erp.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigLoadError):
            load_config(path, environ={})

    @pytest.mark.parametrize("body", [
        "log_level: chatty\n",
        "inventory:\n  default_increment: 0\n",
        "inventory:\n  default_efficiency_rate: 120\n",
        "inventory:\n  default_increment: lots\n",
        "numbering:\n  sales_order: S-O\n",
        "numbering:\n  sales_order: TR\n",
        "numbering:\n  transactions:\n    teleport: TLP\n",
    ])
    def test_schema_violations_name_the_file(self, tmp_path, body):
        path = tmp_path / "erp.yaml"
        path.write_text(body)
        with pytest.raises(ConfigLoadError) as exc_info:
            load_config(path, environ={})
        assert exc_info.value.path == path


class TestSchemaDirectly:

    def test_duplicate_document_prefixes_rejected(self):
        with pytest.raises(ValueError):
            NumberingConfig(sales_order="X", production_order="X")

    def test_efficiency_must_be_positive(self):
        with pytest.raises(ValueError):
            InventoryPolicy(default_efficiency_rate=Decimal("0"))

from __future__ import annotations

import json
import logging

import pytest
import yaml

from catalog.schema import SchemaError
from catalog.settings import (
    PRESETS,
    configure_logging,
    filter_definitions,
    get_preset,
    load_settings,
    normalize_settings,
    settings_to_dict,
    with_schema,
    with_ui,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("CATALOG_SETTINGS", "CATALOG_PATH", "CATALOG_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_presets():
    pulp = get_preset("pulp-fiction")
    assert pulp.status_field == "catalog-status"
    assert pulp.status_dashboard.numeric_field == "word-count"
    assert pulp.status_dashboard.range_field == "year-published"
    assert pulp.ui.items_per_page == 50
    assert [d.field for d in pulp.filter_bar] == ["catalog-status", "year-published", "title", "authors"]

    library = get_preset("general-library")
    assert library.schema.catalog_name == "General Library"
    assert library.status_dashboard.sort_by == "alphabetical"

    with pytest.raises(KeyError, match="pulp-fiction"):
        get_preset("comics")


def test_ui_preferences_are_clamped():
    raw = dict(PRESETS["pulp-fiction"], ui={"itemsPerPage": 10000, "compactMode": "yes"})
    settings = normalize_settings(raw)
    assert settings.ui.items_per_page == 500
    assert settings.ui.compact_mode is True
    assert normalize_settings(dict(raw, ui={"itemsPerPage": "lots"})).ui.items_per_page == 50
    assert normalize_settings(dict(raw, ui={"itemsPerPage": 0})).ui.items_per_page == 1


def test_unknown_group_sort_falls_back(caplog):
    raw = dict(PRESETS["pulp-fiction"], dashboards={"statusDashboard": {"sortBy": "random"}})
    with caplog.at_level(logging.WARNING, logger="catalog.settings"):
        settings = normalize_settings(raw)
    assert settings.status_dashboard.sort_by == "count-desc"
    assert "random" in caplog.text


def test_schema_problems_raise():
    with pytest.raises(SchemaError):
        normalize_settings({"catalogPath": "works"})
    with pytest.raises(SchemaError):
        normalize_settings(["not", "a", "mapping"])  # type: ignore[arg-type]

    bad_filter = dict(PRESETS["pulp-fiction"], dashboards={"filterBar": {"filters": [{"field": "rating"}]}})
    with pytest.raises(SchemaError, match="rating"):
        normalize_settings(bad_filter)

    bad_group = dict(PRESETS["pulp-fiction"], dashboards={"statusDashboard": {"groupByField": "state"}})
    with pytest.raises(SchemaError, match="state"):
        normalize_settings(bad_group)


def test_settings_round_trip():
    settings = get_preset("pulp-fiction")
    assert normalize_settings(settings_to_dict(settings)) == settings


def test_load_settings_falls_back_to_preset(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = load_settings()
    assert settings.schema.catalog_name == "Pulp Fiction Works"

    monkeypatch.setenv("CATALOG_PATH", "/srv/vault/works")
    monkeypatch.setenv("CATALOG_LOG_LEVEL", "debug")
    settings = load_settings()
    assert settings.catalog_path == "/srv/vault/works"
    assert settings.log_level == "DEBUG"


def test_load_yaml_settings_resolves_catalog_path(tmp_path):
    path = tmp_path / "catalog.yaml"
    raw = dict(PRESETS["general-library"], catalogPath="books", logLevel="warning")
    path.write_text(yaml.safe_dump(raw), encoding="utf-8")

    settings = load_settings(path)
    assert settings.schema.catalog_name == "General Library"
    assert settings.catalog_path == str(tmp_path.resolve() / "books")
    assert settings.log_level == "WARNING"


def test_load_json_settings_from_env(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"preset": "general-library", "catalogPath": "/abs/books"}), encoding="utf-8")
    monkeypatch.setenv("CATALOG_SETTINGS", str(path))

    settings = load_settings()
    assert settings.schema.catalog_name == "General Library"
    assert settings.catalog_path == "/abs/books"


def test_load_rejects_non_mapping_file(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(SchemaError):
        load_settings(path)


def test_copy_on_write_helpers():
    settings = get_preset("pulp-fiction")
    compact = with_ui(settings, compact_mode=True, items_per_page=10)
    assert compact.ui.compact_mode and compact.ui.items_per_page == 10
    assert settings.ui.compact_mode is False

    library = get_preset("general-library").schema
    swapped = with_schema(settings, library)
    assert swapped.schema is library
    assert settings.schema.catalog_name == "Pulp Fiction Works"


def test_filter_definitions_respect_enabled():
    raw = dict(
        PRESETS["pulp-fiction"],
        dashboards={"filterBar": {"filters": [{"field": "title", "type": "text"}, {"field": "genres", "enabled": False}]}},
    )
    settings = normalize_settings(raw)
    assert [d.field for d in filter_definitions(settings)] == ["title"]
    assert [d.field for d in filter_definitions(settings, enabled_only=False)] == ["title", "genres"]


def test_configure_logging_accepts_names():
    configure_logging("debug")
    configure_logging("nonsense")

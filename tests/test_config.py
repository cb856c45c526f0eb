"""Tests for YAML seed loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from classifier_tree.config import DEFAULT_FOREST, config_path, import_forest, load_settings
from classifier_tree.editor import DEFAULT_DIMENSIONS, Editor


def _names(nodes) -> list:
    return [(n.name, _names(n.children)) if n.children else n.name for n in nodes]


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    """It should fall back to built-in dimensions and the sample forest."""

    settings = load_settings(tmp_path / "absent.yml")
    assert settings.path is None
    assert settings.dimensions == list(DEFAULT_DIMENSIONS)
    assert settings.history_limit == 80
    assert _names(settings.forest) == _names(import_forest(DEFAULT_FOREST))
    assert _names(settings.forest)[1] == "North-West"


def test_seed_file_is_read(tmp_path: Path) -> None:
    """It should read labels, limit and a nav-style forest."""

    path = tmp_path / "seed.yml"
    path.write_text(
        "\n".join(
            [
                "group_name: Territory",
                "dimensions: [Country, State]",
                "history_limit: 5",
                "forest:",
                "  - Germany:",
                "      - Bavaria",
                "      - Saxony: null",
                "  - France",
                "  - 42",
                "",
            ]
        ),
        encoding="utf-8",
    )
    settings = load_settings(path)

    assert settings.path == path
    assert settings.group_name == "Territory"
    assert settings.dimensions == ["Country", "State"]
    assert settings.history_limit == 5
    assert _names(settings.forest) == [("Germany", ["Bavaria", "Saxony"]), "France", "42"]

    editor = Editor.from_settings(settings)
    assert editor.ledger.limit == 5
    assert editor.group_name == "Territory"


def test_empty_forest_key(tmp_path: Path) -> None:
    """It should allow starting from an empty forest."""

    path = tmp_path / "seed.yml"
    path.write_text("forest: []\n", encoding="utf-8")
    assert load_settings(path).forest == []


@pytest.mark.parametrize(
    "body, error",
    [
        ("- just\n- a list\n", TypeError),
        ("forest: [{A: [x], B: [y]}]\n", ValueError),
        ("forest: ['  ']\n", ValueError),
        ("dimensions: [Region, '']\n", ValueError),
        ("history_limit: 0\n", ValueError),
        ("group_name: ' '\n", ValueError),
        ("forest: {A: 1}\n", ValueError),
        ("forest: [\n", ValueError),
    ],
)
def test_invalid_seed_files(tmp_path: Path, body: str, error: type[Exception]) -> None:
    """It should reject malformed seeds with a clear error."""

    path = tmp_path / "seed.yml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(error):
        load_settings(path)


def test_config_path_honors_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """It should resolve relative overrides against the working directory."""

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CLASSIFIER_TREE_CONFIG", "conf/tree.yml")
    assert config_path() == tmp_path / "conf" / "tree.yml"

    monkeypatch.setenv("CLASSIFIER_TREE_CONFIG", str(tmp_path / "abs.yml"))
    assert config_path() == tmp_path / "abs.yml"

    monkeypatch.delenv("CLASSIFIER_TREE_CONFIG")
    assert config_path() == tmp_path / "classifier_tree.yml"


def test_log_level_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """It should pick the log level up from the environment."""

    monkeypatch.setenv("CLASSIFIER_TREE_LOG_LEVEL", "debug")
    assert load_settings(tmp_path / "absent.yml").log_level == "DEBUG"

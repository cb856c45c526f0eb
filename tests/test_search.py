"""Tests for the literal search matcher."""

from __future__ import annotations

import pytest

from classifier_tree.search import compile_query, matching_ids
from classifier_tree.tree import Node


def test_metacharacters_are_literal() -> None:
    """It should match the query text literally and case-insensitively."""

    matches = compile_query("a+b(c)")
    assert matches("a+b(c)")
    assert matches("X A+B(C) Y")
    assert not matches("aab(c)")
    assert not matches("abc")


def test_every_special_character_is_escaped() -> None:
    """It should never treat user text as a pattern."""

    text = r"(a)[b]\c?^$.*{2}|"
    assert compile_query(text)(f"prefix {text}")
    assert not compile_query(".")("abc")


@pytest.mark.parametrize("query", ["", "   ", "\t\n", None])
def test_blank_query_matches_nothing(query) -> None:
    """It should highlight nothing for a blank query."""

    matches = compile_query(query)
    assert not matches("")
    assert not matches("anything")


def test_query_is_trimmed() -> None:
    """It should ignore surrounding whitespace in the query."""

    assert compile_query("  mos ")("Moscow")


def test_matching_ids_walks_whole_forest() -> None:
    """It should report matches in pre-order."""

    forest = (
        Node(id="1", name="Moscow", children=(Node(id="2", name="Mosfilm Street"),)),
        Node(id="3", name="Tver"),
    )
    assert matching_ids(forest, "MOS") == ["1", "2"]
    assert matching_ids(forest, "") == []

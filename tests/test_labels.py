"""Tests for label parsing and the label store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dragonflyid.ml.labels import DEFAULT_LABELS, LabelStore, parse_labels

if TYPE_CHECKING:
    from pathlib import Path


class TestParseLabels:
    def test_strips_ordinal_prefix(self) -> None:
        text = "0 Common Green Darner (Anax junius)\n1 Blue Dasher\n10 Twelve-spotted Skimmer\n"
        assert parse_labels(text) == (
            "Common Green Darner (Anax junius)",
            "Blue Dasher",
            "Twelve-spotted Skimmer",
        )

    def test_keeps_file_order_and_drops_blank_lines(self) -> None:
        text = "\n2 Scarlet Skimmer\n\n   \n0 Common Green Darner\r\n1 Blue Dasher\n\n"
        assert parse_labels(text) == ("Scarlet Skimmer", "Common Green Darner", "Blue Dasher")

    def test_lines_without_ordinal_are_kept(self) -> None:
        assert parse_labels("Widow Skimmer\n  Brown Hawker  \n") == ("Widow Skimmer", "Brown Hawker")

    def test_digits_without_whitespace_are_not_an_ordinal(self) -> None:
        assert parse_labels("3Blue\nHawker 7\n") == ("3Blue", "Hawker 7")

    def test_only_leading_ordinal_is_removed(self) -> None:
        assert parse_labels("4 5 Spot\n") == ("5 Spot",)


class TestLabelStore:
    def test_loads_labels_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "labels.txt"
        path.write_text("0 Violet Dropwing\n1 Red-veined Darter\n", encoding="utf-8")

        store = LabelStore(path)

        assert store.load() == ("Violet Dropwing", "Red-veined Darter")
        assert store.loaded is True

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        store = LabelStore(tmp_path / "missing.txt")
        assert store.load() == DEFAULT_LABELS

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "labels.txt"
        path.write_text("\n  \n", encoding="utf-8")
        assert LabelStore(path).load() == DEFAULT_LABELS

    def test_undecodable_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "labels.txt"
        path.write_bytes(b"\xff\xfe\xfa\x00broken")
        assert LabelStore(path).load() == DEFAULT_LABELS

    def test_no_path_uses_defaults(self) -> None:
        assert LabelStore(None).load() == DEFAULT_LABELS

    def test_load_is_memoized(self, tmp_path: Path) -> None:
        path = tmp_path / "labels.txt"
        path.write_text("0 Blue Dasher\n", encoding="utf-8")
        store = LabelStore(path)

        first = store.load()
        path.write_text("0 Something Else\n", encoding="utf-8")

        assert store.load() is first

    def test_not_loaded_until_first_use(self, tmp_path: Path) -> None:
        assert LabelStore(tmp_path / "labels.txt").loaded is False

    def test_default_labels(self) -> None:
        assert len(DEFAULT_LABELS) == 10
        assert DEFAULT_LABELS[0] == "Common Green Darner"
        assert DEFAULT_LABELS[5] == "Emperor Dragonfly"
        assert DEFAULT_LABELS[9] == "Twelve-spotted Skimmer"

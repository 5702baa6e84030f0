from __future__ import annotations

import logging

from edu_import.services.lookup import LookupIndex, build_lookup_index, normalize_label


def test_class_label_variants(index):
    assert index.resolve("classes", "1A") == 1
    assert index.resolve("classes", "Grade 2 A") == 2
    assert index.resolve("classes", "  grade 2 a ") == 2
    # stream-less class registers its bare level
    assert index.resolve("classes", "form 4") == 3


def test_subject_code_and_name(index):
    assert index.resolve("subjects", "math") == 1
    assert index.resolve("subjects", "Mathematics") == 1
    assert index.resolve("subjects", "ENG") == 2


def test_no_partial_or_fuzzy_match(index):
    assert index.resolve("classes", "Grade 2") is None
    assert index.resolve("classes", "Grade2A") is None
    assert index.resolve("subjects", "Math.") is None
    assert index.resolve("subjects", "") is None


def test_kinds_are_isolated(index):
    assert index.resolve("subjects", "1A") is None
    assert index.resolve("nonexistent", "1A") is None


def test_label_for_uses_display_field(index):
    assert index.label_for("classes", 2) == "2A"
    assert index.label_for("classes", "2") == "2A"
    assert index.label_for("subjects", 1) == "MATH"
    assert index.label_for("students", 1) == "STU001"
    assert index.label_for("classes", 99) is None
    assert index.label_for("classes", None) is None


def test_first_registration_wins_on_clash(caplog):
    snapshot = {
        "classes": [
            {"id": 10, "name": "Blue", "level": "Grade 3", "stream": "Blue"},
            {"id": 11, "name": "Grade 3 Blue", "level": "Grade 3", "stream": "B"},
        ]
    }
    with caplog.at_level(logging.DEBUG, logger="edu_import.services.lookup"):
        idx = build_lookup_index(snapshot)
    assert idx.resolve("classes", "grade 3 blue") == 10
    assert "clash" in caplog.text


def test_records_without_id_are_ignored():
    idx = build_lookup_index({"subjects": [{"code": "BIO", "name": "Biology"}]})
    assert idx.resolve("subjects", "BIO") is None


def test_display_labels_sorted(index):
    assert index.display_labels("subjects") == ["ENG", "MATH", "SCI"]


def test_empty_index():
    idx = LookupIndex()
    assert idx.resolve("classes", "1A") is None
    assert idx.kinds() == []


def test_normalize_label():
    assert normalize_label("  Grade 1 A ") == "grade 1 a"
    assert normalize_label(None) == ""

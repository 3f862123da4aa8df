"""Tests for ULID helpers."""

from petstay.core.ulid_helper import generate_ulid


def test_generate_is_26_chars_and_unique():
    ids = {generate_ulid() for _ in range(100)}
    assert len(ids) == 100
    assert all(len(value) == 26 for value in ids)


def test_ids_sort_by_creation_time():
    first = generate_ulid()
    second = generate_ulid()
    assert first[:10] <= second[:10]

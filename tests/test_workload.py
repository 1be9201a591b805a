from __future__ import annotations

import logging
import random

import pytest

from dnsping.models import DomainListError
from dnsping.workload import (
    LABEL_ALPHABET,
    generate_random_label,
    load_top_domains,
    make_query_name,
)
from helpers import write_domains


NAMES = ["google.com", "youtube.com", "facebook.com", "baidu.com", "wikipedia.org"]


def test_load_returns_exactly_count_in_file_order(tmp_path) -> None:
    path = write_domains(tmp_path / "top.csv", NAMES)

    result = load_top_domains(path, 3)

    assert result.domains == ["google.com", "youtube.com", "facebook.com"]
    assert not result.is_partial


def test_load_partial_list_is_flagged_and_logged(tmp_path, caplog) -> None:
    path = write_domains(tmp_path / "top.csv", NAMES[:2])

    with caplog.at_level(logging.WARNING, logger="dnsping"):
        result = load_top_domains(path, 10)

    assert result.domains == NAMES[:2]
    assert result.is_partial
    assert "found only 2 domains (instead of 10)" in caplog.text


def test_load_empty_file_is_fatal(tmp_path) -> None:
    path = tmp_path / "empty.csv"
    path.write_text("\n\n")

    with pytest.raises(DomainListError):
        load_top_domains(path, 5)


def test_load_missing_file_is_fatal(tmp_path) -> None:
    with pytest.raises(DomainListError, match="does not exist"):
        load_top_domains(tmp_path / "nope.csv", 5)


def test_load_undecodable_file_is_fatal(tmp_path) -> None:
    path = tmp_path / "latin1.csv"
    path.write_bytes(b"1,caf\xe9.com\n")

    with pytest.raises(DomainListError, match="not valid UTF-8"):
        load_top_domains(path, 5)


def test_load_keeps_duplicates_and_strips_line_endings(tmp_path) -> None:
    path = tmp_path / "top.csv"
    path.write_text("1,a.com\r\n2, a.com \r\n3,b.com")

    assert load_top_domains(path, 3).domains == ["a.com", "a.com", "b.com"]


def test_load_non_positive_count_uses_default(tmp_path) -> None:
    names = [f"d{i}.com" for i in range(15)]
    path = write_domains(tmp_path / "top.csv", names)

    assert len(load_top_domains(path, 0)) == 10


def test_random_labels_are_valid() -> None:
    rng = random.Random(1234)
    alphabet = set(LABEL_ALPHABET)
    lengths = set()

    for _ in range(10_000):
        label = generate_random_label(rng)
        lengths.add(len(label))
        assert 6 <= len(label) <= 12
        assert set(label) <= alphabet

    assert lengths == set(range(6, 13))
    assert len(alphabet) == 62


def test_query_name_prepends_label() -> None:
    rng = random.Random(7)

    for _ in range(100):
        qname = make_query_name("example.com", rng)
        label, _, rest = qname.partition(".")
        assert rest == "example.com"
        assert 6 <= len(label) <= 12

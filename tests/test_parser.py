from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import acknowledgement_xml, document_xml, series_xml, utc
from prices.errors import EmptyDocument, MalformedDocument
from prices.parser import parse_document, resolution_interval


def test_hourly_points_are_one_hour_apart() -> None:
    doc = document_xml(series_xml("2024-03-01T00:00Z", "PT60M", [(1, "50"), (2, "60"), (3, "70")]))

    obs = parse_document(doc, "PT60M")

    assert [o.timestamp for o in obs] == [utc(2024, 3, 1, 1), utc(2024, 3, 1, 2), utc(2024, 3, 1, 3)]


def test_other_resolution_tags_are_quarter_hourly() -> None:
    doc = document_xml(series_xml("2024-03-01T00:00Z", "PT15M", [(1, "50"), (4, "60")]))

    obs = parse_document(doc, "PT60M")

    assert obs[0].timestamp == utc(2024, 3, 1, 0, 15)
    assert obs[1].timestamp == utc(2024, 3, 1, 1, 0)


def test_resolution_tag_is_configurable() -> None:
    assert resolution_interval("PT1H", "PT1H") == timedelta(hours=1)
    assert resolution_interval("PT60M", "PT1H") == timedelta(minutes=15)


def test_price_is_converted_from_mwh_to_kwh() -> None:
    doc = document_xml(series_xml("2024-03-01T00:00Z", "PT60M", [(1, "1000"), (2, "87.53")]))

    obs = parse_document(doc)

    assert obs[0].price == 1.0
    assert obs[1].price == pytest.approx(0.08753)


def test_multiple_time_series_are_all_parsed() -> None:
    doc = document_xml(
        series_xml("2024-03-01T00:00Z", "PT60M", [(1, "10")]),
        series_xml("2024-03-02T00:00Z", "PT60M", [(1, "20")]),
    )

    obs = parse_document(doc)

    assert {o.timestamp: o.price for o in obs} == {
        utc(2024, 3, 1, 1): 0.01,
        utc(2024, 3, 2, 1): 0.02,
    }


def test_incomplete_point_is_skipped() -> None:
    doc = document_xml(
        series_xml("2024-03-01T00:00Z", "PT60M", [(1, "10"), (2, None), (None, "30"), (4, "abc"), (5, "50")])
    )

    obs = parse_document(doc)

    assert [o.timestamp.hour for o in obs] == [1, 5]


def test_period_without_start_is_skipped_but_others_parse() -> None:
    doc = document_xml(
        series_xml(None, "PT60M", [(1, "10")]),
        series_xml("2024-03-01T00:00Z", None, [(1, "99")]),
        series_xml(None, None, [], with_period=False),
        series_xml("2024-03-01T00:00Z", "PT60M", [(2, "20")]),
    )

    obs = parse_document(doc)

    assert [(o.timestamp, o.price) for o in obs] == [(utc(2024, 3, 1, 2), 0.02)]


def test_older_schema_namespace_is_accepted() -> None:
    doc = document_xml(
        series_xml("2024-03-01T00:00Z", "PT60M", [(1, "10")]),
        namespace="urn:iec62325.351:tc57wg16:451-3:publicationdocument:7:0",
    )

    assert len(parse_document(doc)) == 1


def test_not_xml_raises_malformed_document() -> None:
    with pytest.raises(MalformedDocument):
        parse_document("<Publication_MarketDocument><TimeSeries>")


def test_blank_payload_raises_empty_document() -> None:
    with pytest.raises(EmptyDocument):
        parse_document("   ")


def test_acknowledgement_document_is_rejected_with_reason() -> None:
    with pytest.raises(MalformedDocument, match="No matching data found"):
        parse_document(acknowledgement_xml("No matching data found"))


def test_entity_expansion_is_refused() -> None:
    doc = (
        '<?xml version="1.0"?><!DOCTYPE d [<!ENTITY a "aaaa">]>'
        "<Publication_MarketDocument>&a;</Publication_MarketDocument>"
    )
    with pytest.raises(MalformedDocument):
        parse_document(doc)

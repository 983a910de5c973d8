"""
Unit tests for channel grouping and the summary index.
"""
from epg_json.services.xmltv_parser_service import parse_programmes
from epg_json.utils.grouping import build_channel_index, group_by_channel


def _block(channel: str | None, title: str) -> str:
    attr = f' channel="{channel}"' if channel is not None else ""
    return f'<programme{attr} start="20240101120000 Z"><title>{title}</title></programme>'


def test_two_channels_grouped_in_document_order():
    xml = _block("ch1", "A") + _block("ch2", "B") + _block("ch1", "C")
    groups = group_by_channel(parse_programmes(xml))

    assert list(groups) == ["ch1", "ch2"]
    assert [p.title for p in groups["ch1"]] == ["A", "C"]
    assert [p.title for p in groups["ch2"]] == ["B"]


def test_missing_channel_grouped_as_unknown():
    groups = group_by_channel(parse_programmes(_block(None, "Orphan") + _block("", "Blank")))

    assert list(groups) == ["unknown"]
    assert [p.title for p in groups["unknown"]] == ["Orphan", "Blank"]
    assert groups["unknown"][0].channel == ""


def test_bucket_order_is_first_appearance():
    xml = _block("zeta", "1") + _block("alpha", "2") + _block("zeta", "3")
    assert list(group_by_channel(parse_programmes(xml))) == ["zeta", "alpha"]


def test_empty_input():
    assert group_by_channel([]) == {}
    assert build_channel_index({}) == []


def test_channel_index_sorted_lexicographically():
    xml = _block("zeta", "1") + _block("Alpha", "2") + _block("alpha", "3") + _block("zeta", "4")
    index = build_channel_index(group_by_channel(parse_programmes(xml)))

    assert [entry.model_dump(exclude_none=True) for entry in index] == [
        {"channel": "Alpha", "count": 1},
        {"channel": "alpha", "count": 1},
        {"channel": "zeta", "count": 2},
    ]

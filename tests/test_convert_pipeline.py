"""
Integration tests for the conversion pipeline using a mocked HTTP transport.
"""
import asyncio
import json

import httpx
import pytest

from conftest import gzip_bytes, make_transport, read_json
from epg_json.errors import FetchFailure
from epg_json.services.epg_convert_service import EPGConvertPipeline, convert_epg
from epg_json.services.epg_downloader_service import process_single_source

SOURCE_A = "https://example.test/a.xml.gz"
SOURCE_B = "https://example.test/b.xml.gz"

SECOND_FEED = """<tv>
  <programme start="20240101130000 +0530" stop="20240101140000 +0530" channel="ch1">
    <title>Late Show</title>
  </programme>
  <programme start="20240101130000 +0530" stop="20240101140000 +0530">
    <title>Mystery</title>
  </programme>
</tv>"""


def _run(settings, routes):
    async def go():
        async with httpx.AsyncClient(transport=make_transport(routes)) as client:
            return await convert_epg(settings, client=client)

    return asyncio.run(go())


# ---------------------------------------------------------------------------
# process_single_source
# ---------------------------------------------------------------------------


def test_process_single_source_parses_gzip_feed(sample_xmltv):
    async def go():
        async with httpx.AsyncClient(transport=make_transport({SOURCE_A: gzip_bytes(sample_xmltv)})) as client:
            return await process_single_source(SOURCE_A, 1, client=client)

    programmes = asyncio.run(go())
    assert [p.title for p in programmes] == ["Morning &lt;b&gt;News", "Cartoon Hour", "The Show"]


def test_process_single_source_raises_on_http_error():
    async def go():
        async with httpx.AsyncClient(transport=make_transport({})) as client:
            return await process_single_source(SOURCE_A, 1, client=client)

    with pytest.raises(FetchFailure) as exc_info:
        asyncio.run(go())
    assert exc_info.value.status_code == 404


# ---------------------------------------------------------------------------
# convert_epg
# ---------------------------------------------------------------------------


def test_convert_writes_channel_files_index_and_metadata(make_settings, sample_xmltv, tmp_path):
    settings = make_settings()
    result = _run(settings, {SOURCE_A: gzip_bytes(sample_xmltv)})

    assert result["status"] == "success"
    assert result["channels_written"] == 2
    assert result["programmes_written"] == 3

    ch1 = read_json(tmp_path / "public" / "epg" / "ch1.json")
    assert [item["title"] for item in ch1] == ["Morning &lt;b&gt;News", "The Show"]
    assert ch1[0] == {
        "startRaw": "20240101120000 +0530",
        "stopRaw": "20240101123000 +0530",
        "start": "2024-01-01 12:00:00 IST",
        "stop": "2024-01-01 12:30:00 IST",
        "channel": "ch1",
        "title": "Morning &lt;b&gt;News",
        "subTitle": "Headlines",
    }

    assert read_json(tmp_path / "public" / "channels.json") == [
        {"channel": "ch1", "count": 2, "file": "ch1.json"},
        {"channel": "ch2", "count": 1, "file": "ch2.json"},
    ]

    meta = read_json(tmp_path / "public" / "meta.json")
    assert meta["totalProgrammes"] == 3
    assert meta["totalChannels"] == 2
    assert meta["timeZone"] == "Asia/Kolkata (IST, UTC+5:30)"
    assert meta["lastUpdate"].endswith("Z")
    assert meta["imagesEnabled"] is False
    assert meta["sources"] == [{"url": SOURCE_A, "status": "success", "count": 3}]


def test_channel_files_are_pretty_printed(make_settings, sample_xmltv, tmp_path):
    _run(make_settings(), {SOURCE_A: gzip_bytes(sample_xmltv)})

    text = (tmp_path / "public" / "epg" / "ch2.json").read_text(encoding="utf-8")
    assert text == json.dumps(json.loads(text), indent=2, ensure_ascii=False)


def test_sources_merged_in_configured_order(make_settings, sample_xmltv, tmp_path):
    settings = make_settings(epg_sources=[SOURCE_A, SOURCE_B])
    result = _run(settings, {SOURCE_A: gzip_bytes(sample_xmltv), SOURCE_B: SECOND_FEED.encode("utf-8")})

    assert result["status"] == "success"
    ch1 = read_json(tmp_path / "public" / "epg" / "ch1.json")
    assert [item["title"] for item in ch1] == ["Morning &lt;b&gt;News", "The Show", "Late Show"]
    assert [item["title"] for item in read_json(tmp_path / "public" / "epg" / "unknown.json")] == ["Mystery"]


def test_failed_source_does_not_stop_others(make_settings, sample_xmltv, tmp_path):
    settings = make_settings(epg_sources=[SOURCE_B, SOURCE_A])
    result = _run(settings, {SOURCE_A: gzip_bytes(sample_xmltv)})

    assert result["status"] == "partial"
    assert result["sources_failed"] == 1

    meta = read_json(tmp_path / "public" / "meta.json")
    assert meta["sourcesSucceeded"] == 1
    assert meta["sourcesFailed"] == 1
    assert meta["sources"][0]["url"] == SOURCE_B
    assert meta["sources"][0]["status"] == "failed"
    assert "404" in meta["sources"][0]["error"]
    assert meta["totalProgrammes"] == 3


def test_corrupt_payload_recorded_as_failure(make_settings, sample_xmltv):
    settings = make_settings(epg_sources=[SOURCE_A, SOURCE_B])
    result = _run(settings, {
        SOURCE_A: gzip_bytes(sample_xmltv),
        SOURCE_B: b"\x1f\x8b\x08\x00broken",
    })

    assert result["status"] == "partial"
    assert result["source_details"][1]["status"] == "failed"


def test_transport_error_recorded_as_failure(make_settings, sample_xmltv):
    settings = make_settings(epg_sources=[SOURCE_A, SOURCE_B])
    result = _run(settings, {
        SOURCE_A: gzip_bytes(sample_xmltv),
        SOURCE_B: httpx.ConnectError("connection refused"),
    })

    assert result["sources_succeeded"] == 1
    assert result["sources_failed"] == 1


def test_all_sources_failing_leaves_output_untouched(make_settings, tmp_path):
    settings = make_settings()
    result = _run(settings, {})

    assert result["status"] == "failed"
    assert not (tmp_path / "public" / "meta.json").exists()


def test_stale_channel_files_pruned(make_settings, sample_xmltv, tmp_path):
    epg_dir = tmp_path / "public" / "epg"
    epg_dir.mkdir(parents=True)
    (epg_dir / "old-channel.json").write_text("[]", encoding="utf-8")
    (epg_dir / "notes.txt").write_text("keep", encoding="utf-8")

    _run(make_settings(), {SOURCE_A: gzip_bytes(sample_xmltv)})

    assert sorted(path.name for path in epg_dir.iterdir()) == ["ch1.json", "ch2.json", "notes.txt"]


def test_channel_ids_sharing_a_file_name_get_separate_files(make_settings, tmp_path):
    feed = (
        '<tv><programme channel="a/b" start="20240101120000 Z"><title>Slash</title></programme>'
        '<programme channel="a:b" start="20240101120000 Z"><title>Colon</title></programme></tv>'
    )
    _run(make_settings(), {SOURCE_A: feed.encode("utf-8")})

    index = read_json(tmp_path / "public" / "channels.json")
    assert [(entry["channel"], entry["count"]) for entry in index] == [("a/b", 1), ("a:b", 1)]
    assert index[0]["file"] == "a-b.json"
    assert index[1]["file"] != "a-b.json"

    epg_dir = tmp_path / "public" / "epg"
    for entry in index:
        [programme] = read_json(epg_dir / entry["file"])
        assert programme["channel"] == entry["channel"]


def test_stale_channel_files_kept_when_pruning_disabled(make_settings, sample_xmltv, tmp_path):
    epg_dir = tmp_path / "public" / "epg"
    epg_dir.mkdir(parents=True)
    (epg_dir / "old-channel.json").write_text("[]", encoding="utf-8")

    _run(make_settings(prune_stale_channel_files=False), {SOURCE_A: gzip_bytes(sample_xmltv)})

    assert (epg_dir / "old-channel.json").exists()


def test_images_attached_when_enabled(make_settings, sample_xmltv, tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "239.json").write_text(json.dumps({
        "channelId": 239,
        "channelName": "Pogo",
        "channelScheduleData": [{"title": "the show", "boxCoverImage": "http://img/1.png"}],
    }), encoding="utf-8")

    settings = make_settings(
        images_enabled=True,
        channel_image_sources={"ch1": "239"},
        default_image_url="http://img/default.png",
    )
    _run(settings, {SOURCE_A: gzip_bytes(sample_xmltv)})

    ch1 = read_json(tmp_path / "public" / "epg" / "ch1.json")
    assert [item["image"] for item in ch1] == ["http://img/default.png", "http://img/1.png"]
    ch2 = read_json(tmp_path / "public" / "epg" / "ch2.json")
    assert ch2[0]["image"] == "http://img/default.png"
    assert read_json(tmp_path / "public" / "meta.json")["imagesEnabled"] is True


def test_pipeline_with_custom_display_zone(make_settings, tmp_path):
    settings = make_settings(display_timezone_label="UTC", display_timezone_offset_minutes=0)
    feed = '<programme channel="c1" start="20240101120000 +0530"><title>X</title></programme>'

    async def go():
        async with httpx.AsyncClient(transport=make_transport({SOURCE_A: feed.encode()})) as client:
            return await EPGConvertPipeline(settings, client=client).run()

    asyncio.run(go())
    [item] = read_json(tmp_path / "public" / "epg" / "c1.json")
    assert item["start"] == "2024-01-01 06:30:00 UTC"
    assert read_json(tmp_path / "public" / "meta.json")["timeZone"] == "UTC (UTC+0:00)"

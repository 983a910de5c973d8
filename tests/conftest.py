import gzip
import json

import httpx
import pytest

from epg_json.config import CustomSettings


SAMPLE_XMLTV = """<?xml version="1.0" encoding="UTF-8"?>
<tv generator-info-name="test">
  <channel id="ch1"><display-name>Channel One</display-name></channel>
  <programme start="20240101120000 +0530" stop="20240101123000 +0530" channel="ch1">
    <title lang="en">Morning &lt;b&gt;News</title>
    <sub-title>Headlines</sub-title>
  </programme>
  <programme start="20240101123000 +0530" stop="20240101130000 +0530" channel="ch2">
    <title>Cartoon Hour</title>
  </programme>
  <programme start="20240101123000 +0530" stop="20240101133000 +0530" channel="ch1">
    <title>The Show</title>
    <sub_title><i>Episode</i>
      One</sub_title>
  </programme>
</tv>
"""


def gzip_bytes(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"))


def make_transport(routes: dict) -> httpx.MockTransport:
    """Serve canned responses by URL; unknown URLs get a 404"""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url).split("?", 1)[0]
        response = routes.get(url)
        if response is None:
            return httpx.Response(404, request=request)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        if isinstance(response, (dict, list)):
            return httpx.Response(200, json=response)
        return httpx.Response(200, content=response)

    return httpx.MockTransport(handler)


@pytest.fixture
def sample_xmltv() -> str:
    return SAMPLE_XMLTV


@pytest.fixture
def make_settings(tmp_path):
    def factory(**overrides) -> CustomSettings:
        values = {
            "epg_sources": ["https://example.test/a.xml.gz"],
            "output_dir": str(tmp_path / "public"),
            "image_data_dir": str(tmp_path / "data"),
            "image_api_base_url": "https://api.example.test/channels",
            "image_api_channel_ids": [239],
        }
        values.update(overrides)
        return CustomSettings(**values)

    return factory


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))

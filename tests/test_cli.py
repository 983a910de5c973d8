"""
Tests for the command line entry point.
"""
import pytest

import epg_json.__main__ as cli


def test_convert_exit_code_reflects_status(monkeypatch):
    async def fake_convert(config):
        return {"status": "failed", "source_details": []}

    monkeypatch.setattr(cli, "convert_epg", fake_convert)
    assert cli.main(["convert"]) == 1

    async def fake_success(config):
        return {"status": "partial", "source_details": []}

    monkeypatch.setattr(cli, "convert_epg", fake_success)
    assert cli.main(["--log-level", "debug", "convert"]) == 0


def test_update_images_command(monkeypatch):
    calls = []

    async def fake_update(config):
        calls.append(config)
        return {"channels_updated": 1, "channels_failed": 0, "channels_requested": 1}

    monkeypatch.setattr(cli, "update_image_database", fake_update)
    assert cli.main(["update-images"]) == 0
    assert calls == [cli.settings]


def test_command_required():
    with pytest.raises(SystemExit):
        cli.main([])

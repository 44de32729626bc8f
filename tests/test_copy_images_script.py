import pytest
from conftest import SOURCE_KEY
from conftest import TARGET_KEY

import philomena_copier
from philomena_copier.config import Config
from philomena_copier.copier import CopyStats
from philomena_copier.philomena import TransportError
from philomena_copier.scripts import copy_images as script


@pytest.fixture
def config(monkeypatch):
    monkeypatch.setattr(Config, 'find_config_file', staticmethod(lambda: None))
    config = Config()
    config.override_config(
        {
            'source': {'host': 'derpibooru.org', 'api_key': SOURCE_KEY},
            'target': {'host': 'target.example.org', 'api_key': TARGET_KEY},
            'copy': {'base_delay': 2, 'hide_progress': True},
        },
    )
    config.validate_config()
    monkeypatch.setattr(philomena_copier, 'config', config, raising=False)

    return config


@pytest.fixture
def runs(monkeypatch):
    calls = []

    def fake_copy_images(paginator, uploader, confirm=None, hide_progress=False):
        calls.append({'paginator': paginator, 'uploader': uploader, 'confirm': confirm, 'hide_progress': hide_progress})
        return CopyStats()

    monkeypatch.setattr(script, 'copy_images', fake_copy_images)

    return calls


def test_main_wires_source_and_target(config, runs):
    script.main('safe', assume_yes=True)

    run = runs[0]
    assert run['paginator'].client.host == 'derpibooru.org'
    assert run['paginator'].client.api_key == SOURCE_KEY
    assert run['paginator'].query == 'safe'
    assert run['uploader'].client.host == 'target.example.org'
    assert run['uploader'].retry.base_delay == 2
    assert run['confirm'] is None
    assert run['hide_progress'] is True


def test_main_asks_for_confirmation(config, runs):
    script.main('safe')

    assert runs[0]['confirm'] is script.confirm_total


def test_confirm_total_uses_click(monkeypatch):
    monkeypatch.setattr(script.click, 'confirm', lambda *args, **kwargs: False)

    assert script.confirm_total(12) is False


def test_main_exits_on_search_failure(config, monkeypatch):
    def failing_copy_images(*args, **kwargs):
        raise TransportError('Searching derpibooru.org failed with status 502 (Bad Gateway)', status_code=502)

    monkeypatch.setattr(script, 'copy_images', failing_copy_images)

    with pytest.raises(SystemExit) as excinfo:
        script.main('safe', assume_yes=True)

    assert excinfo.value.code == 1


def test_main_exits_on_keyboard_interrupt(config, monkeypatch):
    def interrupted(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(script, 'copy_images', interrupted)

    with pytest.raises(SystemExit) as excinfo:
        script.main('safe', assume_yes=True)

    assert excinfo.value.code == 1

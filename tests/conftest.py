import json

import pytest
import requests
from loguru import logger

from philomena_copier.philomena import Philomena


SOURCE_KEY = 'abcdefghij0123456789'
TARGET_KEY = 'ZYXWVUTSRQ9876543210'


class FakeResponse:
    def __init__(self, status_code=200, body=None, reason='OK'):
        self.status_code = status_code
        self.reason = reason
        self.body = body

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if isinstance(self.body, str):
            return json.loads(self.body)

        return self.body


class FakeSession:
    """Replays scripted responses and records every request.

    A scripted exception instance is raised instead of being returned.
    """

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.requests = []
        self.headers = requests.structures.CaseInsensitiveDict()

    def _respond(self, method, url, **kwargs):
        self.requests.append({'method': method, 'url': url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response

        return response

    def get(self, url, **kwargs):
        return self._respond('GET', url, **kwargs)

    def post(self, url, **kwargs):
        return self._respond('POST', url, **kwargs)


def image_json(image_id, **overrides):
    entry = {
        'id': image_id,
        'description': f'Description of {image_id}',
        'source_url': f'https://example.com/{image_id}',
        'tags': ['safe', 'solo', f'id{image_id}'],
        'view_url': f'https://derpicdn.net/img/view/{image_id}.png',
    }
    entry.update(overrides)

    return entry


def page_json(image_ids, total):
    return {'images': [image_json(image_id) for image_id in image_ids], 'total': total}


@pytest.fixture
def messages():
    """Collect the messages logged through loguru."""

    collected = []
    handler_id = logger.add(lambda message: collected.append(message.record['message']), level='DEBUG')
    yield collected
    logger.remove(handler_id)


@pytest.fixture
def sleeps():
    """A stand-in for time.sleep which records the requested delays."""

    class Recorder(list):
        def __call__(self, seconds):
            self.append(seconds)

    return Recorder()


@pytest.fixture
def source():
    client = Philomena('derpibooru.org', SOURCE_KEY)
    client.session = FakeSession()

    return client


@pytest.fixture
def target():
    client = Philomena('target.example.org', TARGET_KEY)
    client.session = FakeSession()

    return client

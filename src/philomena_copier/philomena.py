from __future__ import annotations

import json
import urllib.parse
from dataclasses import dataclass
from enum import Enum

import requests
from loguru import logger

from philomena_copier.config import BROWSER_USER_AGENT


class Philomena:
    """Handles everything related to the JSON API of a single Philomena instance.

    The same class is used for the booru we copy from (search) and the booru we copy to (upload).
    """

    def __init__(self, host: str, api_key: str, user_agent: str = BROWSER_USER_AGENT, timeout: float = 60) -> None:
        """
        Initializes the requests session which talks to the instance.

        Philomena instances tend to block clients which don't look like a browser, so every request of the session
        carries a browser `User-Agent`.

        Args:
            host (str): The bare host of the instance, e.g. `derpibooru.org`.
            api_key (str): The API key of the user, found on the account page.
            user_agent (str, optional): The `User-Agent` header to send. Defaults to a Firefox user agent.
            timeout (float, optional): Seconds to wait for the server before giving up on a request. Defaults to 60.

        Returns:
            None
        """

        self.host = host
        self.api_key = api_key
        self.api_url = f'https://{host}/api/v1/json'
        logger.debug(f'api_url = {self.api_url}')
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({'User-Agent': user_agent})

    def search_url(self, query: str, page: int, per_page: int = 50) -> str:
        """Return the URL of one result page for `query`, sorted ascending by creation date."""

        query_params = {
            'key': self.api_key,
            'page': page,
            'per_page': per_page,
            'q': query,
            'sf': 'created_at',
            'sd': 'asc',
        }

        return self.api_url + '/search/images?' + urllib.parse.urlencode(query_params)

    def upload_url(self) -> str:
        return self.api_url + '/images?' + urllib.parse.urlencode({'key': self.api_key})

    def search_images(self, query: str, page: int, per_page: int = 50) -> SearchPage:
        """
        Fetch a single page of search results.

        The results are sorted by `created_at` in ascending order. New uploads on the source therefore land on the
        last page, and a run which got interrupted can be resumed with a narrower query without skipping anything.

        Args:
            query (str): Any query which would also work in the search bar of the instance.
            page (int): The page to fetch, starting at 1.
            per_page (int, optional): The number of images per page, at most 50. Defaults to 50.

        Returns:
            SearchPage: The images of the page and the total number of matches.

        Raises:
            TransportError: If the server couldn't be reached or didn't answer with a 2xx status code.
            DecodeError: If the response isn't a well-formed page of results.
        """

        query_url = self.search_url(query, page, per_page)
        logger.debug(f'Getting page {page} from query_url: {query_url.replace(self.api_key, "***")}')

        try:
            response = self.session.get(query_url, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f'Could not reach {self.host}: {e}') from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f'Searching {self.host} failed with status {response.status_code} ({response.reason})',
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise DecodeError(f'The search response from {self.host} is not valid JSON: {e}') from e

        return SearchPage.from_json(body)

    def upload_image(self, image: Image) -> UploadResult:
        """
        Make a single attempt to create `image` on this instance.

        The server fetches the file itself from `image.view_url`. Philomena answers with 400 Bad Request if an image
        with the same hash already exists, which we don't consider an error.

        Args:
            image (Image): The image to create.

        Returns:
            UploadResult: The classified outcome of the attempt. HTTP failures are never raised.
        """

        payload = json.dumps(
            {
                'image': {
                    'description': image.description,
                    'tag_input': image.tag_input,
                    'source_url': image.source_url,
                },
                'url': image.view_url,
            },
        )
        logger.debug(f'Using payload: {payload}')

        try:
            response = self.session.post(
                self.upload_url(),
                data=payload.encode('utf-8'),
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            logger.debug(f'Upload request failed without a response: {e}')
            return UploadResult(UploadStatus.RETRYABLE)

        return UploadResult.from_status_code(response.status_code)


@dataclass(frozen=True)
class Image:
    """An image of the source booru with the metadata we copy."""

    id: int
    description: str
    source_url: str
    tags: tuple
    view_url: str

    @classmethod
    def from_json(cls, entry: dict) -> Image:
        """
        Parse one entry of the `images` list of a search response.

        Empty or missing descriptions, sources and tags are allowed and result in empty values. The `id` and
        `view_url` are required.

        Args:
            entry (dict): The image as returned by the API.

        Returns:
            Image: The parsed image.

        Raises:
            DecodeError: If the entry isn't an object or lacks the `id` or `view_url`.
        """

        if not isinstance(entry, dict):
            raise DecodeError(f'Expected an image object, got {type(entry).__name__}')

        try:
            image_id = int(entry['id'])
            view_url = entry['view_url']
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f'Image entry is missing a valid id or view_url: {e}') from e

        if not isinstance(view_url, str) or not view_url:
            raise DecodeError(f'Image {image_id} has no view_url')

        tags = entry.get('tags') or []
        if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            raise DecodeError(f'Tags of image {image_id} are not a list of strings')

        return cls(
            id=image_id,
            description=entry.get('description') or '',
            source_url=entry.get('source_url') or '',
            tags=tuple(tags),
            view_url=view_url,
        )

    @property
    def tag_input(self) -> str:
        """The tags in the format of the upload form, e.g. `safe, solo, pony`."""

        return ', '.join(self.tags)


@dataclass(frozen=True)
class SearchPage:
    """One page of search results. `total` counts the matches of all pages."""

    images: tuple
    total: int

    @classmethod
    def from_json(cls, body: dict) -> SearchPage:
        if not isinstance(body, dict):
            raise DecodeError(f'Expected a search result object, got {type(body).__name__}')

        images = body.get('images')
        total = body.get('total')

        if not isinstance(images, list):
            raise DecodeError('The search result has no images list')
        if not isinstance(total, int) or isinstance(total, bool):
            raise DecodeError('The search result has no total count')

        return cls(images=tuple(Image.from_json(entry) for entry in images), total=total)


class UploadStatus(Enum):
    SUCCESS = 'success'
    DUPLICATE = 'duplicate'
    RETRYABLE = 'retryable'


@dataclass(frozen=True)
class UploadResult:
    """Classified outcome of one upload attempt.

    `status_code` is `None` if the request failed before the server answered.
    """

    status: UploadStatus
    status_code: int | None = None

    @classmethod
    def from_status_code(cls, status_code: int) -> UploadResult:
        if 200 <= status_code < 300:
            return cls(UploadStatus.SUCCESS, status_code)
        elif status_code == 400:  # Already uploaded (duplicate hash)
            return cls(UploadStatus.DUPLICATE, status_code)
        else:
            return cls(UploadStatus.RETRYABLE, status_code)


class PhilomenaError(Exception):
    """Base error class which inherits from Exception."""

    pass


class TransportError(PhilomenaError):
    """Raise if the search endpoint couldn't be reached or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(PhilomenaError):
    """Raise if a search response isn't a well-formed page of results."""

    pass


class UploadAbortedError(PhilomenaError):
    """Raise if an upload ran out of attempts. Only possible with a limited retry policy."""

    pass

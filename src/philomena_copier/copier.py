from __future__ import annotations

import time
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Callable
from typing import Generator

from loguru import logger
from tqdm import tqdm

from philomena_copier.config import Config
from philomena_copier.philomena import Image
from philomena_copier.philomena import Philomena
from philomena_copier.philomena import SearchPage
from philomena_copier.philomena import UploadAbortedError
from philomena_copier.philomena import UploadStatus


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for failed uploads.

    The nth retry waits `min(base_delay * 2 ** (n - 1), max_delay)` seconds. Without `max_attempts` an upload is
    retried until it succeeds or the process gets killed.
    """

    base_delay: float = 4
    max_delay: float = 1024
    max_attempts: int | None = None

    def delay(self, retry: int) -> float:
        exponent = min(retry - 1, 63)  # keeps 2**exponent within float range

        return min(self.base_delay * 2**exponent, self.max_delay)

    def exhausted(self, attempts: int) -> bool:
        return self.max_attempts is not None and attempts >= self.max_attempts


@dataclass(frozen=True)
class CopySettings:
    per_page: int = 50
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_config(cls, config: Config) -> CopySettings:
        """Build the settings of a run from the validated `copy` section of `config`."""

        return cls(
            per_page=config.copy['per_page'],
            retry=RetryPolicy(base_delay=config.copy['base_delay'], max_delay=config.copy['max_delay']),
        )


class UploadOutcome(Enum):
    UPLOADED = 'uploaded'
    ALREADY_EXISTS = 'already_exists'


@dataclass
class CopyStats:
    uploaded: int = 0
    already_exists: int = 0

    def count(self, outcome: UploadOutcome) -> None:
        if outcome is UploadOutcome.UPLOADED:
            self.uploaded += 1
        else:
            self.already_exists += 1

    @property
    def processed(self) -> int:
        return self.uploaded + self.already_exists


class Paginator:
    """Walks through the search results of the source booru, one page at a time."""

    def __init__(self, client: Philomena, query: str, settings: CopySettings = CopySettings()) -> None:
        self.client = client
        self.query = query
        self.per_page = settings.per_page
        self.total = None

    def fetch_page(self, page: int) -> SearchPage:
        return self.client.search_images(self.query, page, self.per_page)

    def first_page(self) -> SearchPage:
        """Fetch page 1 and remember the total number of matches for the rest of the run."""

        page = self.fetch_page(1)
        self.total = page.total
        logger.debug(f'Got a total of {self.total} results')

        return page

    def pages(self, first_page: SearchPage | None = None) -> Generator[SearchPage, None, None]:
        """
        Yield the pages of the query until the server returns an empty page.

        Pages are fetched lazily, so the next page is only requested once the consumer is done with the current one.
        The total is only read from the first page; later pages don't change it.

        Args:
            first_page (SearchPage, optional): An already fetched first page. Gets fetched if omitted.

        Yields:
            SearchPage: Every non-empty page, starting with page 1.

        Raises:
            TransportError: If a page couldn't be fetched.
            DecodeError: If a page couldn't be parsed.
        """

        page = first_page if first_page is not None else self.first_page()
        page_number = 1

        while page.images:
            yield page

            page_number += 1
            page = self.fetch_page(page_number)
            if page.total != self.total:
                logger.debug(f'Page {page_number} reports a total of {page.total}, keeping {self.total}')

        logger.debug(f'Page {page_number} is empty, no more results')


class Uploader:
    """Creates images on the target booru and retries failed uploads with exponential backoff."""

    def __init__(
        self,
        client: Philomena,
        settings: CopySettings = CopySettings(),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.retry = settings.retry
        self.sleep = sleep

    def upload_one(self, image: Image) -> UploadOutcome:
        """
        Upload `image` and block until the target either created it or already had it.

        Every status code besides 2xx and 400 counts as a temporary failure, as do requests which didn't get a
        response at all. The wait between attempts doubles each time, starting at the base delay and capped at the
        max delay.

        Args:
            image (Image): The image to create on the target.

        Returns:
            UploadOutcome: `UPLOADED` if the image was created, `ALREADY_EXISTS` if the target rejected it as
                duplicate.

        Raises:
            UploadAbortedError: If the retry policy limits the attempts and all of them failed.
        """

        attempts = 0

        while True:
            attempts += 1
            logger.debug(f'Upload attempt {attempts} for image {image.id}')
            result = self.client.upload_image(image)

            if result.status is UploadStatus.SUCCESS:
                logger.success(f'Uploaded image {image.id}')
                return UploadOutcome.UPLOADED
            elif result.status is UploadStatus.DUPLICATE:
                logger.info(f'Image {image.id} has already been uploaded')
                return UploadOutcome.ALREADY_EXISTS

            if result.status_code is None:
                logger.warning('Error uploading image (Unknown error)')
            else:
                logger.warning(f'Error uploading image ({result.status_code})')

            if self.retry.exhausted(attempts):
                raise UploadAbortedError(f'Giving up on image {image.id} after {attempts} attempts')

            delay = self.retry.delay(attempts)
            logger.info(f'Retrying in {delay:g} seconds...')
            self.sleep(delay)

    def pace(self) -> None:
        """Wait the base delay between two images so neither server gets overloaded."""

        self.sleep(self.retry.base_delay)


def copy_images(
    paginator: Paginator,
    uploader: Uploader,
    confirm: Callable[[int], bool] | None = None,
    hide_progress: bool = False,
) -> CopyStats:
    """
    Copy every image matching the query of `paginator` with `uploader`.

    Images are processed one after another in the order of the source. Each image is fully resolved, including all
    retries, before the next one starts. The run ends with the first empty page.

    Args:
        paginator (Paginator): Paginator over the query on the source booru.
        uploader (Uploader): Uploader for the target booru.
        confirm (Callable[[int], bool], optional): Called with the total before anything gets uploaded. The run is
            cancelled if it returns False. Defaults to None.
        hide_progress (bool, optional): Hide the progress bar. Defaults to False.

    Returns:
        CopyStats: How many images were uploaded and how many already existed.

    Raises:
        TransportError: If a page of the source couldn't be fetched.
        DecodeError: If a page of the source couldn't be parsed.
    """

    stats = CopyStats()
    first_page = paginator.first_page()
    total = paginator.total

    if total == 0:
        logger.warning('This query has no images! Double-check the query and try again.')
        return stats

    logger.info(f'There are {total} images in this query')

    if confirm is not None and not confirm(total):
        logger.info('Cancelled, nothing was uploaded.')
        return stats

    position = 0
    with tqdm(total=total, ncols=80, position=0, leave=False, disable=hide_progress) as progress:
        for page in paginator.pages(first_page):
            for image in page.images:
                position += 1
                logger.info(f'Uploading image {position}/{total} ({image.id})...')

                stats.count(uploader.upload_one(image))
                progress.update(1)

                uploader.pace()

    logger.success(f'Finished copying! Uploaded {stats.uploaded} images, {stats.already_exists} already existed.')

    return stats

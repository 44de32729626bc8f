import sys

import click
from loguru import logger

from philomena_copier.copier import CopySettings
from philomena_copier.copier import Paginator
from philomena_copier.copier import Uploader
from philomena_copier.copier import copy_images
from philomena_copier.philomena import Philomena
from philomena_copier.philomena import PhilomenaError


def confirm_total(total: int) -> bool:
    """Let the user double-check the image count before anything gets uploaded."""

    return click.confirm(
        f'Ensure the query and image count are correct! Copy {total} images?',
        default=True,
        err=True,
    )


@logger.catch
def main(query: str, assume_yes: bool = False) -> None:
    """
    Copy all images matching `query` from the source to the target booru.

    Args:
        query (str): A query for the source booru. Any query that can be made on the site will work.
        assume_yes (bool, optional): Don't ask for confirmation once the total is known. Defaults to False.

    Returns:
        None
    """

    from philomena_copier import config

    try:
        logger.debug(f'query = {query}')

        settings = CopySettings.from_config(config)
        source = Philomena(
            config.source['host'],
            config.source['api_key'],
            user_agent=config.copy['user_agent'],
            timeout=config.copy['timeout'],
        )
        target = Philomena(
            config.target['host'],
            config.target['api_key'],
            user_agent=config.copy['user_agent'],
            timeout=config.copy['timeout'],
        )

        try:
            copy_images(
                Paginator(source, query, settings),
                Uploader(target, settings),
                confirm=None if assume_yes else confirm_total,
                hide_progress=config.copy['hide_progress'],
            )
        except PhilomenaError as e:
            logger.critical(f'Could not copy your query: {e}')
            sys.exit(1)
    except KeyboardInterrupt:
        logger.info('Received keyboard interrupt from user.')
        sys.exit(1)

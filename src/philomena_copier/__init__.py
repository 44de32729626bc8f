from philomena_copier.config import Config


__version__ = '1.0.0'


def setup_config():
    global config

    config = Config()


def setup_logger() -> None:
    """Setup loguru logging handlers."""

    import sys

    from loguru import logger

    logger.remove()
    logger.configure(
        handlers=[
            dict(
                sink=sys.stderr,
                backtrace=False,
                diagnose=False,
                colorize=True,
                level='INFO',
                filter=lambda record: record['level'].no < 30,
                format='<le>[{level}]</le> {message}',
            ),
            dict(
                sink=sys.stderr,
                backtrace=False,
                diagnose=False,
                colorize=True,
                level='WARNING',
                filter=lambda record: record['level'].no < 40,
                format=''.join(
                    '<ly>[{level}]</ly> <ly>[{module}.{function}]</ly> {message}',
                ),
            ),
            dict(
                sink=sys.stderr,
                backtrace=False,
                diagnose=False,
                colorize=True,
                level='ERROR',
                format=''.join(
                    '<lr>[{level}]</lr> <ly>[{module}.{function}]</ly> {message}',
                ),
            ),
        ],
    )

    if config.logging['log_enabled']:
        logger.add(
            sink=config.logging['log_file'],
            colorize=config.logging['log_colorized'],
            level=config.logging['log_level'],
            diagnose=False,
            format=''.join(
                '<lm>[{level}]</lm> <lg>[{time:DD.MM.YYYY, HH:mm:ss zz}]</lg> <ly>[{module}.{function}]</ly> {message}',
            ),
        )

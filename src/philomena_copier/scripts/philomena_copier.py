import importlib
import shutil
import types

import click
from click.core import ParameterSource

from philomena_copier import __version__
from philomena_copier import setup_config
from philomena_copier import setup_logger
from philomena_copier.config import COPY_DEFAULTS
from philomena_copier.config import LOGGING_DEFAULTS
from philomena_copier.config import parse_api_key
from philomena_copier.config import parse_host


PROMPTS = {
    ('source', 'host'): 'Enter source booru url',
    ('source', 'api_key'): 'Enter source booru API Key',
    ('target', 'host'): 'Enter target booru url',
    ('target', 'api_key'): 'Enter target booru API Key',
}

# Maps the CLI parameters of copy-images to their config section and option
COPY_IMAGES_OPTIONS = {
    'source_host': ('source', 'host'),
    'source_api_key': ('source', 'api_key'),
    'target_host': ('target', 'host'),
    'target_api_key': ('target', 'api_key'),
    'per_page': ('copy', 'per_page'),
    'base_delay': ('copy', 'base_delay'),
    'max_delay': ('copy', 'max_delay'),
    'hide_progress': ('copy', 'hide_progress'),
}


def prompt_option(section: str, option: str) -> str:
    """Ask for a host or API key until the input is valid."""

    parse = parse_host if option == 'host' else parse_api_key

    def convert(value: str) -> str:
        parsed = parse(value)
        if not parsed:
            raise click.BadParameter('Invalid input')

        return parsed

    return click.prompt(PROMPTS[(section, option)], value_proc=convert, hide_input=option == 'api_key', err=True)


def setup_module(module_name: str, click_context: click.core.Context) -> types.ModuleType:
    """Sets up and validates the configuration and logger, then imports and returns the specified module.

    Options passed on the command line override the config file. Booru hosts and API keys which are set in neither
    get prompted for interactively.

    Args:
        module_name (str): The name of the module to import from the `philomena_copier.scripts` package.
        click_context (click.core.Context): The Click context object, which contains the options passed to the Click command.

    Returns:
        The imported module.
    """

    setup_config()

    from philomena_copier import config

    config.override_config(click_context.obj)
    setup_logger()

    for section, option in config.missing_options():
        config.override_config({section: {option: prompt_option(section, option)}})

    config.validate_config()

    return importlib.import_module('philomena_copier.scripts.' + module_name)


CONTEXT_SETTINGS = {'help_option_names': ['-h', '--help'], 'max_content_width': shutil.get_terminal_size().columns - 10}


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, prog_name='Philomena Copier')
# Logging options
@click.option('--log-enabled', is_flag=True, help=f'Create a log file (default: {LOGGING_DEFAULTS["log_enabled"]}).')
@click.option('--log-colorized', is_flag=True, help=f'Colorize the log output (default: {LOGGING_DEFAULTS["log_colorized"]}).')
@click.option('--log-file', help=f'Output file for the log (default: {LOGGING_DEFAULTS["log_file"]})')
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=True),
    help=f'Set the log level (default: {LOGGING_DEFAULTS["log_level"]}).',
)
@click.pass_context
def cli(ctx, log_enabled, log_colorized, log_file, log_level):
    """Copy images from one Philomena booru to another.

    Defaults can also be set in a config file.
    """

    ctx.ensure_object(dict)

    for param in ctx.command.params:
        parameter_source = click.get_current_context().get_parameter_source(param.name)
        if parameter_source == ParameterSource.COMMANDLINE:
            ctx.obj.setdefault('logging', {}).update({param.name: ctx.params[param.name]})


@cli.command('copy-images', epilog='Example: philomena-copier copy-images --yes "safe, artist:foo"')
@click.argument('query', required=False)
@click.option('--source-host', help='URL of the booru to copy the images from.')
@click.option('--source-api-key', help='API key on the source booru. It can be found on the account page.')
@click.option('--target-host', help='URL of the booru to copy the images to.')
@click.option('--target-api-key', help='API key on the target booru. It can be found on the account page.')
@click.option('--per-page', type=int, help=f'Images per search page, at most 50 (default: {COPY_DEFAULTS["per_page"]}).')
@click.option(
    '--base-delay',
    type=float,
    help=f'Seconds to wait between images and before the first retry (default: {COPY_DEFAULTS["base_delay"]}).',
)
@click.option(
    '--max-delay',
    type=float,
    help=f'Upper limit in seconds for the wait between retries (default: {COPY_DEFAULTS["max_delay"]}).',
)
@click.option('--hide-progress', is_flag=True, help=f'Hides the progress bar (default: {COPY_DEFAULTS["hide_progress"]}).')
@click.option('--yes', '-y', is_flag=True, help='Start copying without asking to confirm the image count.')
@click.pass_context
def click_copy_images(
    ctx,
    query,
    source_host,
    source_api_key,
    target_host,
    target_api_key,
    per_page,
    base_delay,
    max_delay,
    hide_progress,
    yes,
):
    """
    Copy images matching a query

    QUERY is a search query for the source booru. Any query that can be made on the site will work.
    """

    click.echo(f'Philomena Copier v{__version__}\n', err=True)
    click.echo(
        'Ensure your filters are set correctly on the source booru. The active filter will be used when copying images.',
        err=True,
    )
    click.echo('API keys can be found on the Account page.\n', err=True)

    for param in ctx.command.params:
        parameter_source = click.get_current_context().get_parameter_source(param.name)
        if parameter_source == ParameterSource.COMMANDLINE and param.name in COPY_IMAGES_OPTIONS:
            section, option = COPY_IMAGES_OPTIONS[param.name]
            ctx.obj.setdefault(section, {}).update({option: ctx.params[param.name]})

    module = setup_module('copy_images', ctx)

    if not query or not query.strip():
        click.echo(
            'Enter query to copy from the source booru to the target booru. Any query that can be made on the site will work.',
            err=True,
        )
        query = click.prompt('Query', err=True)

    module.main(query.strip(), yes)


if __name__ == '__main__':
    cli()

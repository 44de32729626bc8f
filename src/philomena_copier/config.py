from __future__ import annotations

import os
import re
import sys
import tomllib
from copy import deepcopy

import validators
from loguru import logger
from validators import ValidationError


# Matches a domain, ignoring "http"/"https" and a trailing "/"
DOMAIN_PATTERN = r'^(?:https?:\/\/)?(.+?\..+?)\/?$'

# Philomena API keys are alphanumeric and 20 characters long
API_KEY_PATTERN = r'^([a-zA-Z0-9]{20})$'

BROWSER_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:77.0) Gecko/20100101 Firefox/77.0'

SOURCE_DEFAULTS = {
    'host': None,
    'api_key': None,
}

TARGET_DEFAULTS = {
    'host': None,
    'api_key': None,
}

COPY_DEFAULTS = {
    'per_page': 50,
    'base_delay': 4,
    'max_delay': 1024,  # 17 minutes and 4 seconds
    'user_agent': BROWSER_USER_AGENT,
    'timeout': 60,
    'hide_progress': False,
}

LOGGING_DEFAULTS = {
    'log_enabled': False,
    'log_file': 'philomena_copier.log',
    'log_level': 'INFO',
    'log_colorized': True,
}


def parse_host(value: str) -> str | None:
    """Extract the bare host from user input like `https://derpibooru.org/`.

    Args:
        value (str): The host or URL of a booru.

    Returns:
        str | None: The host without scheme and trailing slash, `None` if the input doesn't look like a domain.
    """

    match = re.match(DOMAIN_PATTERN, value.strip())
    if not match:
        return None

    host = match.group(1)
    if isinstance(validators.url('https://' + host), ValidationError):
        return None

    return host


def parse_api_key(value: str) -> str | None:
    """Return the stripped API key if it is valid, otherwise `None`."""

    match = re.match(API_KEY_PATTERN, value.strip())

    return match.group(1) if match else None


class Config:
    """Reference to the default config values and the user config (CLI/config.toml)."""

    def __init__(self, config_file: str | None = None) -> None:
        """
        Initializes a new instance of the Config class.

        Sets the default values of every section and merges the first `config.toml` that could be found on top of
        them. The default locations differ between Windows and Linux. An explicit `config_file` takes precedence over
        the default locations.

        Args:
            config_file (str, optional): Path to a config file. Defaults to None.

        Returns:
            None
        """

        self.source = deepcopy(SOURCE_DEFAULTS)
        self.target = deepcopy(TARGET_DEFAULTS)
        self.copy = deepcopy(COPY_DEFAULTS)
        self.logging = deepcopy(LOGGING_DEFAULTS)

        if not config_file:
            config_file = self.find_config_file()

        if config_file:
            logger.debug(f'Loading config file {config_file}')
            with open(config_file, 'rb') as f:
                try:
                    config = tomllib.load(f)
                    for section, values in config.items():
                        if hasattr(self, section) and isinstance(getattr(self, section), dict):
                            getattr(self, section).update(values)
                except Exception as e:
                    logger.critical(e)
                    sys.exit(1)

    @staticmethod
    def find_config_file() -> str | None:
        """Return the first existing config file of the default locations."""

        if os.name == 'nt':  # Windows
            default_locations = [
                os.path.join(os.getcwd(), 'config.toml'),
                os.path.join(os.getenv('USERPROFILE', ''), 'philomena-copier', 'config.toml'),
                os.path.join(os.getenv('APPDATA', ''), 'philomena-copier', 'config.toml'),
            ]
        else:  # Linux
            default_locations = [
                os.path.join(os.getcwd(), 'config.toml'),
                os.path.expanduser('~/.config/philomena-copier/config.toml'),
                '/etc/philomena-copier/config.toml',
            ]

        for location in default_locations:
            if os.path.isfile(location):
                return location

        return None

    def override_config(self, overrides: dict) -> None:
        """Override options with command line arguments.

        Args:
            overrides (dict): A dictionary containing the options to override, grouped by section.
        """

        for section, items in overrides.items():
            section_dict = getattr(self, section)
            for item in items:
                section_dict[item] = items[item]
            setattr(self, section, section_dict)

    def missing_options(self) -> list:
        """Return the (section, option) pairs of the booru credentials which aren't set yet."""

        missing = []
        for section in ['source', 'target']:
            for option in ['host', 'api_key']:
                if not getattr(self, section)[option]:
                    missing.append((section, option))

        return missing

    def validate_booru(self, section: str) -> None:
        """Normalize the host and check the API key of the `source` or `target` section."""

        options = getattr(self, section)

        if not options['host'] or not options['api_key']:
            logger.critical(f'You have to specify a {section} host and API key!')
            sys.exit(1)

        host = parse_host(str(options['host']))
        if not host:
            logger.critical(f'Your {section} host "{options["host"]}" is not valid!')
            sys.exit(1)
        options['host'] = host

        api_key = parse_api_key(str(options['api_key']))
        if not api_key:
            logger.critical(f'Your {section} API key is not valid! It has to be 20 alphanumeric characters.')
            sys.exit(1)
        options['api_key'] = api_key

    def validate_copy(self) -> None:
        """Convert the copy options to numbers and check their bounds."""

        try:
            self.copy['per_page'] = int(self.copy['per_page'])
            self.copy['base_delay'] = float(self.copy['base_delay'])
            self.copy['max_delay'] = float(self.copy['max_delay'])
            self.copy['timeout'] = float(self.copy['timeout'])
        except (TypeError, ValueError) as e:
            logger.critical(f'Your copy options are not valid: {e}')
            sys.exit(1)

        if not 1 <= self.copy['per_page'] <= 50:
            logger.critical(f'The per_page value "{self.copy["per_page"]}" has to be between 1 and 50!')
            sys.exit(1)

        if self.copy['base_delay'] <= 0 or self.copy['max_delay'] < self.copy['base_delay']:
            logger.critical('The base_delay has to be positive and must not exceed the max_delay!')
            sys.exit(1)

        if self.copy['timeout'] <= 0:
            logger.critical(f'The timeout "{self.copy["timeout"]}" has to be positive!')
            sys.exit(1)

    def validate_config(self) -> None:
        """Validate the config by calling the individual validation methods."""

        self.validate_booru('source')
        self.validate_booru('target')
        self.validate_copy()

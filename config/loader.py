"""Configuration file loader and validator.

Handles reading, formatting, and validating settings from the INI configuration file.
Raises exceptions for any issues encountered during loading.

Fixed sections map onto the dataclasses in `models.config_models`. Providers are declared in
``[PROVIDER:<name>]`` sections, one per provider, and are kept in file order.
"""

from __future__ import annotations

import ast
import configparser
import os
import re
from configparser import ConfigParser, SectionProxy
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from models.config_models import DEFAULT_PROVIDER_TIMEOUT, Config, ModelConfig, ProviderConfig
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable
    from dataclasses import Field as DataclassField
else:
    from dataclasses import Field as DataclassField

__all__: list[str] = [
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
    "parse_ttl",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

PROVIDER_SECTION_PREFIX: Final[str] = "PROVIDER:"

ALLOWED_CACHE_TYPES: list[str] = ["memory", "redis"]

_MODEL_KEYS: Final[dict[str, Callable[[Any], Any]]] = {
    "name": str,
    "weight": int,
    "max_tokens": int,
    "temperature": float,
    "timeout": float,
}

_TTL_UNITS: Final[dict[str, float]] = {
    "s": 1.0,
    "sec": 1.0,
    "second": 1.0,
    "seconds": 1.0,
    "m": 60.0,
    "min": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
    "d": 86400.0,
    "day": 86400.0,
    "days": 86400.0,
    "w": 604800.0,
    "week": 604800.0,
    "weeks": 604800.0,
}

_TTL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(\d+(?:\.\d+)?)\s*([a-zA-Z]*)$")


class ConfigLoaderError(Exception):
    """An error occurred while processing the configuration file."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The specified configuration file does not exist."""


class ConfigFormatError(ConfigLoaderError):
    """The configuration file is not formatted correctly."""


class ConfigValueError(ConfigFormatError):
    """The configuration file contains an invalid value."""


class ConfigTypeError(ConfigFormatError):
    """The configuration file contains an invalid type."""


def parse_ttl(value: str) -> float:
    """Convert a TTL string into seconds.

    ``permanent``, ``0`` and ``-1`` mean the entries never expire and give -1.0. Otherwise the
    value is a number followed by an optional unit (s/sec, m/min, h/hour, d/day, w/week, with
    plural forms). A number without a unit is in seconds.

    Args:
        value (str): TTL string such as "30s", "2h" or "7d".

    Returns:
        float: TTL in seconds, or -1.0 for permanent.

    Raises:
        ConfigValueError: If the string cannot be parsed.
    """
    text: str = StringUtils.ensure_str(value).strip().strip("'\"").strip()
    if text.lower() in ("permanent", "0", "-1"):
        return -1.0

    match: re.Match[str] | None = _TTL_PATTERN.match(text)
    if match is None:
        msg = f"Invalid TTL value: '{value}'"
        raise ConfigValueError(msg)

    number, unit = match.groups()
    multiplier: float | None = _TTL_UNITS.get(unit.lower()) if unit else 1.0
    if multiplier is None:
        msg = f"Unknown time unit '{unit}' in TTL value '{value}'"
        raise ConfigValueError(msg)

    seconds: float = float(number) * multiplier
    if seconds <= 0:
        return -1.0
    return seconds


class ConfigLoader:
    """Handles loading and validation of configuration settings.

    This class reads the configuration file, applies formatting rules, and validates settings.
    It raises exceptions for any issues encountered during the loading process.

    Args:
        config_filename (str): INI file name to load.
        script_name (str): Executing script name, used in error messaging.
        debug (bool): Optional override enabling debug mode.

    Raises:
        ConfigFileNotFoundError: If the configuration file does not exist.
        ConfigFormatError: If the file cannot be parsed or contains invalid values/types.
    """

    def __init__(
        self,
        *,
        config_filename: str,
        script_name: str,
        **args,
    ) -> None:
        config_path = Path(config_filename)
        msg: str
        if not config_path.exists():
            msg = (
                f"Configuration file '{config_filename}' not found. "
                f"Please create '{config_filename}' in the same directory as '{script_name}'."
            )
            raise ConfigFileNotFoundError(msg)

        # Prompt templates may contain '%', so value interpolation is disabled.
        parser: ConfigParser = ConfigParser(interpolation=None)

        try:
            parser.read(config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None

        self.config = Config()
        self.config.GENERAL.SCRIPT_NAME = script_name
        self._convert_settings(parser)
        self.config.PROVIDERS = self._get_providers(parser)
        if args.get("debug", False):
            self.config.GENERAL.DEBUG = True
        self._validate_settings()

    def _convert_settings(self, parser: ConfigParser) -> None:
        """Convert the fixed configuration sections from the parser to the Config object.

        Args:
            parser (ConfigParser): Parsed INI data.

        Raises:
            ConfigFormatError: If a value cannot be parsed or coerced to the expected type.
        """
        formatter = _ConfigFormatter(self.config, parser)
        for section in fields(self.config):
            # Providers live in their own dynamically named sections.
            if section.name == "PROVIDERS":
                continue
            if not parser.has_section(section.name):
                logger.debug("Skipping undefined section: '%s'", section.name)
                continue
            self._convert_section_field(parser, formatter, section)

    def _convert_section_field(
        self, parser: ConfigParser, formatter: _ConfigFormatter, section: DataclassField[Any]
    ) -> None:
        """Convert all fields in a configuration section.

        Args:
            parser (ConfigParser): Parsed INI data.
            formatter (_ConfigFormatter): Formatter used to coerce string values to typed values.
            section (Field[Any]): Target configuration section dataclass field.

        Raises:
            ConfigFormatError: If a value fails to format correctly.
        """
        for key in fields(getattr(self.config, section.name)):
            if not parser.has_option(section.name, key.name):
                logger.debug("Skipping undefined setting: '%s.%s'", section.name, key.name)
                continue

            formatted_value = formatter.apply_format(section, key)
            setattr(getattr(self.config, section.name), key.name, formatted_value)

    def _get_providers(self, parser: ConfigParser) -> list[ProviderConfig]:
        """Build provider configurations from the ``[PROVIDER:<name>]`` sections, in file order.

        Args:
            parser (ConfigParser): Parsed INI data.

        Returns:
            list[ProviderConfig]: Providers in declaration order.

        Raises:
            ConfigFormatError: If a provider section is malformed.
        """
        providers: list[ProviderConfig] = []
        for section_name in parser.sections():
            if not section_name.upper().startswith(PROVIDER_SECTION_PREFIX):
                continue
            name: str = section_name[len(PROVIDER_SECTION_PREFIX) :].strip()
            if not name:
                msg = f"Provider section '{section_name}' has no provider name"
                raise ConfigValueError(msg)
            providers.append(self._get_provider(name, parser[section_name]))
        return providers

    def _get_provider(self, name: str, section: SectionProxy) -> ProviderConfig:
        msg: str
        try:
            provider_type: str = _literal_str(section.get("TYPE", "")) or name
            api_url: str = _literal_str(section.get("API_URL", ""))
            api_key: str = _literal_str(section.get("API_KEY", ""))
            timeout: float = section.getfloat("TIMEOUT", fallback=DEFAULT_PROVIDER_TIMEOUT)
            is_default: bool = section.getboolean("IS_DEFAULT", fallback=False)
        except ValueError as err:
            msg = f"Invalid value in provider '{name}': {err}"
            raise ConfigValueError(msg) from err

        if not api_url:
            msg = f"Provider '{name}' has no API_URL"
            raise ConfigValueError(msg)
        if not api_key:
            api_key = os.getenv(_api_key_env_name(name), "")

        return ProviderConfig(
            provider=name,
            type=provider_type.lower(),
            api_url=api_url,
            api_key=api_key,
            timeout=timeout,
            is_default=is_default,
            models=self._get_models(name, section.get("MODELS", "[]")),
        )

    def _get_models(self, provider_name: str, value: str) -> list[ModelConfig]:
        """Parse the MODELS literal of a provider section.

        Args:
            provider_name (str): Provider name, used in error messages.
            value (str): Python literal: a list of dicts with the keys name, weight, max_tokens,
                temperature and timeout. Only name is required.

        Returns:
            list[ModelConfig]: Models in declaration order.

        Raises:
            ConfigFormatError: If the literal is malformed.
        """
        msg: str
        try:
            raw_models: Any = ast.literal_eval(value)
        except (ValueError, SyntaxError) as err:
            msg = f"Invalid MODELS literal for provider '{provider_name}': {value}"
            raise ConfigFormatError(msg) from err

        if not isinstance(raw_models, list) or not all(isinstance(item, dict) for item in raw_models):
            msg = f"MODELS of provider '{provider_name}' must be a list of dicts"
            raise ConfigTypeError(msg)

        models: list[ModelConfig] = []
        for raw_model in raw_models:
            unknown: list[str] = [key for key in raw_model if key not in _MODEL_KEYS]
            if unknown:
                msg = f"Unknown model keys {unknown} in provider '{provider_name}'"
                raise ConfigValueError(msg)
            if not raw_model.get("name"):
                msg = f"A model of provider '{provider_name}' has no name"
                raise ConfigValueError(msg)
            try:
                converted: dict[str, Any] = {
                    key: _MODEL_KEYS[key](item) for key, item in raw_model.items() if item is not None
                }
            except (TypeError, ValueError) as err:
                msg = f"Invalid model value in provider '{provider_name}': {err}"
                raise ConfigValueError(msg) from err
            models.append(ModelConfig(**converted))
        return models

    def _validate_settings(self) -> None:
        """Validate providers, the prompt template, cache types and batch limits.

        Raises:
            ConfigFormatError: If validation fails for any setting.
        """
        msg: str
        if not self.config.PROVIDERS:
            msg = f"No provider is configured. Add at least one [{PROVIDER_SECTION_PREFIX}<name>] section."
            raise ConfigValueError(msg)

        for provider in self.config.PROVIDERS:
            if not provider.models:
                msg = f"Provider '{provider.provider}' has no models"
                raise ConfigValueError(msg)

        if not isinstance(self.config.PROMPT.TEMPLATE, str) or not StringUtils.has_input_placeholder(
            self.config.PROMPT.TEMPLATE
        ):
            msg = "'PROMPT.TEMPLATE' must contain the {{input}} placeholder"
            raise ConfigValueError(msg)

        self._inspect_defined_item("CACHE", "TYPES", ALLOWED_CACHE_TYPES)
        if self.config.CACHE.ENABLED and not self.config.CACHE.TYPES:
            msg = "'CACHE.TYPES' must not be empty when the cache is enabled"
            raise ConfigValueError(msg)

        if self.config.BATCH.MAX_TEXTS <= 0 or self.config.BATCH.MAX_CONCURRENT <= 0:
            msg = "'BATCH.MAX_TEXTS' and 'BATCH.MAX_CONCURRENT' must be positive"
            raise ConfigValueError(msg)

    def _inspect_defined_item(self, section_name: str, key_name: str, defined_list: list[str]) -> None:
        """Verify that configuration values match allowed options.

        Args:
            section_name (str): Section name in the config model.
            key_name (str): Field name to inspect.
            defined_list (list[str]): Allowed values.

        Raises:
            ConfigTypeError: If the configured value is neither list nor str.
            ConfigValueError: If a value is not in the allowed options.
        """
        value: str | list[str] = getattr(getattr(self.config, section_name), key_name)
        field_name: str = f"{section_name}.{key_name}"

        if not isinstance(value, (list, str)):
            msg: str = f"Unsupported type used for '{field_name}': {type(value)}"
            raise ConfigTypeError(msg)

        values: list[str] = value if isinstance(value, list) else [value]
        normalized: list[str] = [str(val).strip().lower() for val in values]
        for val in normalized:
            if val not in defined_list:
                msg = f"Unknown value '{val}' is set for '{field_name}'. Allowed values: {defined_list}"
                raise ConfigValueError(msg)
        setattr(getattr(self.config, section_name), key_name, normalized)


def _literal_str(value: str) -> str:
    """Read a string setting that may or may not be quoted."""
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        try:
            return str(ast.literal_eval(value))
        except (ValueError, SyntaxError):
            return value[1:-1]
    return value


def _api_key_env_name(provider_name: str) -> str:
    return re.sub(r"[^0-9A-Za-z]", "_", provider_name).upper() + "_API_KEY"


class _ConfigFormatter:
    """Converts INI string values to typed Python objects (bool, int, float, TTL, list, dict, str)."""

    def __init__(self, config: Config, parser: ConfigParser) -> None:
        self.config: Config = config
        self.parser: ConfigParser = parser

    def apply_format(self, section: DataclassField[Any], key: DataclassField[Any]) -> Any:
        """Convert INI value to the expected Python type based on the Config field type.

        Args:
            section (DataclassField[Any]): Configuration section field containing the key.
            key (DataclassField[Any]): Target field within the section.

        Returns:
            Any: Parsed value coerced to the type declared in the config dataclass.

        Raises:
            ConfigValueError: If a value cannot be coerced to the expected type.
            ConfigFormatError: If literal evaluation fails due to invalid syntax.
            ConfigTypeError: If an unexpected type is encountered during coercion.
        """
        if key.metadata.get("format") == "ttl":
            return parse_ttl(self.parser.get(section.name, key.name))

        formatters: dict[
            type[bool | int | float], Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float]
        ] = {
            bool: self.parse_as_boolean,
            int: self.parse_as_integer,
            float: self.parse_as_float,
        }

        formatter: Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float] | None = formatters.get(
            type(getattr(getattr(self.config, section.name), key.name))
        )
        if formatter:
            try:
                return formatter(section, key)
            except ValueError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigValueError(msg) from err
            except TypeError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigTypeError(msg) from err

        value_str: str = self.parser[section.name][key.name]
        if isinstance(getattr(getattr(self.config, section.name), key.name), str):
            return _literal_str(value_str)

        try:
            return ast.literal_eval(value_str)
        except ValueError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigValueError(msg) from err
        except SyntaxError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigFormatError(msg) from err

    def parse_as_float(self, section: DataclassField[Any], key: DataclassField[Any]) -> float:
        """Convert INI string to float."""
        value: str = self.parser.get(section.name, key.name)
        for char in ("'", '"'):
            value = value.removeprefix(char).removesuffix(char)
        return float(value)

    def parse_as_integer(self, section: DataclassField[Any], key: DataclassField[Any]) -> int:
        """Convert INI string to integer."""
        value: str = self.parser.get(section.name, key.name)
        for char in ("'", '"'):
            value = value.removeprefix(char).removesuffix(char)
        return int(float(value))

    def parse_as_boolean(self, section: DataclassField[Any], key: DataclassField[Any]) -> bool:
        """Convert INI string to boolean."""
        return self.parser.getboolean(section.name, key.name)


if __name__ == "__main__":
    import pprint

    test = ConfigLoader(config_filename="transgate.ini", script_name="TEST")
    pp = pprint.PrettyPrinter(indent=1, width=100)
    pp.pprint(test.config)

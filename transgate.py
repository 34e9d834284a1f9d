"""TransGate command-line interface.

Loads the gateway configuration, builds the backend registry, cache and telemetry recorder,
and translates the texts given on the command line. Several texts are translated as one batch.

Examples:
    python transgate.py -t fr "Hello"
    python transgate.py -s en -t ja --provider openai --model gpt-4o-mini "Good morning" "Good night"
    python transgate.py --list-models
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Final, NoReturn

from config.loader import ConfigLoader, ConfigLoaderError
from core.cache.builder import build_cache
from core.telemetry.recorder import TranslationRecorder
from core.trans.interface import GatewayConfigError, TranslateExceptionError
from core.trans.manager import TransManager
from core.trans.registry import ModelRegistry
from core.version import VERSION
from models.translation_models import TranslateRequest
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    from models.config_models import Config
    from models.translation_models import BatchItemResult, TranslationOutcome

CFG_FILE: Final[str] = "transgate.ini"


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(2)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv (list[str] | None): Arguments to parse. None reads sys.argv.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = _ArgumentParser(
        description=f"TransGate {VERSION}: translate text through configured LLM backends",
        epilog='Example: python transgate.py -s en -t fr "Hello"',
    )
    parser.add_argument("-c", "--config", dest="config", default=CFG_FILE, help="Configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("-s", "--source", dest="source", default="", help="Source language code")
    parser.add_argument("-t", "--target", dest="target", default="", help="Target language code")
    parser.add_argument("--provider", dest="provider", default="", help="Provider to use (with --model)")
    parser.add_argument("--model", dest="model", default="", help="Model to use (with --provider)")
    parser.add_argument("--details", action="store_true", help="Show backend and cache information")
    parser.add_argument("--list-models", action="store_true", help="List configured backends and exit")
    parser.add_argument("texts", nargs="*", metavar="TEXT", help="Texts to translate")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Load the configuration file and apply CLI overrides.

    Raises:
        ConfigLoaderError: If the configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).stem
    return ConfigLoader(config_filename=args.config, script_name=script_name, debug=args.debug).config


def setup_logging(config: Config) -> None:
    logger_utils = LoggerUtils(config.GENERAL.LOG_FILE)
    logger_utils.set_level("DEBUG" if config.GENERAL.DEBUG else "INFO")
    if config.GENERAL.DEBUG:
        for handler in logger_utils.root_logger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                handler.setLevel(logging.DEBUG)


def build_manager(config: Config) -> TransManager:
    """Assemble a TransManager from configuration.

    Args:
        config (Config): Loaded configuration.

    Returns:
        TransManager: Manager wired to the registry, cache and recorder described by the config.

    Raises:
        GatewayConfigError: If the providers, cache or template are invalid.
    """
    registry: ModelRegistry = ModelRegistry.build(config.PROVIDERS)
    recorder: TranslationRecorder | None = None
    if config.TELEMETRY.ENABLED:
        recorder = TranslationRecorder(
            config.TELEMETRY.FILE_PATH,
            queue_size=config.TELEMETRY.QUEUE_SIZE,
            max_bytes=config.TELEMETRY.MAX_BYTES,
            backup_count=config.TELEMETRY.BACKUP_COUNT,
        )
    return TransManager(
        registry,
        cache=build_cache(config),
        recorder=recorder,
        prompt_template=config.PROMPT.TEMPLATE,
        max_batch_texts=config.BATCH.MAX_TEXTS,
        max_concurrent=config.BATCH.MAX_CONCURRENT,
    )


def print_models(manager: TransManager) -> None:
    for identity in manager.list_models():
        print(f"{identity.provider}\t{identity.model}\t{identity.api_url}")


def _format_outcome(outcome: TranslationOutcome) -> str:
    source: str = "cache" if outcome.cache_hit else "backend"
    return f"[{outcome.identity.provider}/{outcome.identity.model}, {source}, {outcome.elapsed_ms:.0f} ms]"


async def run(args: argparse.Namespace, manager: TransManager) -> int:
    """Translate the requested texts and print the results.

    Returns:
        int: Process exit code.
    """
    if args.list_models:
        print_models(manager)
        return 0

    if not args.texts:
        print("\nError: no text to translate.", file=sys.stderr)
        return 2
    if not args.target:
        print("\nError: a target language is required (-t/--target).", file=sys.stderr)
        return 2
    for lang in (args.source, args.target):
        if lang and not manager.validate_language(lang):
            print(f"\nWarning: '{lang}' is not an ISO 639-1 language code.", file=sys.stderr)

    if len(args.texts) == 1:
        try:
            outcome: TranslationOutcome = await manager.translate_with_details(
                args.provider, args.model, "", args.texts[0], args.source, args.target
            )
        except (TranslateExceptionError, GatewayConfigError) as err:
            print(f"\nError: {err}", file=sys.stderr)
            return 1
        print(outcome.text)
        if args.details:
            print(_format_outcome(outcome), file=sys.stderr)
        return 0

    requests: list[TranslateRequest] = [
        TranslateRequest(
            text=text, source_lang=args.source, target_lang=args.target, provider=args.provider, model=args.model
        )
        for text in args.texts
    ]
    try:
        results: list[BatchItemResult] = await manager.batch_translate(requests)
    except TranslateExceptionError as err:
        print(f"\nError: {err}", file=sys.stderr)
        return 1

    exit_code: int = 0
    for result in results:
        if result.ok:
            print(result.text)
        else:
            print(f"Error (item {result.index + 1}): {result.error}", file=sys.stderr)
            exit_code = 1
    return exit_code


async def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Performs the following steps:
    1. Parse command-line arguments
    2. Load configuration and configure logging
    3. Build the translation manager
    4. Translate (or list models)
    5. Shut everything down
    """
    args: argparse.Namespace = parse_arguments(argv)
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return 1

    setup_logging(config)

    try:
        manager: TransManager = build_manager(config)
    except GatewayConfigError as err:
        print(f"\nError: Invalid gateway configuration: {err}", file=sys.stderr)
        return 1

    try:
        return await run(args, manager)
    finally:
        await manager.close()


def cli() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nCancelled by user.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    cli()

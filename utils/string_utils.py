from __future__ import annotations

import hashlib
import re
from typing import Final

from models.language_models import LANGUAGES

__all__: list[str] = ["StringUtils"]

CACHE_KEY_PREFIX: Final[str] = "transgate:"
# Namespace used by deployments that predate CACHE_KEY_PREFIX. Entries stored under it are still readable.
LEGACY_CACHE_KEY_PREFIX: Final[str] = "transbridge:"

INPUT_PLACEHOLDER: Final[str] = "{{input}}"
SOURCE_LANG_PLACEHOLDER: Final[str] = "{{source_lang}}"
TARGET_LANG_PLACEHOLDER: Final[str] = "{{target_lang}}"


class StringUtils:
    """Utility class for string handling shared by the translation core.

    Provides static methods for cache key derivation, prompt template rendering,
    and language code handling.
    """

    @staticmethod
    def ensure_str(value: str | None) -> str:
        """Ensure that the value is a string, returning an empty string if None.

        Note: Does not use strip() so that significant whitespace in source text is preserved.

        Args:
            value (str | None): The value to ensure as a string.

        Returns:
            str: The value as a string, or empty string if None.
        """
        if not isinstance(value, str):
            value = str(value) if value is not None else ""
        return value

    @staticmethod
    def cache_key_material(text: str, source_lang: str, target_lang: str) -> str:
        """Build the literal string that cache keys are hashed from.

        Args:
            text (str): Source text.
            source_lang (str): Source language code.
            target_lang (str): Target language code.

        Returns:
            str: ``"<source_lang>:<target_lang>:<text>"``.
        """
        return f"{source_lang}:{target_lang}:{text}"

    @staticmethod
    def generate_cache_key(text: str, source_lang: str, target_lang: str) -> str:
        """Generate the cache key for a translation request.

        The key is a SHA-256 digest of ``source_lang:target_lang:text`` prefixed with
        ``CACHE_KEY_PREFIX``. Identical triples always give identical keys.

        Args:
            text (str): Source text.
            source_lang (str): Source language code.
            target_lang (str): Target language code.

        Returns:
            str: The namespaced cache key.
        """
        material: str = StringUtils.cache_key_material(text, source_lang, target_lang)
        return CACHE_KEY_PREFIX + hashlib.sha256(material.encode("utf-8")).hexdigest()

    @staticmethod
    def generate_legacy_cache_key(text: str, source_lang: str, target_lang: str) -> str:
        """Generate the cache key used by the legacy key namespace (MD5 digest).

        Args:
            text (str): Source text.
            source_lang (str): Source language code.
            target_lang (str): Target language code.

        Returns:
            str: The legacy namespaced cache key.
        """
        material: str = StringUtils.cache_key_material(text, source_lang, target_lang)
        return LEGACY_CACHE_KEY_PREFIX + hashlib.md5(material.encode("utf-8"), usedforsecurity=False).hexdigest()

    @staticmethod
    def has_input_placeholder(template: str) -> bool:
        return INPUT_PLACEHOLDER in StringUtils.ensure_str(template)

    @staticmethod
    def apply_prompt_template(template: str, input_text: str, source_lang: str, target_lang: str) -> str:
        """Substitute the placeholders of a prompt template.

        Supported placeholders are ``{{input}}``, ``{{source_lang}}`` and ``{{target_lang}}``.
        Substitution is done in a single pass, so placeholder-like text inside the input is left as-is.

        Args:
            template (str): The prompt template.
            input_text (str): Text to translate.
            source_lang (str): Value substituted for ``{{source_lang}}``.
            target_lang (str): Value substituted for ``{{target_lang}}``.

        Returns:
            str: The rendered prompt.

        Raises:
            ValueError: If the template does not contain ``{{input}}``.
        """
        if not StringUtils.has_input_placeholder(template):
            msg = f"Invalid prompt template: must contain {INPUT_PLACEHOLDER}"
            raise ValueError(msg)

        replacements: dict[str, str] = {
            INPUT_PLACEHOLDER: input_text,
            SOURCE_LANG_PLACEHOLDER: source_lang,
            TARGET_LANG_PLACEHOLDER: target_lang,
        }
        pattern: re.Pattern[str] = re.compile("|".join(re.escape(placeholder) for placeholder in replacements))
        return pattern.sub(lambda match: replacements[match.group(0)], template)

    @staticmethod
    def base_language_code(code: str) -> str:
        """Extract the lowercase base language from a tag such as ``zh-CN`` or ``pt_BR``."""
        return StringUtils.ensure_str(code).strip().replace("_", "-").split("-")[0].lower()

    @staticmethod
    def is_valid_language_code(code: str) -> bool:
        """Check whether the code (or the base of a regional tag) is an ISO 639-1 code.

        Args:
            code (str): Language code to check.

        Returns:
            bool: True if the base language code is known.
        """
        return StringUtils.base_language_code(code) in LANGUAGES

    @staticmethod
    def language_name(code: str) -> str:
        """Return the English display name of a language code.

        Unknown codes are returned unchanged, so a prompt still receives whatever the caller sent.

        Args:
            code (str): Language code such as ``en`` or ``zh-CN``.

        Returns:
            str: English language name, or the code itself when it is not recognized.
        """
        return LANGUAGES.get(StringUtils.base_language_code(code), StringUtils.ensure_str(code))

"""
Quran tool handlers and the response envelope they return.

Each handler is a plain async function that:
1. Borrows the shared QuranClient from the injected ClientCache
2. Calls one client operation
3. Renders the result as markdown text inside a ToolResponse

Handlers never raise. Any failure coming out of the client (bad verse key,
rejected credentials, network fault, unexpected payload) is caught here and
turned into a ToolResponse with is_error=True and a diagnostic text. The
server module converts ToolResponse into the MCP wire format.

Registration (tool names, parameter schemas) lives in server.py; this module
only knows about the domain.
"""

import logging
from dataclasses import dataclass, field
from typing import Literal

from quran_mcp.client import TranslationResource, Verse
from quran_mcp.client_cache import ClientCache, QuranConfig
from quran_mcp.errors import classify_error

logger = logging.getLogger("quran-mcp.tools")

# Public tool names, as seen by MCP clients.
GET_VERSE_TOOL = "getVerse"
GET_TRANSLATIONS_TOOL = "getAvailableTranslations"

SUGGESTED_LANGUAGES = (
    "english, urdu, arabic, spanish, french, turkish, bengali, indonesian, russian, persian"
)


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentBlock:
    """
    One piece of tool output.

    Attributes:
        kind: "text" for markdown/plain text, "binary" for base64 data
        payload: The text itself, or base64-encoded data for binary blocks
        mime_type: MIME type of binary payloads (e.g. "image/jpeg")
    """

    kind: Literal["text", "binary"]
    payload: str
    mime_type: str | None = None


@dataclass(frozen=True)
class ToolResponse:
    content_blocks: list[ContentBlock] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def from_text(cls, text: str, is_error: bool = False) -> "ToolResponse":
        return cls(content_blocks=[ContentBlock(kind="text", payload=text)], is_error=is_error)

    @property
    def text(self) -> str:
        """All text blocks joined together (binary blocks are skipped)."""
        return "\n".join(b.payload for b in self.content_blocks if b.kind == "text")


def _error_response(title: str, exc: Exception, hint: str) -> ToolResponse:
    kind = classify_error(exc)
    status_code = getattr(exc, "status_code", None)
    error_type = f"{kind.value} (HTTP {status_code})" if status_code else kind.value
    message = getattr(exc, "message", None) or str(exc) or type(exc).__name__

    logger.warning(
        title,
        extra={"log_data": {"error_kind": kind.value, "status_code": status_code}},
    )
    return ToolResponse.from_text(
        f"**{title}**\n\nError Type: {error_type}\nMessage: {message}\n\n{hint}",
        is_error=True,
    )


# ---------------------------------------------------------------------------
# Verse fetch
# ---------------------------------------------------------------------------


def format_verse(verse: Verse, include_words: bool = False) -> str:
    """Render a verse as markdown. Sections without data are left out."""
    lines = [
        f"**Verse {verse.verse_key}**",
        "",
        "**Arabic (Uthmani):**",
        verse.text_uthmani or "N/A",
        "",
        "**Metadata:**",
        f"- Chapter: {verse.chapter_id}",
        f"- Verse Number: {verse.verse_number}",
        f"- Page: {verse.page_number}",
        f"- Juz: {verse.juz_number}",
        "",
    ]

    if verse.translations:
        lines.append("**Translations:**")
        for translation in verse.translations:
            lines.append("")
            lines.append(
                f"*{translation.resource_name or 'Translation'}* "
                f"({translation.language_name or 'N/A'}):"
            )
            lines.append(translation.text)
        lines.append("")

    if verse.tafsirs:
        lines.append("**Tafsir (Commentary):**")
        for tafsir in verse.tafsirs:
            lines.append("")
            lines.append(f"*{tafsir.resource_name or 'Tafsir'}*:")
            lines.append(tafsir.text)
        lines.append("")

    if include_words and verse.words:
        lines.append("**Word-by-Word Breakdown:**")
        for index, word in enumerate(verse.words, start=1):
            lines.append(f"{index}. {word.text_uthmani or word.text_imlaei or 'N/A'}")

    return "\n".join(lines).rstrip() + "\n"


async def get_verse(
    cache: ClientCache,
    config: QuranConfig,
    verse_key: str,
    translations: list[int] | None = None,
    include_words: bool = False,
    include_tafsir: bool = False,
    tafsir_ids: list[int] | None = None,
) -> ToolResponse:
    """
    Fetch a verse with optional translations, word breakdown and tafsir.

    tafsir_ids are only sent upstream when include_tafsir is set.
    """
    try:
        client = cache.get(config)
        verse = await client.find_verse_by_key(
            verse_key,
            translations=translations,
            words=include_words,
            tafsirs=tafsir_ids if include_tafsir and tafsir_ids else None,
        )
    except Exception as e:
        return _error_response(
            f"Error fetching verse {verse_key}",
            e,
            "Please check the verse key format (should be 'chapter:verse', e.g., '2:255') "
            "and try again.",
        )

    logger.info(
        "Tool executed: getVerse",
        extra={
            "log_data": {
                "verse_key": verse_key,
                "translations": len(verse.translations),
                "tafsirs": len(verse.tafsirs),
            }
        },
    )
    return ToolResponse.from_text(format_verse(verse, include_words=include_words))


# ---------------------------------------------------------------------------
# Translation catalog
# ---------------------------------------------------------------------------


def group_translations_by_language(
    translations: list[TranslationResource],
) -> dict[str, list[TranslationResource]]:
    """
    Group translations by language name, with keys in lexicographic order.

    Entries without a language name are grouped under "unknown". Within a
    group, the upstream order is preserved.
    """
    groups: dict[str, list[TranslationResource]] = {}
    for translation in translations:
        groups.setdefault(translation.language_name or "unknown", []).append(translation)
    return {language: groups[language] for language in sorted(groups)}


def _describe(translation: TranslationResource) -> str:
    text = f"ID: {translation.id} - {translation.name}"
    if translation.author_name:
        text += f" by {translation.author_name}"
    return text


def format_translations(translations: list[TranslationResource], language: str | None) -> str:
    """Render the (already filtered) translation catalog as markdown."""
    if language:
        lines = [f"**Available {language.capitalize()} Translations** ({len(translations)} found)", ""]
    else:
        lines = [f"**All Available Translations** ({len(translations)} total)", ""]

    if not translations:
        suffix = f" for language: {language}" if language else ""
        lines.append(f"No translations found{suffix}.")
        lines.append("")
        lines.append(f"Try using common languages like: {SUGGESTED_LANGUAGES}")
        return "\n".join(lines) + "\n"

    if language:
        for translation in translations:
            lines.append(f"- **{_describe(translation)}**")
        lines.append("")
    else:
        for group, members in group_translations_by_language(translations).items():
            lines.append(f"**{group.capitalize()}** ({len(members)} translations):")
            for translation in members:
                lines.append(f"  - {_describe(translation)}")
            lines.append("")

    example_id = translations[0].id
    lines.extend(
        [
            "**Usage Example:**",
            f"To fetch a verse with translation ID {example_id}, use:",
            "```",
            f'{GET_VERSE_TOOL}(verse_key="2:255", translations=[{example_id}])',
            "```",
        ]
    )
    return "\n".join(lines) + "\n"


async def get_available_translations(
    cache: ClientCache,
    config: QuranConfig,
    language: str | None = None,
) -> ToolResponse:
    """
    List available translations, optionally filtered by language name.

    The full catalog is always fetched; the language filter is a local,
    case-insensitive exact match on each entry's language name.
    """
    try:
        client = cache.get(config)
        catalog = await client.find_all_translations()
    except Exception as e:
        return _error_response("Error fetching translations", e, "Please try again.")

    if language:
        wanted = language.lower()
        catalog = [t for t in catalog if (t.language_name or "").lower() == wanted]

    logger.info(
        "Tool executed: getAvailableTranslations",
        extra={"log_data": {"language": language, "results": len(catalog)}},
    )
    return ToolResponse.from_text(format_translations(catalog, language))

"""
Check Quran Foundation API credentials without starting the MCP server.

Reads QURAN_CLIENT_ID, QURAN_CLIENT_SECRET and QURAN_ENV (from the
environment or .env), then:
1. Fetches Ayat al-Kursi (2:255) with the Saheeh International translation,
   which forces the OAuth2 token exchange
2. Lists the translation catalog and prints how many languages it covers

Usage:
    uv run python -m scripts.check_credentials
    uv run python -m scripts.check_credentials --verse 1:1 --translation 85
"""

import argparse
import asyncio
import sys

from quran_mcp.client_cache import create_quran_client
from quran_mcp.config import load_quran_config, quran_settings
from quran_mcp.environments import resolve_endpoints
from quran_mcp.errors import ConfigurationError, classify_error
from quran_mcp.tools import format_verse, group_translations_by_language


async def run_checks(verse_key: str, translation_id: int) -> int:
    try:
        config = load_quran_config(quran_settings)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    endpoints = resolve_endpoints(config.environment)
    print(f"Client ID:    {config.client_id[:10]}...")
    print(f"Environment:  {config.environment.value if config.environment else 'production'}")
    print(f"Content API:  {endpoints.content_base_url}")
    print(f"Auth server:  {endpoints.auth_base_url}")
    print()

    async with create_quran_client(config) as client:
        try:
            verse = await client.find_verse_by_key(verse_key, translations=[translation_id])
            print(format_verse(verse))

            translations = await client.find_all_translations()
            groups = group_translations_by_language(translations)
            print(f"{len(translations)} translations in {len(groups)} languages")
        except Exception as e:
            print(f"Check failed ({classify_error(e).value}): {e}", file=sys.stderr)
            return 1

    print("Credentials OK")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Verify Quran Foundation API credentials.")
    parser.add_argument("--verse", default="2:255", help="Verse key to fetch (default: 2:255)")
    parser.add_argument("--translation", type=int, default=20, help="Translation ID (default: 20)")
    args = parser.parse_args()

    sys.exit(asyncio.run(run_checks(args.verse, args.translation)))


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Command-line entry point
========================
Authenticates a fresh browser context against the chat application and
writes the new session back to the env file when a login was needed.

All settings flow through ``AuthSettings`` / ``AuthConfig``; this module
only parses flags, launches the browser and reports the outcome.

Run with: python -m chatauth
"""

import argparse
import asyncio
import logging
import sys
import time

from playwright.async_api import async_playwright

from .run_config import AuthConfig, AuthSettings, ConfigError, _DEFAULTS
from .errors import PersistenceTargetMissingError, SnapshotDecodeError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_AUTH_FAILED = 1
EXIT_CONFIG_ERROR = 2


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='python -m chatauth',
        description='Reuse or refresh a logged-in chat session (magic-link email login)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m chatauth                               # Use .env.test, headless
  python -m chatauth --env-file tests/.env.test --headed
  python -m chatauth --bootstrap                   # Manual login, save session
        """
    )
    parser.add_argument(
        '--env-file', type=str, default=_DEFAULTS['env_file'], metavar='PATH',
        help=f"Env file with MAILOSAUR_*/CLAUDE_* values (default: {_DEFAULTS['env_file']})",
    )
    parser.add_argument('--app-url', type=str, metavar='URL', help='Chat application base URL')
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    parser.add_argument('--no-stealth', action='store_true', help='Skip fingerprint overrides')
    parser.add_argument(
        '--replay-local-storage', action='store_true',
        help='Restore cached localStorage in addition to cookies',
    )
    parser.add_argument(
        '--no-persist', action='store_true',
        help='Do not write a new snapshot back to the env file',
    )
    parser.add_argument(
        '--bootstrap', action='store_true',
        help='Launch a headed browser for manual login and save the session, then exit',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


async def _authenticate(config: AuthConfig, settings: AuthSettings) -> int:
    from .client import ChatSessionClient

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=settings.headless)
        try:
            context = await browser.new_context(user_agent=settings.user_agent, locale="en-US")
            client = ChatSessionClient(context, config, settings)

            start = time.time()
            result = await client.initialize()
            elapsed = time.time() - start

            print("\n" + "=" * 50)
            if result.success:
                how = "Fresh login via mailbox" if result.is_new_login else "Reused cached auth state"
                print(f"  ✅ Authenticated — {how}")
                print(f"  Auth state:  {len(result.snapshot)} chars")
                if result.is_new_login and config.env_file_path:
                    print(f"  Saved to:    {config.env_file_path}")
            else:
                print(f"  ❌ Authentication failed ({result.failure.value})")
                print(f"  Reason:      {result.error}")
            print(f"  Time:        {elapsed:.1f}s")
            print("=" * 50 + "\n")

            await client.close()
            return EXIT_OK if result.success else EXIT_AUTH_FAILED
        finally:
            await browser.close()


def run_cli(argv=None) -> int:
    """Parse argv, build config, run.  Returns the process exit code."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    settings = AuthSettings.from_cli_args(args)

    if args.bootstrap:
        from .auth.session_bootstrap import bootstrap_session
        env_file = None if args.no_persist else args.env_file
        try:
            encoded = asyncio.run(bootstrap_session(settings, env_file_path=env_file))
        except (PersistenceTargetMissingError, OSError) as e:
            logger.error(f"[CONFIG] {e}")
            return EXIT_CONFIG_ERROR
        return EXIT_OK if encoded else EXIT_AUTH_FAILED

    try:
        config = AuthConfig.from_env(
            args.env_file,
            state_env_key=settings.state_env_key,
            persist=not args.no_persist,
        )
    except ConfigError as e:
        logger.error(f"[CONFIG] {e}")
        return EXIT_CONFIG_ERROR

    settings.log_summary()

    try:
        return asyncio.run(_authenticate(config, settings))
    except (SnapshotDecodeError, PersistenceTargetMissingError) as e:
        logger.error(f"[CONFIG] {e}")
        return EXIT_CONFIG_ERROR


if __name__ == '__main__':
    sys.exit(run_cli())

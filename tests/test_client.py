"""
Tests for client.py and the CLI wiring in __main__.py.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from chatauth.__main__ import EXIT_CONFIG_ERROR, build_parser, run_cli
from chatauth.auth import state_codec
from chatauth.errors import FailureKind
from chatauth.auth.orchestrator import AuthOrchestrator, AuthPhase, AuthResult
from chatauth.client import ChatSessionClient

from conftest import APP_URL, FakeContext, live_state


def _orchestrator(result):
    auth = MagicMock(spec=AuthOrchestrator)
    auth.authenticate = AsyncMock(return_value=result)
    return auth


_OK = AuthResult.succeeded("c25hcA==", is_new_login=False, phase=AuthPhase.VALID)
_FAILED = AuthResult.failed(
    "No email", FailureKind.MAILBOX_TIMEOUT, is_new_login=False, phase=AuthPhase.LOGIN_FAILED,
)


# ====================================================================
# ChatSessionClient
# ====================================================================

class TestChatSessionClient:

    @pytest.mark.asyncio
    async def test_initialize_opens_new_chat(self, config, settings):
        ctx = FakeContext()
        client = ChatSessionClient(ctx, config, settings, orchestrator=_orchestrator(_OK))

        result = await client.initialize()

        assert result is _OK
        assert client.is_ready()
        assert client.page.visited == [f"{APP_URL}/new"]

    @pytest.mark.asyncio
    async def test_failed_auth_leaves_client_unready(self, config, settings):
        ctx = FakeContext()
        client = ChatSessionClient(ctx, config, settings, orchestrator=_orchestrator(_FAILED))

        await client.initialize()

        assert not client.is_ready()
        assert ctx.pages == []
        with pytest.raises(RuntimeError, match="Client not initialized"):
            await client.new_chat()

    @pytest.mark.asyncio
    async def test_get_auth_state_encodes_live_context(self, config, settings):
        client = ChatSessionClient(FakeContext(), config, settings, orchestrator=_orchestrator(_OK))
        await client.initialize()

        encoded = await client.get_auth_state()
        assert state_codec.decode(encoded) == state_codec.decode(state_codec.encode(live_state()))

    @pytest.mark.asyncio
    async def test_close_releases_page(self, config, settings):
        client = ChatSessionClient(FakeContext(), config, settings, orchestrator=_orchestrator(_OK))
        await client.initialize()
        page = client.page

        await client.close()

        assert page.closed
        assert not client.is_ready()


# ====================================================================
# CLI
# ====================================================================

class TestCli:

    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.env_file == ".env.test"
        assert not args.headed and not args.bootstrap and not args.no_persist

    def test_missing_config_exits_with_config_error(self, tmp_path, monkeypatch):
        for name in ("MAILOSAUR_API_KEY", "MAILOSAUR_SERVER_ID", "CLAUDE_EMAIL"):
            monkeypatch.delenv(name, raising=False)
        code = run_cli(["--env-file", str(tmp_path / "none.env")])
        assert code == EXIT_CONFIG_ERROR

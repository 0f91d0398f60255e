"""
Shared fixtures for workflow engine tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from vault_automation.adapters.documents import InMemoryDocumentStore
from vault_automation.config.types import EngineSettings
from vault_automation.interfaces import (
    Collaborators,
    CommandProvider,
    HostCommandRunner,
    HttpGateway,
    PromptProvider,
    RagSyncProvider,
    ToolGateway,
)


@pytest.fixture
def settings():
    """Engine settings with short timers and no history persistence."""
    return EngineSettings(
        history_enabled=False,
        modify_debounce_seconds=0.05,
        loop_guard_seconds=0.2,
    )


@pytest.fixture
def documents():
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def prompts():
    """Prompt provider that approves writes and dismisses everything else."""
    provider = MagicMock(spec=PromptProvider)
    provider.ask = AsyncMock(return_value=None)
    provider.pick_file = AsyncMock(return_value=None)
    provider.pick_selection = AsyncMock(return_value=None)
    provider.confirm_write = AsyncMock(return_value=True)
    provider.open_document = AsyncMock(return_value=None)
    return provider


@pytest.fixture
def commands():
    provider = MagicMock(spec=CommandProvider)
    provider.run = AsyncMock()
    return provider


@pytest.fixture
def http():
    gateway = MagicMock(spec=HttpGateway)
    gateway.request = AsyncMock()
    return gateway


@pytest.fixture
def tools():
    gateway = MagicMock(spec=ToolGateway)
    gateway.call_tool = AsyncMock()
    return gateway


@pytest.fixture
def rag():
    provider = MagicMock(spec=RagSyncProvider)
    provider.sync = AsyncMock(return_value={"fileId": "file-1"})
    return provider


@pytest.fixture
def host():
    runner = MagicMock(spec=HostCommandRunner)
    runner.execute = AsyncMock(return_value=True)
    return runner


@pytest.fixture
def collaborators(documents, prompts, commands, http, tools, rag, host):
    """Collaborators bundle with every interface mocked."""
    return Collaborators(
        documents=documents,
        commands=commands,
        http=http,
        tools=tools,
        prompts=prompts,
        rag=rag,
        host=host,
    )

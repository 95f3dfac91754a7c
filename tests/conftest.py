"""
Test configuration and fixtures for toolhub tests.

Every filesystem test runs against its own ``tmp_path`` project root; remote
providers are built with dummy tokens and their HTTP layer is mocked.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from toolhub.config import Settings
from toolhub.main import create_app
from toolhub.services.dispatcher import Dispatcher
from toolhub.services.figma import FigmaProvider
from toolhub.services.filesystem import FilesystemProvider
from toolhub.services.github import GitHubProvider
from toolhub.services.sandbox import PathValidator, SandboxPolicy


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def policy(project_root: Path) -> SandboxPolicy:
    return SandboxPolicy(root=project_root)


@pytest.fixture
def validator(policy: SandboxPolicy) -> PathValidator:
    return PathValidator(policy)


@pytest.fixture
def fs_provider(policy: SandboxPolicy) -> FilesystemProvider:
    return FilesystemProvider(policy)


@pytest.fixture
def github_provider() -> GitHubProvider:
    return GitHubProvider("gh-test-token", "octo", "demo", base_url="https://api.github.test")


@pytest.fixture
def figma_provider() -> FigmaProvider:
    return FigmaProvider("figma-test-token", base_url="https://api.figma.test/v1")


@pytest.fixture
def dispatcher(fs_provider, github_provider, figma_provider) -> Dispatcher:
    return Dispatcher([fs_provider, github_provider, figma_provider])


@pytest.fixture
def settings(project_root: Path) -> Settings:
    return Settings(
        PROJECT_ROOT=str(project_root),
        LOG_FILE="",
        CORS_ALLOWED_ORIGINS="http://localhost:3000",
    )


@pytest.fixture
def client(settings: Settings, dispatcher: Dispatcher):
    app = create_app(settings, dispatcher)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

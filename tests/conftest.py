# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Shared pytest fixtures and configuration."""

import pytest

from autoclose.config.settings import Settings, reset_settings
from autoclose.embeddings.service import EmbeddingService
from tests.mocks.providers import (
    FakeClock,
    FakeCompletionProvider,
    FakeEmbeddingProvider,
    FakeScheduler,
)


@pytest.fixture(autouse=True)
def isolate_environment_variables(monkeypatch):
    """Isolate tests from environment variables and .env files.

    No test may reach a real endpoint or pick up a developer's API key.
    """
    monkeypatch.setenv("AUTOCLOSE_SKIP_ENV_FILE", "1")
    for var in (
        "OPENAI_API_KEY",
        "AUTOCLOSE_OPENAI_API_KEY",
        "AUTOCLOSE_PROXY_BASE_URL",
        "AUTOCLOSE_SIMILARITY_THRESHOLD",
        "AUTOCLOSE_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def reset_embedding_singleton():
    """Each test starts without a process-wide embedding service."""
    EmbeddingService.reset_instance()
    yield
    EmbeddingService.reset_instance()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def embedding_service(embedding_provider):
    return EmbeddingService(embedding_provider)


@pytest.fixture
def completion_provider():
    return FakeCompletionProvider("uncertain")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return FakeScheduler()

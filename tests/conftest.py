"""
Pytest configuration and fixtures for refpin tests.

Provides fixtures for:
- Fake GitHub and registry clients
- Sample workflows, compose files and Dockerfiles
- Replacers wired to the fakes
"""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FailingRegistry, FailingRest, FakeRegistry, FakeRest

from refpin.core.config import Config
from refpin.core.replacer import Replacer, new_actions_replacer, new_container_images_replacer

# =============================================================================
# Client Fixtures
# =============================================================================


@pytest.fixture
def fake_rest() -> FakeRest:
    """GitHub client with the known action references."""
    return FakeRest()


@pytest.fixture
def failing_rest() -> FailingRest:
    """GitHub client that must not be called."""
    return FailingRest()


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """Registry with the known image digests."""
    return FakeRegistry()


@pytest.fixture
def failing_registry() -> FailingRegistry:
    """Registry that must not be called."""
    return FailingRegistry()


@pytest.fixture
def config() -> Config:
    """Default configuration."""
    return Config()


# =============================================================================
# Replacer Fixtures
# =============================================================================


@pytest.fixture
def actions_replacer(config: Config, fake_rest: FakeRest, fake_registry: FakeRegistry) -> Replacer:
    """Actions replacer wired to the fakes."""
    return new_actions_replacer(config, registry=fake_registry).with_github_client(fake_rest)


@pytest.fixture
def images_replacer(config: Config, fake_registry: FakeRegistry) -> Replacer:
    """Images replacer wired to the fake registry."""
    return new_container_images_replacer(config, registry=fake_registry)


# =============================================================================
# Sample Content
# =============================================================================

SAMPLE_WORKFLOW = """\
name: test
on: push
jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      # - uses: actions/checkout@v2
      - name: Setup
        uses: "actions/setup-go@v5"
      - uses: ./.github/actions/local
      - uses: actions/cache@main
        with:
          path: ~/.cache
"""

SAMPLE_DOCKERFILE = """\
FROM --platform=linux/s390x golang:1.22.2 AS build
WORKDIR /src
RUN go build -o /bin/app ./cmd/app

FROM build AS test
RUN go test ./...

FROM scratch
COPY --from=build /bin/app /app
"""

SAMPLE_COMPOSE = """\
services:
  web:
    image: nginx:1.25
  db:
    image: "minder:latest"
  cache:
    image: ${CACHE_IMAGE}
"""


@pytest.fixture
def sample_workflow() -> str:
    return SAMPLE_WORKFLOW


@pytest.fixture
def sample_dockerfile() -> str:
    return SAMPLE_DOCKERFILE


@pytest.fixture
def sample_compose() -> str:
    return SAMPLE_COMPOSE


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """A checkout with a workflow, a Dockerfile, a compose file and noise."""
    workflows = tmp_path / ".github" / "workflows"
    workflows.mkdir(parents=True)
    (workflows / "ci.yml").write_text(SAMPLE_WORKFLOW, encoding="utf-8")
    (tmp_path / "Dockerfile").write_text(SAMPLE_DOCKERFILE, encoding="utf-8")
    (tmp_path / "docker-compose.yaml").write_text(SAMPLE_COMPOSE, encoding="utf-8")
    (tmp_path / "README.md").write_text("uses: actions/checkout@v4\n", encoding="utf-8")
    return tmp_path

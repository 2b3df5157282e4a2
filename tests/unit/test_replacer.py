"""Tests for the line-rewrite driver and the entity lister."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from fakes import (
    CACHE_MAIN_SHA,
    CHECKOUT_V2_SHA,
    CHECKOUT_V4_SHA,
    GOLANG_S390X_DIGEST,
    NGINX_DIGEST,
    SETUP_GO_V5_SHA,
    FailingRegistry,
    FailingRest,
    FakeRegistry,
    FakeRest,
)

from refpin.core.config import Config
from refpin.core.errors import (
    OperationCancelledError,
    ReferenceSkippedError,
    RemoteLookupError,
    UnresolvableReferenceError,
)
from refpin.core.models import ReferenceType
from refpin.core.replacer import Replacer, is_comment, new_actions_replacer, new_container_images_replacer

PINNED_WORKFLOW_LINES = [
    f"      - uses: actions/checkout@{CHECKOUT_V4_SHA} # v4",
    "      # - uses: actions/checkout@v2",
    f"        uses: actions/setup-go@{SETUP_GO_V5_SHA} # v5",
    "      - uses: ./.github/actions/local",
    f"      - uses: actions/cache@{CACHE_MAIN_SHA} # main",
]


class TestIsComment:
    """Tests for comment detection."""

    def test_comment(self) -> None:
        assert is_comment("   # - uses: actions/checkout@v2")

    def test_trailing_comment_is_not_a_comment_line(self) -> None:
        assert not is_comment("- uses: actions/checkout@v2 # v2")


class TestParseContentActions:
    """Tests for rewriting workflow text."""

    def test_rewrites_workflow(self, actions_replacer: Replacer, sample_workflow: str) -> None:
        modified, content = actions_replacer.parse_content(sample_workflow)

        assert modified
        lines = content.splitlines()
        for expected in PINNED_WORKFLOW_LINES:
            assert expected in lines
        assert lines[:6] == sample_workflow.splitlines()[:6]

    def test_idempotent(self, actions_replacer: Replacer, sample_workflow: str) -> None:
        """Test a second run changes nothing."""
        _, first = actions_replacer.parse_content(sample_workflow)
        modified, second = actions_replacer.parse_content(first)
        assert not modified
        assert second == first

    def test_already_pinned_line_untouched(self, config: Config, failing_rest: FailingRest) -> None:
        replacer = new_actions_replacer(config).with_github_client(failing_rest)
        text = "    - uses: actions/checkout@1d96c772d19495a3b5c517cd2bc0cb401ea0529f\n"
        assert replacer.parse_content(text) == (False, text)

    def test_line_endings_preserved(self, actions_replacer: Replacer) -> None:
        text = "steps:\r\n  - uses: actions/checkout@v4\r\n  - run: make\r\n"
        modified, content = actions_replacer.parse_content(text)
        assert modified
        assert content == f"steps:\r\n  - uses: actions/checkout@{CHECKOUT_V4_SHA} # v4\r\n  - run: make\r\n"

    def test_no_trailing_newline(self, actions_replacer: Replacer) -> None:
        _, content = actions_replacer.parse_content("- uses: actions/checkout@v4")
        assert content == f"- uses: actions/checkout@{CHECKOUT_V4_SHA} # v4"

    def test_malformed_reference_left_alone(self, actions_replacer: Replacer) -> None:
        text = "- uses: a/b@c@d\n"
        assert actions_replacer.parse_content(text) == (False, text)

    def test_unresolvable_reference_aborts(self, actions_replacer: Replacer) -> None:
        with pytest.raises(UnresolvableReferenceError):
            actions_replacer.parse_content("- uses: actions/checkout@does-not-exist\n")

    def test_excluded_action_never_looked_up(self, failing_rest: FailingRest) -> None:
        """Test exclusion wins before any network call."""
        config = Config.model_validate({"ghactions": {"exclude": ["actions/checkout"]}})
        replacer = new_actions_replacer(config).with_github_client(failing_rest)
        text = "- uses: actions/checkout@v4\n"
        assert replacer.parse_content(text) == (False, text)

    def test_branch_wildcard(self, fake_rest: FakeRest) -> None:
        config = Config.model_validate({"ghactions": {"exclude_branches": ["*"]}})
        replacer = new_actions_replacer(config).with_github_client(fake_rest)
        text = "- uses: actions/cache@main\n- uses: actions/checkout@v4\n"

        modified, content = replacer.parse_content(text)

        assert modified
        assert content == f"- uses: actions/cache@main\n- uses: actions/checkout@{CHECKOUT_V4_SHA} # v4\n"

    def test_cache_shared_across_lines(self, actions_replacer: Replacer, fake_rest: FakeRest) -> None:
        text = "- uses: actions/checkout@v4\n- uses: actions/checkout@v4\n"
        actions_replacer.parse_content(text)
        assert fake_rest.calls == ["repos/actions/checkout/git/refs/tags/v4"]

    def test_cache_disabled(self, actions_replacer: Replacer, fake_rest: FakeRest) -> None:
        actions_replacer.with_cache_disabled()
        actions_replacer.parse_content("- uses: actions/checkout@v4\n- uses: actions/checkout@v4\n")
        assert len(fake_rest.calls) == 2

    def test_user_regex(self, actions_replacer: Replacer) -> None:
        actions_replacer.with_user_regex(r"(?<=action: )\S+@\S+")
        text = "- uses: actions/checkout@v2\naction: actions/checkout@v4\n"
        _, content = actions_replacer.parse_content(text)
        assert content == f"- uses: actions/checkout@v2\naction: actions/checkout@{CHECKOUT_V4_SHA} # v4\n"

    def test_cancelled(self, actions_replacer: Replacer) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(OperationCancelledError):
            actions_replacer.parse_content("- uses: actions/checkout@v4\n", cancel)


class TestParseContentImages:
    """Tests for rewriting Dockerfiles and compose files."""

    def test_dockerfile_flags_and_stage(self, images_replacer: Replacer, sample_dockerfile: str) -> None:
        """Test platform flags and the stage alias survive the rewrite."""
        modified, content = images_replacer.parse_content(sample_dockerfile)

        assert modified
        lines = content.splitlines()
        assert lines[0] == (
            f"FROM --platform=linux/s390x index.docker.io/library/golang:1.22.2@{GOLANG_S390X_DIGEST} AS build"
        )
        assert lines[1:] == sample_dockerfile.splitlines()[1:]

    def test_stage_alias_not_resolved(self, config: Config, fake_registry: FakeRegistry) -> None:
        replacer = new_container_images_replacer(config, registry=fake_registry)
        replacer.parse_content("FROM golang:1.22.2 AS build\nFROM build AS test\n")
        assert fake_registry.calls == ["index.docker.io/library/golang:1.22.2"]

    def test_compose(self, images_replacer: Replacer, sample_compose: str) -> None:
        modified, content = images_replacer.parse_content(sample_compose)

        assert modified
        assert content == sample_compose.replace(
            "image: nginx:1.25",
            f"image: index.docker.io/library/nginx@{NGINX_DIGEST} # 1.25",
        )

    def test_latest_untouched(self, config: Config, failing_registry: FailingRegistry) -> None:
        replacer = new_container_images_replacer(config, registry=failing_registry)
        text = "image: minder:latest\n"
        assert replacer.parse_content(text) == (False, text)

    def test_idempotent(self, images_replacer: Replacer, sample_dockerfile: str, sample_compose: str) -> None:
        for text in (sample_dockerfile, sample_compose):
            _, first = images_replacer.parse_content(text)
            modified, second = images_replacer.parse_content(first)
            assert not modified
            assert second == first


class TestParseString:
    """Tests for single reference resolution."""

    def test_action(self, actions_replacer: Replacer) -> None:
        entity = actions_replacer.parse_string("actions/checkout@v2")
        assert entity.pinned() == f"actions/checkout@{CHECKOUT_V2_SHA} # v2"

    def test_skipped(self, actions_replacer: Replacer) -> None:
        with pytest.raises(ReferenceSkippedError):
            actions_replacer.parse_string(f"actions/checkout@{CHECKOUT_V4_SHA}")

    def test_image(self, images_replacer: Replacer) -> None:
        entity = images_replacer.parse_string("nginx:1.25")
        assert entity.pinned() == f"index.docker.io/library/nginx@{NGINX_DIGEST} # 1.25"


class TestParsePath:
    """Tests for directory mode."""

    def test_actions(self, actions_replacer: Replacer, repo_dir: Path) -> None:
        result = actions_replacer.parse_path(repo_dir)

        workflow = str(repo_dir / ".github" / "workflows" / "ci.yml")
        assert result.processed == sorted(
            [workflow, str(repo_dir / "Dockerfile"), str(repo_dir / "docker-compose.yaml")]
        )
        assert list(result.modified) == [workflow]
        assert result.encodings[workflow] == "utf-8"
        for expected in PINNED_WORKFLOW_LINES:
            assert expected in result.modified[workflow].splitlines()

    def test_images(self, images_replacer: Replacer, repo_dir: Path) -> None:
        result = images_replacer.parse_path(repo_dir)
        assert sorted(result.modified) == [str(repo_dir / "Dockerfile"), str(repo_dir / "docker-compose.yaml")]

    def test_files_not_written(self, actions_replacer: Replacer, repo_dir: Path) -> None:
        workflow = repo_dir / ".github" / "workflows" / "ci.yml"
        before = workflow.read_text(encoding="utf-8")
        actions_replacer.parse_path(repo_dir)
        assert workflow.read_text(encoding="utf-8") == before

    def test_single_file(self, actions_replacer: Replacer, repo_dir: Path) -> None:
        workflow = repo_dir / ".github" / "workflows" / "ci.yml"
        result = actions_replacer.parse_path(workflow)
        assert result.processed == [str(workflow)]

    def test_cache_shared_across_files(self, actions_replacer: Replacer, fake_rest: FakeRest, tmp_path: Path) -> None:
        for name in ("a.yml", "b.yml", "c.yml"):
            (tmp_path / name).write_text("- uses: actions/checkout@v4\n", encoding="utf-8")

        result = actions_replacer.with_max_workers(1).parse_path(tmp_path)

        assert len(result.modified) == 3
        assert fake_rest.calls == ["repos/actions/checkout/git/refs/tags/v4"]

    def test_first_error_raised(self, config: Config, fake_registry: FakeRegistry, repo_dir: Path) -> None:
        rest = FakeRest({"repos/actions/checkout/git/refs/tags/v4": (500, {"message": "boom"})})
        replacer = new_actions_replacer(config, registry=fake_registry).with_github_client(rest)

        with pytest.raises(RemoteLookupError) as exc_info:
            replacer.parse_path(repo_dir)
        assert exc_info.value.context["path"].endswith("ci.yml")

    def test_cancelled(self, actions_replacer: Replacer, repo_dir: Path) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(OperationCancelledError):
            actions_replacer.parse_path(repo_dir, cancel)

    def test_file_encoding_kept(self, actions_replacer: Replacer, tmp_path: Path) -> None:
        path = tmp_path / "ci.yml"
        path.write_bytes("\ufeffname: ci\n- uses: actions/checkout@v4\n".encode("utf-8"))

        result = actions_replacer.parse_path(tmp_path)

        assert result.encodings[str(path)] == "utf-8-sig"
        assert result.modified[str(path)].startswith("name: ci\n")


class TestList:
    """Tests for the entity lister."""

    def test_commented_reference_ignored(self, actions_replacer: Replacer) -> None:
        text = "- uses: actions/checkout@v2\n# - uses: actions/checkout@v2\n"
        entities = actions_replacer.list_in_content(text)
        assert len(entities) == 1
        assert (entities[0].name, entities[0].ref) == ("actions/checkout", "v2")

    def test_duplicates_merged_and_sorted(self, actions_replacer: Replacer, sample_workflow: str) -> None:
        entities = actions_replacer.list_in_content(sample_workflow + sample_workflow)
        assert [(e.name, e.ref) for e in entities] == [
            ("actions/cache", "main"),
            ("actions/checkout", "v4"),
            ("actions/setup-go", "v5"),
        ]
        assert all(e.type == ReferenceType.ACTION for e in entities)

    def test_no_network(self, config: Config, failing_rest: FailingRest, failing_registry: FailingRegistry, sample_workflow: str) -> None:
        replacer = new_actions_replacer(config, registry=failing_registry).with_github_client(failing_rest)
        assert len(replacer.list_in_content(sample_workflow)) == 3

    def test_list_path_images(self, images_replacer: Replacer, repo_dir: Path) -> None:
        result = images_replacer.list_path(repo_dir)

        assert len(result.processed) == 3
        assert [(e.name, e.ref) for e in result.entities] == [
            ("golang", "1.22.2"),
            ("minder", "latest"),
            ("nginx", "1.25"),
            ("scratch", "latest"),
        ]

    def test_list_in_file(self, actions_replacer: Replacer, repo_dir: Path) -> None:
        entities = actions_replacer.list_in_file(repo_dir / ".github" / "workflows" / "ci.yml")
        assert len(entities) == 3

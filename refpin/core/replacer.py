"""
Line-rewrite driver and entity lister.

The driver scans text line by line, hands every pattern match to a parser and
splices the formatted replacement back into the line. Everything outside the
match is kept byte for byte, including line endings.

Usage:
    replacer = new_actions_replacer(config).with_github_client_from_token(token)
    result = replacer.parse_path(".github/workflows")
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TYPE_CHECKING

from refpin.core.actions import ActionsParser
from refpin.core.config import Config, default_config
from refpin.core.encoding import read_text
from refpin.core.errors import MalformedReferenceError, RefpinError, ReferenceSkippedError
from refpin.core.image import ImageParser
from refpin.core.models import EntityRef, ListResult, ReplaceResult
from refpin.core.rest import DEFAULT_GITHUB_API_URL, GitHubClient
from refpin.core.traverse import traverse_yaml_dockerfiles
from refpin.core.writer import join_lines, split_lines

if TYPE_CHECKING:
    from refpin.core.parser import Parser
    from refpin.core.registry import Registry
    from refpin.core.rest import REST

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


def is_comment(line: str) -> bool:
    """Check if a line's first non-blank character starts a comment."""
    return line.lstrip().startswith("#")


class Replacer:
    """Rewrites mutable references using one parser."""

    def __init__(self, parser: Parser, config: Config | None = None):
        self.parser = parser
        self.config = config or default_config()
        self.rest: REST | None = None
        self.max_workers = DEFAULT_MAX_WORKERS

    # =========================================================================
    # Builders
    # =========================================================================

    def with_github_client_from_token(self, token: str | None, base_url: str = DEFAULT_GITHUB_API_URL) -> Replacer:
        self.rest = GitHubClient(token, base_url=base_url)
        return self

    def with_github_client(self, rest: REST) -> Replacer:
        self.rest = rest
        return self

    def with_registry_client(self, registry: Registry) -> Replacer:
        self.parser.registry = registry
        return self

    def with_user_regex(self, regex: str | None) -> Replacer:
        if regex:
            self.parser.set_regex(regex)
        return self

    def with_cache_disabled(self) -> Replacer:
        self.parser.set_cache(None)
        return self

    def with_max_workers(self, max_workers: int) -> Replacer:
        self.max_workers = max(1, max_workers)
        return self

    # =========================================================================
    # Rewrite
    # =========================================================================

    def parse_string(self, reference: str, cancel: threading.Event | None = None) -> EntityRef:
        """
        Resolve a single reference.

        Raises:
            ReferenceSkippedError: If the reference is excluded, local or already pinned
        """
        return self.parser.replace(reference, self.rest, self.config, cancel)

    def parse_content(self, text: str, cancel: threading.Event | None = None) -> tuple[bool, str]:
        """
        Rewrite every reference in text.

        Returns:
            Tuple of (modified, new text)
        """
        stages: set[str] = set()
        modified = False
        lines: list[tuple[str, str]] = []

        for content, ending in split_lines(text):
            if is_comment(content):
                lines.append((content, ending))
                continue

            new_content = self._replace_line(content, stages, cancel)
            if new_content != content:
                modified = True
            lines.append((new_content, ending))

            stage = self.parser.declared_stage(content)
            if stage:
                stages.add(stage)

        return modified, join_lines(lines)

    def parse_file(self, path: Path | str, cancel: threading.Event | None = None) -> tuple[bool, str]:
        """Rewrite every reference in a file without writing it."""
        text, _ = read_text(path)
        return self.parse_content(text, cancel)

    def parse_path(self, path: Path | str, cancel: threading.Event | None = None) -> ReplaceResult:
        """
        Rewrite every YAML file and Dockerfile below path.

        Files are processed concurrently with a shared cache. Nothing is
        written; the caller decides what to do with the modified content.

        Raises:
            RefpinError: The first hard error of any file; pending files are not started
        """
        files = traverse_yaml_dockerfiles(path)
        result = ReplaceResult()
        lock = threading.Lock()

        first_error: BaseException | None = None
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures: dict[Future[None], Path] = {
                executor.submit(self._process_file, file, result, lock, cancel): file for file in files
            }
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                error = future.exception()
                if error is None or first_error is not None:
                    continue

                first_error = error
                logger.error("Failed to process file %s: %s", futures[future], error)
                for pending in futures:
                    pending.cancel()

        if first_error is not None:
            raise first_error

        result.processed.sort()
        return result

    def _process_file(
        self,
        path: Path,
        result: ReplaceResult,
        lock: threading.Lock,
        cancel: threading.Event | None,
    ) -> None:
        text, encoding = read_text(path)
        try:
            modified, content = self.parse_content(text, cancel)
        except RefpinError as e:
            e.context.setdefault("path", str(path))
            raise

        key = str(path)
        with lock:
            result.processed.append(key)
            if modified:
                result.modified[key] = content
                result.encodings[key] = encoding

    def _replace_line(self, content: str, stages: set[str], cancel: threading.Event | None) -> str:
        pieces: list[str] = []
        last = 0

        for match in self.parser.pattern.finditer(content):
            matched = match.group(0)
            if self.parser.references_stage(matched, stages):
                logger.debug("Skipping build stage reference %s", matched)
                continue

            try:
                entity = self.parser.replace(matched, self.rest, self.config, cancel)
            except ReferenceSkippedError as e:
                logger.debug("Skipped %s: %s", matched, e.message)
                continue
            except MalformedReferenceError as e:
                logger.debug("Leaving malformed reference %s: %s", matched, e.message)
                continue

            pieces.append(content[last : match.start()])
            pieces.append(self.parser.format_replacement(matched, entity))
            last = match.end()

        if not pieces:
            return content

        pieces.append(content[last:])
        return "".join(pieces)

    # =========================================================================
    # List
    # =========================================================================

    def list_in_content(self, text: str) -> list[EntityRef]:
        """List every reference in text, de-duplicated and sorted by name."""
        stages: set[str] = set()
        found: set[EntityRef] = set()

        for content, _ in split_lines(text):
            if is_comment(content):
                continue

            for match in self.parser.pattern.finditer(content):
                matched = match.group(0)
                if self.parser.references_stage(matched, stages):
                    continue
                try:
                    found.add(self.parser.convert_to_entity_ref(matched))
                except MalformedReferenceError as e:
                    logger.debug("Cannot list %s: %s", matched, e.message)

            stage = self.parser.declared_stage(content)
            if stage:
                stages.add(stage)

        return _sorted_entities(found)

    def list_in_file(self, path: Path | str) -> list[EntityRef]:
        text, _ = read_text(path)
        return self.list_in_content(text)

    def list_path(self, path: Path | str) -> ListResult:
        """List references in every YAML file and Dockerfile below path."""
        result = ListResult()
        found: set[EntityRef] = set()

        for file in traverse_yaml_dockerfiles(path):
            result.processed.append(str(file))
            found.update(self.list_in_file(file))

        result.processed.sort()
        result.entities = _sorted_entities(found)
        return result


def _sorted_entities(entities: set[EntityRef]) -> list[EntityRef]:
    return sorted(entities, key=lambda e: (e.name, e.ref, e.type.value, e.tag))


def new_actions_replacer(config: Config | None = None, **kwargs) -> Replacer:
    """Create a replacer for GitHub Actions 'uses:' references."""
    return Replacer(ActionsParser(**kwargs), config)


def new_container_images_replacer(config: Config | None = None, **kwargs) -> Replacer:
    """Create a replacer for container image references."""
    return Replacer(ImageParser(**kwargs), config)

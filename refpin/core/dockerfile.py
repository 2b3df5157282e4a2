"""
Tokenizer for Dockerfile FROM instructions.

Handles:
- BuildKit flags before the image (--platform=linux/amd64)
- An optional 'AS <stage>' alias after the image
- Exact whitespace, so the text before the image can be reused verbatim
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from refpin.core.errors import InvalidDockerfileLineError

_TOKEN_RE = re.compile(r"\S+")


class FromInstruction(BaseModel, frozen=True):
    """A tokenized FROM instruction."""

    prefix: str = Field(description="Text before the image, e.g. 'FROM --platform=linux/amd64 '")
    flags: list[str] = Field(default_factory=list)
    image: str
    stage: str = ""
    suffix: str = Field(default="", description="Text after the image, e.g. ' AS build'")

    def flag(self, name: str) -> str | None:
        """Get the value of a '--name=value' flag."""
        marker = f"--{name}="
        for flag in self.flags:
            if flag.startswith(marker):
                return flag[len(marker) :]
        return None


def parse_from(text: str) -> FromInstruction:
    """
    Tokenize a FROM instruction.

    Raises:
        InvalidDockerfileLineError: If text is not a FROM instruction with an image
    """
    tokens = list(_TOKEN_RE.finditer(text))
    if not tokens or tokens[0].group().upper() != "FROM":
        raise InvalidDockerfileLineError(f"invalid Dockerfile line, not a FROM instruction: {text!r}")

    flags: list[str] = []
    index = 1
    while index < len(tokens) and tokens[index].group().startswith("--"):
        flags.append(tokens[index].group())
        index += 1

    if index >= len(tokens):
        raise InvalidDockerfileLineError(f"invalid Dockerfile line, no image found: {text!r}")

    image_token = tokens[index]
    rest = tokens[index + 1 :]

    stage = ""
    if len(rest) >= 2 and rest[0].group().upper() == "AS":
        stage = rest[1].group()

    return FromInstruction(
        prefix=text[: image_token.start()].lstrip(),
        flags=flags,
        image=image_token.group(),
        stage=stage,
        suffix=text[image_token.end() :],
    )


def declared_stage(line: str) -> str | None:
    """Return the stage alias a FROM line declares, if any."""
    stripped = line.strip()
    if stripped[:4].upper() != "FROM":
        return None
    try:
        instruction = parse_from(stripped)
    except InvalidDockerfileLineError:
        return None
    return instruction.stage.lower() or None

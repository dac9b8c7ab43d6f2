"""Decoders that turn uploaded file blobs into plain text."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import PurePath
from typing import Any


class Parser(ABC):
    """Base decoder interface used by the document store."""

    extensions: tuple[str, ...] = ()

    @abstractmethod
    def decode(self, data: bytes) -> str:
        """Decode raw file bytes into text."""


class TextParser(Parser):
    """Decoder for plain text and source files."""

    extensions = (".txt", ".log", ".csv", ".js", ".ts", ".tsx", ".py")

    def decode(self, data: bytes) -> str:
        return data.decode("utf-8")


class MarkdownParser(Parser):
    extensions = (".md", ".markdown")

    def decode(self, data: bytes) -> str:
        return data.decode("utf-8")


class JsonParser(Parser):
    """Decoder for JSON documents with deterministic normalization."""

    extensions = (".json",)

    def decode(self, data: bytes) -> str:
        payload: Any = json.loads(data.decode("utf-8"))
        if isinstance(payload, dict):
            return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2)
        if isinstance(payload, list):
            return json.dumps(payload, ensure_ascii=False, indent=2)
        return str(payload)


class ParserRegistry:
    """Maps file extension to decoder implementation."""

    def __init__(self, parsers: list[Parser] | None = None) -> None:
        self._parsers: dict[str, Parser] = {}
        for parser in parsers or [TextParser(), MarkdownParser(), JsonParser()]:
            self.register(parser)

    def register(self, parser: Parser) -> None:
        for extension in parser.extensions:
            self._parsers[extension.lower()] = parser

    def supports(self, name: str) -> bool:
        return PurePath(name).suffix.lower() in self._parsers

    def decode(self, name: str, data: bytes) -> str:
        suffix = PurePath(name).suffix
        parser = self._parsers.get(suffix.lower())
        if parser is None:
            raise ValueError(f"No parser registered for extension: {suffix or name}")
        return parser.decode(data)

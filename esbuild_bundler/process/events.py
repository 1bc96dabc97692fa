"""Decode esbuild's watch-mode output into build events."""

from __future__ import annotations

import json
import logging
import re
from typing import List, Optional, Union

from pydantic import ValidationError

from ..errors import MalformedEventError
from ..schemas.build import BuildEvent, BuildLocation, BuildMessage

logger = logging.getLogger(__name__)

DecodedItem = Union[BuildEvent, MalformedEventError]

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
_ERROR_LINE = re.compile(r"^(?:✘|X)\s*\[ERROR\]\s*(?P<text>.*)$")
_WARNING_LINE = re.compile(r"^(?:▲|!)\s*\[WARNING\]\s*(?P<text>.*)$")
_LOCATION_LINE = re.compile(r"^(?P<file>(?:[A-Za-z]:)?[^\s:][^:]*):(?P<line>\d+):(?P<column>\d+):$")
_BUILD_STARTED = "[watch] build started"
_BUILD_FINISHED = "[watch] build finished"


class BuildEventDecoder:
    """Incremental decoder for the merged stdout/stderr of ``esbuild --watch``.

    Text is fed in arbitrary chunks; only complete lines are decoded. Two
    framings are understood: one JSON build result per line, and esbuild's
    own ``[watch]`` log where errors between ``build started`` and ``build
    finished`` belong to one rebuild.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._errors: List[BuildMessage] = []
        self._warnings: List[BuildMessage] = []
        self._last_message: Optional[BuildMessage] = None

    def feed(self, chunk: str) -> List[DecodedItem]:
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        items: List[DecodedItem] = []
        for line in lines:
            items.extend(self._decode_line(line))
        return items

    def close(self) -> List[DecodedItem]:
        """Decode whatever is left in the buffer once the stream has ended."""

        remainder, self._buffer = self._buffer, ""
        return self._decode_line(remainder)

    def _decode_line(self, raw: str) -> List[DecodedItem]:
        line = _ANSI_ESCAPE.sub("", raw).strip()
        if not line:
            return []
        if line.startswith("{"):
            return [self._decode_json(raw.strip(), line)]

        if line.startswith(_BUILD_STARTED):
            self._reset()
            return []
        if line.startswith(_BUILD_FINISHED):
            event = BuildEvent(success=not self._errors, errors=self._errors, warnings=self._warnings)
            self._reset()
            return [event]

        match = _ERROR_LINE.match(line)
        if match:
            self._last_message = BuildMessage(text=match.group("text"))
            self._errors.append(self._last_message)
            return []
        match = _WARNING_LINE.match(line)
        if match:
            self._last_message = BuildMessage(text=match.group("text"))
            self._warnings.append(self._last_message)
            return []
        match = _LOCATION_LINE.match(line)
        if match and self._last_message is not None and self._last_message.location is None:
            self._last_message.location = BuildLocation(
                file=match.group("file"),
                line=int(match.group("line")),
                column=int(match.group("column")),
            )
            return []

        logger.debug("ignoring esbuild output: %s", line)
        return []

    def _decode_json(self, raw: str, line: str) -> DecodedItem:
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            return MalformedEventError(f"Invalid JSON build event: {exc}", raw)
        try:
            return BuildEvent.model_validate(payload)
        except ValidationError as exc:
            return MalformedEventError(f"Unexpected build event shape: {exc.error_count()} error(s)", raw)

    def _reset(self) -> None:
        self._errors = []
        self._warnings = []
        self._last_message = None

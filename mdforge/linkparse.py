"""Finding and parsing ``{{#...}}`` helper links inside chapter text."""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "LinkKind",
    "LineRange",
    "Anchor",
    "Link",
    "parse_range_or_anchor",
    "parse_include_path",
    "parse_rustdoc_include_path",
    "find_links",
]

log = logging.getLogger(__name__)

ESCAPE_CHAR = "\\"

_USIZE_MAX = (1 << 64) - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")

_LINK_RE = re.compile(
    r"\\\{\{\#.*\}\}"  # escaped link
    r"|"
    r"\{\{\s*"  # opening braces and whitespace
    r"\#([a-zA-Z0-9_]+)"  # link type
    r"\s+"  # separating whitespace
    r"([^}]+)"  # target path and space separated properties
    r"\}\}"  # closing braces
)


class LinkKind(enum.Enum):
    """The kind of helper a link stands for."""

    ESCAPED = "escaped"
    INCLUDE = "include"
    PLAYGROUND = "playground"
    RUSTDOC_INCLUDE = "rustdoc_include"
    TITLE = "title"


@dataclass(frozen=True)
class LineRange:
    """A zero-based, half-open range of lines; ``None`` means unbounded."""

    start: int | None = None
    end: int | None = None

    def as_slice(self) -> slice:
        """Return the range as a slice over a list of lines."""
        return slice(self.start, self.end)


@dataclass(frozen=True)
class Anchor:
    """A named anchor marking the lines to include."""

    name: str


@dataclass(frozen=True)
class Link:
    """A helper link found in a piece of text."""

    start_index: int
    end_index: int
    kind: LinkKind
    link_text: str
    path: Path | None = None
    target: LineRange | Anchor | None = None
    properties: tuple[str, ...] = ()
    title: str | None = None

    def relative_path(self, base: str | Path) -> Path | None:
        """Return the directory holding the linked file, or ``None`` if there is none."""
        if self.path is None:
            return None
        joined = Path(base) / self.path
        parent = joined.parent
        if parent == joined:
            raise ValueError("Included file should not be the root directory")
        return parent


def _parse_unsigned(text: str) -> int | None:
    if not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _USIZE_MAX else None


def parse_range_or_anchor(parts: str | None) -> LineRange | Anchor:
    """Parse the part after the file name: ``start:end`` (one-based) or an anchor."""
    pieces = (parts or "").split(":", 2)
    first = pieces[0]

    start_value = _parse_unsigned(first)
    if start_value is not None:
        start: int | None = max(start_value - 1, 0)
    elif first == "":
        start = None
    else:
        return Anchor(first)

    if len(pieces) < 2:
        if start is None:
            return LineRange()
        return LineRange(start, start + 1)

    end = _parse_unsigned(pieces[1])
    if start is not None:
        return LineRange(start, end)
    if end is not None:
        return LineRange(None, end)
    return LineRange()


def _split_path(path: str) -> tuple[Path, LineRange | Anchor]:
    name, sep, rest = path.partition(":")
    return Path(name), parse_range_or_anchor(rest if sep else None)


def parse_include_path(path: str) -> tuple[LinkKind, Path, LineRange | Anchor]:
    """Parse the argument of an ``include`` helper."""
    file_path, target = _split_path(path)
    return LinkKind.INCLUDE, file_path, target


def parse_rustdoc_include_path(path: str) -> tuple[LinkKind, Path, LineRange | Anchor]:
    """Parse the argument of a ``rustdoc_include`` helper."""
    file_path, target = _split_path(path)
    return LinkKind.RUSTDOC_INCLUDE, file_path, target


def _from_match(match: re.Match[str]) -> Link | None:
    text = match.group(0)
    typ, rest = match.group(1), match.group(2)
    common = {"start_index": match.start(), "end_index": match.end(), "link_text": text}

    if typ is None:
        if text.startswith(ESCAPE_CHAR):
            return Link(kind=LinkKind.ESCAPED, **common)
        return None

    if typ == "title":
        return Link(kind=LinkKind.TITLE, title=rest, **common)

    words = rest.split()
    if not words:
        return None
    file_arg, props = words[0], tuple(words[1:])

    if typ == "include":
        kind, path, target = parse_include_path(file_arg)
        return Link(kind=kind, path=path, target=target, **common)
    if typ == "rustdoc_include":
        kind, path, target = parse_rustdoc_include_path(file_arg)
        return Link(kind=kind, path=path, target=target, **common)
    if typ in ("playground", "playpen"):
        if typ == "playpen":
            log.warning(
                "the {{#playpen}} expression has been renamed to {{#playground}}, "
                "please update your book to use the new name"
            )
        return Link(
            kind=LinkKind.PLAYGROUND, path=Path(file_arg), properties=props, **common
        )
    return None


def find_links(contents: str) -> Iterator[Link]:
    """Yield every recognised helper link in ``contents``, in order."""
    for match in _LINK_RE.finditer(contents):
        link = _from_match(match)
        if link is not None:
            yield link
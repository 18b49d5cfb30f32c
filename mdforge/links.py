"""Preprocessor that expands ``{{#include}}``, ``{{#playground}}`` and similar helpers."""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePath
from typing import Any

from .linkparse import Anchor, LineRange, Link, LinkKind, find_links
from .preprocess import Preprocessor, PreprocessorContext, PreprocessorError, _iter_chapters

__all__ = ["LinkPreprocessor", "render_with_path", "replace_all"]

log = logging.getLogger(__name__)

MAX_LINK_NESTED_DEPTH = 10

_ANCHOR_START = re.compile(r"ANCHOR:\s*(?P<anchor_name>[\w_-]+)")
_ANCHOR_END = re.compile(r"ANCHOR_END:\s*(?P<anchor_name>[\w_-]+)")


def _lines(text: str) -> list[str]:
    """Split text into lines the way a line iterator does: no trailing empty line, CR dropped."""
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [p[:-1] if p.endswith("\r") else p for p in parts]


def _in_range(index: int, line_range: LineRange) -> bool:
    if line_range.start is not None and index < line_range.start:
        return False
    return line_range.end is None or index < line_range.end


def _take_lines(text: str, line_range: LineRange) -> str:
    return "\n".join(_lines(text)[line_range.as_slice()])


def _take_anchored_lines(text: str, anchor: str) -> str:
    retained: list[str] = []
    found = False
    for line in _lines(text):
        if found:
            end = _ANCHOR_END.search(line)
            if end is not None:
                if end["anchor_name"] == anchor:
                    break
            elif _ANCHOR_START.search(line) is None:
                retained.append(line)
        else:
            start = _ANCHOR_START.search(line)
            if start is not None and start["anchor_name"] == anchor:
                found = True
    return "\n".join(retained)


def _take_rustdoc_include_lines(text: str, line_range: LineRange) -> str:
    return "\n".join(
        line if _in_range(index, line_range) else f"# {line}"
        for index, line in enumerate(_lines(text))
    )


def _take_rustdoc_include_anchored_lines(text: str, anchor: str) -> str:
    output: list[str] = []
    within = False
    for line in _lines(text):
        if within:
            end = _ANCHOR_END.search(line)
            if end is not None:
                if end["anchor_name"] == anchor:
                    within = False
            elif _ANCHOR_START.search(line) is None:
                output.append(line)
        else:
            start = _ANCHOR_START.search(line)
            if start is not None:
                if start["anchor_name"] == anchor:
                    within = True
            elif _ANCHOR_END.search(line) is None:
                output.append(f"# {line}")
    return "\n".join(output)


def _read_target(link: Link, target: Path) -> str:
    try:
        return target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise PreprocessorError(
            f"Could not read file for link {link.link_text} ({target})"
        ) from exc


def render_with_path(
    link: Link, base: str | PurePath, chapter_title: str
) -> tuple[str, str]:
    """Render ``link`` relative to ``base``; return the new text and the chapter title."""
    base = Path(base)
    kind = link.kind
    if kind is LinkKind.ESCAPED:
        return link.link_text[1:], chapter_title
    if kind is LinkKind.TITLE:
        return "", link.title if link.title is not None else chapter_title

    assert link.path is not None
    target = base / link.path
    contents = _read_target(link, target)

    if kind is LinkKind.INCLUDE:
        if isinstance(link.target, Anchor):
            return _take_anchored_lines(contents, link.target.name), chapter_title
        return _take_lines(contents, link.target or LineRange()), chapter_title
    if kind is LinkKind.RUSTDOC_INCLUDE:
        if isinstance(link.target, Anchor):
            return (
                _take_rustdoc_include_anchored_lines(contents, link.target.name),
                chapter_title,
            )
        return (
            _take_rustdoc_include_lines(contents, link.target or LineRange()),
            chapter_title,
        )

    ftype = "rust," if link.properties else "rust"
    if not contents.endswith("\n"):
        contents += "\n"
    return f"```{ftype}{','.join(link.properties)}\n{contents}```\n", chapter_title


def replace_all(
    text: str,
    path: str | PurePath,
    source: str | PurePath,
    depth: int,
    chapter_title: str,
) -> tuple[str, str]:
    """Expand every helper link in ``text``; return the result and the chapter title.

    Links that cannot be rendered are left in place. Nested includes stop at a
    fixed depth so cyclic includes terminate.
    """
    path = Path(path)
    previous_end = 0
    pieces: list[str] = []

    for link in find_links(text):
        pieces.append(text[previous_end:link.start_index])
        try:
            new_content, chapter_title = render_with_path(link, path, chapter_title)
        except PreprocessorError as exc:
            log.error('Error updating "%s", %s', link.link_text, exc)
            if exc.__cause__ is not None:
                log.warning("Caused By: %s", exc.__cause__)
            previous_end = link.start_index
            continue

        if depth < MAX_LINK_NESTED_DEPTH:
            rel_path = link.relative_path(path)
            if rel_path is not None:
                nested, chapter_title = replace_all(
                    new_content, rel_path, source, depth + 1, chapter_title
                )
                pieces.append(nested)
            else:
                pieces.append(new_content)
        else:
            log.error("Stack depth exceeded in %s. Check for cyclic includes", source)
        previous_end = link.end_index

    pieces.append(text[previous_end:])
    return "".join(pieces), chapter_title


class LinkPreprocessor(Preprocessor):
    """Expands include, rustdoc_include, playground and title helpers in chapters."""

    NAME = "links"

    def name(self) -> str:
        return self.NAME

    def run(self, ctx: PreprocessorContext, book: Any) -> Any:
        src_dir = ctx.root / ctx.config.book.src
        for chapter in _iter_chapters(book):
            chapter_path = chapter.get("path")
            if chapter_path is None:
                continue
            base = src_dir / PurePath(chapter_path).parent
            name = chapter.get("name", "")
            content, title = replace_all(
                chapter.get("content", ""), base, chapter_path, 0, name
            )
            chapter["content"] = content
            if title != name:
                ctx.chapter_titles[Path(chapter_path)] = title
        return book

    def __eq__(self, other: object) -> bool:
        return isinstance(other, LinkPreprocessor)

    def __hash__(self) -> int:
        return hash(self.NAME)
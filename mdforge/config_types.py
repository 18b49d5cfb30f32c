"""Typed sections of the book configuration and their TOML-value conversions."""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, ClassVar, TypeVar

__all__ = [
    "ConfigError",
    "RustEdition",
    "BookConfig",
    "BuildConfig",
    "RustConfig",
    "Print",
    "Fold",
    "Playground",
    "Code",
    "Search",
    "HtmlConfig",
]

T = TypeVar("T")
Parser = Callable[[Any, str], Any]
Dumper = Callable[[Any], Any]


class ConfigError(ValueError):
    """Raised when a configuration value has the wrong shape or type."""


class RustEdition(enum.Enum):
    """Language edition used for code samples."""

    E2021 = "2021"
    E2018 = "2018"
    E2015 = "2015"


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "table"
    return type(value).__name__


def _mismatch(where: str, expected: str, value: Any) -> ConfigError:
    return ConfigError(f"{where}: expected {expected}, found {_kind(value)}")


def _string(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise _mismatch(where, "a string", value)
    return value


def _boolean(value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise _mismatch(where, "a boolean", value)
    return value


def _unsigned(bits: int) -> Parser:
    limit = 1 << bits

    def parse(value: Any, where: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _mismatch(where, f"an unsigned {bits}-bit integer", value)
        if not 0 <= value < limit:
            raise ConfigError(f"{where}: {value} is out of range for u{bits}")
        return value

    return parse


def _path(value: Any, where: str) -> Path:
    return Path(_string(value, where))


def _edition(value: Any, where: str) -> RustEdition:
    text = _string(value, where)
    try:
        return RustEdition(text)
    except ValueError:
        allowed = ", ".join(e.value for e in RustEdition)
        raise ConfigError(
            f"{where}: unknown edition {text!r}, expected one of {allowed}"
        ) from None


def _optional(parser: Parser) -> Parser:
    def parse(value: Any, where: str) -> Any:
        return None if value is None else parser(value, where)

    return parse


def _list_of(parser: Parser) -> Parser:
    def parse(value: Any, where: str) -> list:
        if not isinstance(value, (list, tuple)):
            raise _mismatch(where, "an array", value)
        return [parser(item, f"{where}[{i}]") for i, item in enumerate(value)]

    return parse


def _string_map(value: Any, where: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise _mismatch(where, "a table", value)
    return {
        _string(k, f"{where} key"): _string(v, f"{where}.{k}") for k, v in value.items()
    }


def _nested(cls: type) -> Parser:
    def parse(value: Any, where: str) -> Any:
        return _from_table(cls, value, where)

    return parse


def _dump_path(value: Path) -> str:
    return value.as_posix()


def _dump_paths(value: list[Path]) -> list[str]:
    return [p.as_posix() for p in value]


def _dump_plain(value: Any) -> Any:
    if isinstance(value, dict):
        return dict(sorted(value.items()))
    if isinstance(value, list):
        return list(value)
    return value


def _dump_edition(value: RustEdition) -> str:
    return value.value


def _spec(
    parse: Parser,
    *,
    dump: Dumper = _dump_plain,
    default: Any = MISSING,
    default_factory: Callable[[], Any] | None = None,
    aliases: tuple[str, ...] = (),
) -> Any:
    meta = {"parse": parse, "dump": dump, "aliases": aliases}
    if default_factory is not None:
        return field(default_factory=default_factory, metadata=meta)
    return field(default=default, metadata=meta)


def _from_table(cls: type[T], value: Any, where: str) -> T:
    if not isinstance(value, Mapping):
        raise _mismatch(where, "a table", value)
    kwargs = {}
    for f in fields(cls):
        key = f.name.replace("_", "-")
        for name in (key, *f.metadata["aliases"]):
            if name in value:
                kwargs[f.name] = f.metadata["parse"](value[name], f"{where}.{name}")
                break
    return cls(**kwargs)


def _to_table(obj: Any) -> dict[str, Any]:
    table = {}
    for f in fields(obj):
        current = getattr(obj, f.name)
        if current is not None:
            table[f.name.replace("_", "-")] = f.metadata["dump"](current)
    return dict(sorted(table.items()))


@dataclass
class BookConfig:
    """Metadata about the book."""

    SECTION: ClassVar[str] = "book"

    title: str | None = _spec(_optional(_string), default=None)
    authors: list[str] = _spec(_list_of(_string), default_factory=list)
    description: str | None = _spec(_optional(_string), default=None)
    src: Path = _spec(_path, dump=_dump_path, default=Path("src"))
    multilingual: bool = _spec(_boolean, default=False)
    language: str | None = _spec(_optional(_string), default="en")

    @classmethod
    def from_value(cls, value: Any) -> BookConfig:
        """Build from a TOML table, filling absent keys with defaults."""
        return _from_table(cls, value, cls.SECTION)

    def to_value(self) -> dict[str, Any]:
        """Return the TOML table for this section, keys sorted, unset options left out."""
        return _to_table(self)


@dataclass
class BuildConfig:
    """Settings for the build procedure."""

    SECTION: ClassVar[str] = "build"

    build_dir: Path = _spec(_path, dump=_dump_path, default=Path("book"))
    create_missing: bool = _spec(_boolean, default=True)
    use_default_preprocessors: bool = _spec(_boolean, default=True)
    extra_watch_dirs: list[Path] = _spec(
        _list_of(_path), dump=_dump_paths, default_factory=list
    )

    @classmethod
    def from_value(cls, value: Any) -> BuildConfig:
        """Build from a TOML table, filling absent keys with defaults."""
        return _from_table(cls, value, cls.SECTION)

    def to_value(self) -> dict[str, Any]:
        """Return the TOML table for this section, keys sorted."""
        return _to_table(self)


@dataclass
class RustConfig:
    """Settings for code samples in the book."""

    SECTION: ClassVar[str] = "rust"

    edition: RustEdition | None = _spec(
        _optional(_edition), dump=_dump_edition, default=None
    )

    @classmethod
    def from_value(cls, value: Any) -> RustConfig:
        """Build from a TOML table, filling absent keys with defaults."""
        return _from_table(cls, value, cls.SECTION)

    def to_value(self) -> dict[str, Any]:
        """Return the TOML table for this section."""
        return _to_table(self)


@dataclass
class Print:
    """How the print page is rendered."""

    enable: bool = _spec(_boolean, default=True)
    page_break: bool = _spec(_boolean, default=True)


@dataclass
class Fold:
    """How sidebar chapters are folded."""

    enable: bool = _spec(_boolean, default=False)
    level: int = _spec(_unsigned(8), default=0)


@dataclass
class Playground:
    """How runnable code snippets are handled."""

    editable: bool = _spec(_boolean, default=False)
    copyable: bool = _spec(_boolean, default=True)
    copy_js: bool = _spec(_boolean, default=True)
    line_numbers: bool = _spec(_boolean, default=False)
    runnable: bool = _spec(_boolean, default=True)


@dataclass
class Code:
    """How code blocks are handled."""

    hidelines: dict[str, str] = _spec(_string_map, default_factory=dict)


@dataclass
class Search:
    """Settings for the search feature."""

    enable: bool = _spec(_boolean, default=True)
    limit_results: int = _spec(_unsigned(32), default=30)
    teaser_word_count: int = _spec(_unsigned(32), default=30)
    use_boolean_and: bool = _spec(_boolean, default=False)
    boost_title: int = _spec(_unsigned(8), default=2)
    boost_hierarchy: int = _spec(_unsigned(8), default=1)
    boost_paragraph: int = _spec(_unsigned(8), default=1)
    expand: bool = _spec(_boolean, default=True)
    heading_split_level: int = _spec(_unsigned(8), default=3)
    copy_js: bool = _spec(_boolean, default=True)


@dataclass
class HtmlConfig:
    """Settings for the HTML renderer."""

    SECTION: ClassVar[str] = "output.html"

    theme: Path | None = _spec(_optional(_path), default=None)
    default_theme: str | None = _spec(_optional(_string), default=None)
    preferred_dark_theme: str | None = _spec(_optional(_string), default=None)
    curly_quotes: bool = _spec(_boolean, default=False)
    mathjax_support: bool = _spec(_boolean, default=False)
    copy_fonts: bool = _spec(_boolean, default=True)
    google_analytics: str | None = _spec(_optional(_string), default=None)
    additional_css: list[Path] = _spec(_list_of(_path), default_factory=list)
    additional_js: list[Path] = _spec(_list_of(_path), default_factory=list)
    fold: Fold = _spec(_nested(Fold), default_factory=Fold)
    playground: Playground = _spec(
        _nested(Playground), default_factory=Playground, aliases=("playpen",)
    )
    code: Code = _spec(_nested(Code), default_factory=Code)
    print: Print = _spec(_nested(Print), default_factory=Print)
    no_section_label: bool = _spec(_boolean, default=False)
    search: Search | None = _spec(_optional(_nested(Search)), default=None)
    git_repository_url: str | None = _spec(_optional(_string), default=None)
    git_repository_icon: str | None = _spec(_optional(_string), default=None)
    input_404: str | None = _spec(_optional(_string), default=None)
    site_url: str | None = _spec(_optional(_string), default=None)
    cname: str | None = _spec(_optional(_string), default=None)
    edit_url_template: str | None = _spec(_optional(_string), default=None)
    live_reload_endpoint: str | None = _spec(_optional(_string), default=None)
    redirect: dict[str, str] = _spec(_string_map, default_factory=dict)

    @classmethod
    def from_value(cls, value: Any) -> HtmlConfig:
        """Build from the ``output.html`` table, filling absent keys with defaults."""
        return _from_table(cls, value, cls.SECTION)

    def theme_dir(self, root: str | Path) -> Path:
        """Return the theme directory under ``root``, ``theme`` when none is set."""
        return Path(root) / (self.theme if self.theme is not None else "theme")
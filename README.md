# mdforge

This package handles configuration and chapter preprocessing for books written
as a collection of markdown files.

## What it provides

- `mdforge.config.Config` reads a `book.toml`.
  - It also reads the older layout, which had `title`, `authors`, `source` and
    `description` at the top level and `output.html.destination`.
  - Values in the free-form tables are looked up with dotted keys, such as
    `output.html.playground`.
  - Environment variables that start with `MDFORGE_` can override settings.
  - A configuration can be written back out with `to_dict()` or `to_toml()`.
- `mdforge.config_types` holds the typed sections:
  - `BookConfig`, `BuildConfig` and `RustConfig`, which uses the `RustEdition`
    enum.
  - `HtmlConfig` and its parts: `Print`, `Fold`, `Playground`, `Code` and
    `Search`.
  - `ConfigError`, which is raised for values that have the wrong type or
    shape.
- Preprocessors change a book before it is rendered:
  - `mdforge.links.LinkPreprocessor` expands the `{{#include}}`,
    `{{#rustdoc_include}}`, `{{#playground}}` (also `{{#playpen}}`) and
    `{{#title}}` helpers. It also handles `\{{#...}}` escapes.
  - `mdforge.index.IndexPreprocessor` renames `README.md` chapters to
    `index.md`. The match on the file stem ignores case.
  - `mdforge.cmd.CmdPreprocessor` runs an external command. It writes
    `[context, book]` as JSON to the command's stdin and reads the processed
    book back from its stdout as JSON.
- `mdforge.linkparse` finds helper links in text and parses their line ranges
  and anchors.

## Installation

```
pip install mdforge
```

## Loading configuration

```python
from mdforge.config import Config

cfg = Config.from_str('''
[book]
title = "My Book"
authors = ["Jane Doe"]

[other-table.foo]
bar = 123
''')

assert cfg.book.title == "My Book"
assert cfg.get("other-table.foo.bar") == 123

cfg.set("output.html.theme", "./themes")
html = cfg.html_config()
print(html.theme_dir("/path/to/book"))   # /path/to/book/themes

print(cfg.to_toml())
```

Use `Config.from_disk(path)` to load the same kind of file from disk. Both
loaders raise `ConfigError` when the file is invalid.

### Environment overrides

Call `cfg.update_from_env()` to apply overrides. You can pass a mapping in
place of `os.environ`.

The variable name after the `MDFORGE_` prefix is lower-cased:

- `__` separates nested keys.
- A single `_` becomes `-`.

For example, `MDFORGE_BOOK__TITLE` sets `book.title`, and
`MDFORGE_FOO_BAR__BAZ` sets `foo-bar.baz`.

Each value is first parsed as JSON. If that fails, it is used as a plain
string.

## Finding helper links

```python
from mdforge.linkparse import find_links

for link in find_links("Text {{#include file.rs:10:20}} more"):
    print(link.kind, link.path, link.target, link.start_index, link.end_index)
```

Ranges are one-based in the text and zero-based, half-open in `LineRange`.
`file.rs:10:20` gives `LineRange(start=9, end=20)`. A part that is not a number
is taken as an `Anchor`.

## Expanding helpers

`mdforge.links.replace_all(text, path, source, depth, chapter_title)` expands
helpers and returns `(new_text, chapter_title)`.

- Helpers whose file cannot be read are left in place.
- Nested includes stop after 10 levels.

## Books and preprocessors

A book is plain data. It is either a mapping with a `sections` list or the
list itself. Each chapter is an item of the form
`{"Chapter": {"name": ..., "content": ..., "path": ..., "sub_items": [...]}}`.
Preprocessors edit these chapter mappings in place and return the book.

To write your own preprocessor, subclass `mdforge.preprocess.Preprocessor`:

- `name()` returns the preprocessor's name.
- `run(ctx, book)` returns the processed book.
- `supports_renderer(renderer)` is optional. It returns `True` by default.

A `PreprocessorContext` carries the book `root`, the `Config`, the `renderer`
name and `mdbook_version`. It converts to and from JSON-ready form with
`to_dict()` and `from_dict()`.

An external preprocessor can read its input with
`CmdPreprocessor.parse_input(sys.stdin)`.

Failures raise `PreprocessorError`.

## What it does not do

This package does not:

- load a book from a directory;
- parse a `SUMMARY.md`;
- render HTML or any other output;
- provide a command-line tool.

It covers configuration and the preprocessing step only. The caller supplies
the book data and does the rendering.
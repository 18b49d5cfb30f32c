import json
from pathlib import Path

import pytest

from mdforge.config import Config, parse_env
from mdforge.config_types import (
    BookConfig,
    BuildConfig,
    ConfigError,
    HtmlConfig,
    Playground,
    RustConfig,
    RustEdition,
)

COMPLEX_CONFIG = """
[book]
title = "Some Book"
authors = ["Jane Doe <jane@example.com>"]
description = "A completely useless book"
multilingual = true
src = "source"
language = "ja"

[build]
build-dir = "outputs"
create-missing = false
use-default-preprocessors = true

[output.html]
theme = "./themedir"
default-theme = "rust"
curly-quotes = true
google-analytics = "123456"
additional-css = ["./foo/bar/baz.css"]
git-repository-url = "https://example.com/"
git-repository-icon = "fa-code-fork"

[output.html.playground]
editable = true
editor = "ace"

[output.html.redirect]
"index.html" = "overview.html"
"nexted/page.md" = "https://example.com/"

[preprocessor.first]

[preprocessor.second]
"""

EDITION_TEMPLATE = """
[book]
title = "Documentation"
description = "Create book from markdown files"
authors = ["Jane Doe"]
src = "./source"
[rust]
edition = "{edition}"
"""


def encode_env_var(key):
    return "MDFORGE_" + key.upper().replace(".", "__").replace("-", "_")


def test_load_a_complex_config_file():
    got = Config.from_str(COMPLEX_CONFIG)
    assert got.book == BookConfig(
        title="Some Book",
        authors=["Jane Doe <jane@example.com>"],
        description="A completely useless book",
        multilingual=True,
        src=Path("source"),
        language="ja",
    )
    assert got.build == BuildConfig(
        build_dir=Path("outputs"),
        create_missing=False,
        use_default_preprocessors=True,
        extra_watch_dirs=[],
    )
    assert got.rust == RustConfig(edition=None)
    assert got.html_config() == HtmlConfig(
        curly_quotes=True,
        google_analytics="123456",
        additional_css=[Path("./foo/bar/baz.css")],
        theme=Path("./themedir"),
        default_theme="rust",
        playground=Playground(editable=True),
        git_repository_url="https://example.com/",
        git_repository_icon="fa-code-fork",
        redirect={
            "index.html": "overview.html",
            "nexted/page.md": "https://example.com/",
        },
    )


def test_disable_runnable():
    src = """
    [book]
    title = "Some Book"
    description = "book book book"
    authors = ["Jane Doe"]

    [output.html.playground]
    runnable = false
    """
    got = Config.from_str(src)
    assert got.html_config().playground.runnable is False


def test_edition_2015_book_section():
    got = Config.from_str(EDITION_TEMPLATE.format(edition="2015"))
    assert got.book == BookConfig(
        title="Documentation",
        description="Create book from markdown files",
        authors=["Jane Doe"],
        src=Path("./source"),
    )


@pytest.mark.parametrize(
    "edition, expected",
    [
        ("2015", RustEdition.E2015),
        ("2018", RustEdition.E2018),
        ("2021", RustEdition.E2021),
    ],
)
def test_editions(edition, expected):
    got = Config.from_str(EDITION_TEMPLATE.format(edition=edition))
    assert got.rust == RustConfig(edition=expected)


def test_load_arbitrary_output_type():
    src = """
    [output.random]
    foo = 5
    bar = "Hello World"
    baz = [true, true, false]
    """
    cfg = Config.from_str(src)
    assert cfg.get("output.random") == {
        "foo": 5,
        "bar": "Hello World",
        "baz": [True, True, False],
    }
    assert cfg.get("output.random.baz") == [True, True, False]


def test_mutate_some_stuff():
    config = Config.from_str(COMPLEX_CONFIG)
    key = "output.html.playground.editable"
    assert config.get(key) is True
    config.get("output.html.playground")["editable"] = False
    assert config.get(key) is False


def test_can_still_load_the_previous_format():
    src = """
    title = "Documentation"
    description = "Create book from markdown files"
    authors = ["Jane Doe"]
    source = "./source"

    [output.html]
    destination = "my-book"
    theme = "my-theme"
    curly-quotes = true
    google-analytics = "123456"
    additional-css = ["custom.css", "custom2.css"]
    additional-js = ["custom.js"]
    """
    got = Config.from_str(src)
    assert got.book == BookConfig(
        title="Documentation",
        description="Create book from markdown files",
        authors=["Jane Doe"],
        src=Path("./source"),
    )
    assert got.build == BuildConfig(
        build_dir=Path("my-book"),
        create_missing=True,
        use_default_preprocessors=True,
        extra_watch_dirs=[],
    )
    assert got.html_config() == HtmlConfig(
        theme=Path("my-theme"),
        curly_quotes=True,
        google_analytics="123456",
        additional_css=[Path("custom.css"), Path("custom2.css")],
        additional_js=[Path("custom.js")],
    )


def test_set_a_config_item():
    cfg = Config()
    key = "foo.bar.baz"
    value = "Something Interesting"
    assert cfg.get(key) is None
    cfg.set(key, value)
    assert cfg.get(key) == value


def test_set_clobbers_non_table_intermediate():
    cfg = Config()
    cfg.set("foo", 3)
    cfg.set("foo.bar", "x")
    assert cfg.get("foo") == {"bar": "x"}


def test_set_book_field_updates_typed_section():
    cfg = Config()
    cfg.set("book.src", "src2")
    assert cfg.book.src == Path("src2")
    assert cfg.get("book") is None


def test_set_book_field_with_wrong_type_is_ignored():
    cfg = Config()
    cfg.set("book.title", 20)
    assert cfg.book.title is None


def test_set_none_raises():
    cfg = Config()
    with pytest.raises(ConfigError):
        cfg.set("foo", None)


def test_set_path_values_are_stored_as_strings():
    cfg = Config()
    cfg.set("output.html.redirect", {Path("/overview.html"): "index.html"})
    assert cfg.get("output.html.redirect") == {"/overview.html": "index.html"}


@pytest.mark.parametrize(
    "src, expected",
    [
        ("FOO", None),
        ("MDFORGE_foo", "foo"),
        ("MDFORGE_FOO__bar__baz", "foo.bar.baz"),
        ("MDFORGE_FOO_bar__baz", "foo-bar.baz"),
    ],
)
def test_parse_env_vars(src, expected):
    assert parse_env(src) == expected


def test_update_config_using_env_var():
    cfg = Config()
    key = "foo.bar"
    assert cfg.get(key) is None
    cfg.update_from_env({encode_env_var(key): "baz"})
    assert cfg.get(key) == "baz"


def test_update_config_using_env_var_and_complex_value():
    cfg = Config()
    key = "foo-bar.baz"
    value = {"array": [1, 2, 3], "number": 13.37}
    assert cfg.get(key) is None
    cfg.update_from_env({encode_env_var(key): json.dumps(value)})
    assert cfg.get(key) == value


def test_update_book_title_via_env():
    cfg = Config()
    assert cfg.book.title != "Something else"
    cfg.update_from_env({"MDFORGE_BOOK__TITLE": "Something else"})
    assert cfg.book.title == "Something else"


def test_update_whole_book_table_via_env():
    cfg = Config()
    value = json.dumps({"title": "My Awesome Book", "authors": ["Jane Doe"]})
    cfg.update_from_env({"MDFORGE_BOOK": value})
    assert cfg.book.title == "My Awesome Book"
    assert cfg.book.authors == ["Jane Doe"]


def test_unrelated_env_vars_are_ignored():
    cfg = Config()
    cfg.update_from_env({"HOME": "/tmp", "PATH": "/bin"})
    assert cfg == Config()


def test_file_404_default():
    src = """
    [output.html]
    destination = "my-book"
    """
    got = Config.from_str(src)
    assert got.html_config().input_404 is None


def test_file_404_custom():
    src = """
    [output.html]
    input-404= "missing.md"
    output-404= "missing.html"
    """
    got = Config.from_str(src)
    assert got.html_config().input_404 == "missing.md"


@pytest.mark.parametrize(
    "src",
    [
        '[book]\ntitle = "Doc"\nlanguage = ["en", "pt-br"]\n',
        '[book]\ntitle = 20\nlanguage = "en"\n',
        "[build]\nbuild-dir = 99\ncreate-missing = false\n",
        '[rust]\nedition = "1999"\n',
        "this is [not toml",
    ],
)
def test_invalid_configs_raise(src):
    with pytest.raises(ConfigError, match="Invalid configuration file"):
        Config.from_str(src)


def test_print_config():
    got = Config.from_str("[output.html.print]\nenable = false\n")
    html = got.html_config()
    assert html.print.enable is False
    assert html.print.page_break is True

    got = Config.from_str("[output.html.print]\npage-break = false\n")
    html = got.html_config()
    assert html.print.enable is True
    assert html.print.page_break is False


def test_html_config_absent_and_invalid():
    assert Config().html_config() is None
    cfg = Config.from_str("[output.html]\ncurly-quotes = 3\n")
    assert cfg.html_config() is None


def test_get_renderer_and_preprocessor():
    cfg = Config.from_str(COMPLEX_CONFIG)
    assert cfg.get_preprocessor("first") == {}
    assert cfg.get_preprocessor("missing") is None
    assert cfg.get_renderer("html")["default-theme"] == "rust"
    assert cfg.get_renderer("epub") is None


def test_default_to_toml():
    assert Config().to_toml() == (
        '[book]\nauthors = []\nlanguage = "en"\nmultilingual = false\nsrc = "src"\n'
    )


def test_custom_locations_to_toml():
    cfg = Config()
    cfg.book.src = Path("in")
    cfg.build.build_dir = Path("out")
    assert cfg.to_toml() == (
        '[book]\nauthors = []\nlanguage = "en"\nmultilingual = false\nsrc = "in"\n'
        '\n[build]\nbuild-dir = "out"\ncreate-missing = true\nextra-watch-dirs = []\n'
        "use-default-preprocessors = true\n"
    )


def test_to_dict_includes_rust_only_when_set():
    cfg = Config()
    assert "rust" not in cfg.to_dict()
    cfg.rust.edition = RustEdition.E2021
    assert cfg.to_dict()["rust"] == {"edition": "2021"}


def test_round_trip_through_toml():
    cfg = Config.from_str(COMPLEX_CONFIG)
    assert Config.from_str(cfg.to_toml()) == cfg


def test_from_disk(tmp_path):
    path = tmp_path / "book.toml"
    path.write_text('[book]\ntitle = "On Disk"\n', encoding="utf-8")
    assert Config.from_disk(path).book.title == "On Disk"


def test_from_disk_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="Unable to open"):
        Config.from_disk(tmp_path / "nope.toml")
from datetime import date, datetime

import pytest

from folio import html_utils, utils
from folio.config import find_project_root


def test_slugify_strips_date_prefix():
    assert utils.slugify("2024-01-02-post-title") == "post-title"
    assert utils.slugify("Mixed Case_Name") == "mixed-case-name"
    assert utils.slugify("!!!") == "index"


def test_is_valid_slug():
    assert utils.is_valid_slug("issue-1")
    assert utils.is_valid_slug("Issue_2")
    assert not utils.is_valid_slug("-leading")
    assert not utils.is_valid_slug("has space")
    assert not utils.is_valid_slug("a/b")
    assert not utils.is_valid_slug("")


def test_capitalize():
    assert utils.capitalize("bOB") == "Bob"
    assert utils.capitalize("") == ""


def test_parse_date():
    assert utils.parse_date(None) is None
    assert utils.parse_date("") is None
    assert utils.parse_date(date(2024, 1, 2)) == date(2024, 1, 2)
    assert utils.parse_date(datetime(2024, 1, 2, 10, 30)) == date(2024, 1, 2)
    assert utils.parse_date(" 2024-01-02 ") == date(2024, 1, 2)
    with pytest.raises(ValueError):
        utils.parse_date("January 2nd")


def test_extract_description():
    text = '# Title\n\n![img](a.png)\nHello **world** and "friends"'
    assert utils.extract_description(text) == "Hello world and 'friends'"
    assert utils.extract_description("word " * 100, limit=10) == "word word "
    assert utils.extract_description("# Only a heading") == ""


def test_strip_markdown():
    assert utils.strip_markdown("[link](http://x) and `code` &amp;") == "link and code &"


def test_hash_bytes():
    assert utils.hash_bytes(b"") == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_html_utils():
    assert html_utils.escape_html('<a href="x">&</a>') == "&lt;a href=&quot;x&quot;&gt;&amp;&lt;/a&gt;"
    assert html_utils.join_root_url("https://example.com/", "/about/") == "https://example.com/about/"
    assert html_utils.join_root_url("", "about") == "/about"
    assert html_utils.inject_script("<body>x</body>", "<s>") == "<body>x<s></body>"
    assert html_utils.inject_script("<p>x</p>", "<s>") == "<p>x</p><s>"


def test_find_project_root(tmp_path):
    (tmp_path / "folio.yaml").write_text("site: {}\n", encoding="utf-8")
    nested = tmp_path / "content" / "issue-1"
    nested.mkdir(parents=True)
    assert find_project_root(nested) == tmp_path.resolve()
    assert find_project_root(tmp_path) == tmp_path.resolve()

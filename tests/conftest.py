from pathlib import Path
from textwrap import dedent

import pytest

CONFIG = """\
site:
  name: Test Magazine
  url: https://mag.example.com
  description: A magazine for tests
  menu:
    - name: About
      url: /about/
theme:
  primary_color: "#123456"
authors:
  alice:
    name: Alice Liddell
    bio: Curious *writer*
    editor: true
"""

ISSUE_ONE = """\
title: First Issue
slug: issue-1
number: 1
intro: intro.md
articles:
  - file: a.md
    title: Article A
    author: alice
    pub_date: 2024-01-01
  - file: b.md
    title: Article B
    author: [alice, bob]
    pub_date: 2024-01-02
    cover: cover.png
  - file: c.md
    title: Article C
    author: bob
    pub_date: 2024-01-03
"""

ISSUE_TWO = """\
title: Second Issue
slug: issue-2
number: 2
articles:
  - file: d.md
    title: Article D
    author: carol
    pub_date: 2024-02-01
"""


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dedent(text), encoding="utf-8")
    return path


def make_project(root: Path) -> Path:
    """Create a two-issue project with four articles under ``root``."""
    write(root / "folio.yaml", CONFIG)
    issue_one = root / "content" / "issue-1"
    write(issue_one / "issue.yaml", ISSUE_ONE)
    write(issue_one / "intro.md", "Welcome to the **first** issue.\n")
    write(issue_one / "a.md", "# Alpha\n\nThe first article.\n")
    write(
        issue_one / "b.md",
        "# Beta\n\nSee [the first one](a.md) by `@alice`.\n\n![cover](cover.png)\n",
    )
    write(
        issue_one / "c.md",
        "# Gamma\n\nThe last article.\n\n+++\n- author: dave\n  bio: Reader\n  content: Nice *read*.\n",
    )
    (issue_one / "cover.png").write_bytes(b"\x89PNG fake")
    issue_two = root / "content" / "issue-2"
    write(issue_two / "issue.yaml", ISSUE_TWO)
    write(issue_two / "d.md", "Delta body.\n")
    write(root / "static" / "style.css", "body { color: red; }\n")
    return root


@pytest.fixture
def project(tmp_path):
    return make_project(tmp_path / "mag")

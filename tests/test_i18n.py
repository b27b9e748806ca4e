import logging

import pytest

from conftest import write
from folio.errors import ContentError
from folio.i18n import Translator
from folio.protocols import Localizer


def test_default_english():
    translator = Translator()
    assert translator.translate("home") == "Home"
    assert translator.translate("issue-number", number=3) == "Issue 3"
    assert isinstance(translator, Localizer)


def test_missing_key_returns_key():
    translator = Translator()
    assert translator.translate("no-such-key") == "no-such-key"
    assert "no-such-key" not in translator
    assert "home" in translator


def test_bundled_locale():
    translator = Translator("zh")
    assert translator.translate("issue-number", number=2) == "第 2 期"


def test_project_overrides(tmp_path):
    write(tmp_path / "locales" / "en.yaml", "home: Front page\nextra: Extra {name}\n")
    translator = Translator("en", tmp_path)
    assert translator.translate("home") == "Front page"
    assert translator.translate("extra", name="x") == "Extra x"
    assert translator.translate("next") == "Next"


def test_unknown_locale_falls_back(caplog):
    with caplog.at_level(logging.WARNING, logger="folio"):
        translator = Translator("xx")
    assert translator.translate("home") == "Home"
    assert "No translations for locale 'xx'" in caplog.text


def test_project_only_locale(tmp_path, caplog):
    write(tmp_path / "locales" / "fr.yaml", "home: Accueil\n")
    with caplog.at_level(logging.WARNING, logger="folio"):
        translator = Translator("fr", tmp_path)
    assert translator.translate("home") == "Accueil"
    assert translator.translate("next") == "Next"
    assert caplog.text == ""


@pytest.mark.parametrize(
    "content", ["- a\n- b\n", "home: [unclosed\n", "home: 2024-13-45\n"]
)
def test_malformed_translation_file(tmp_path, content):
    write(tmp_path / "locales" / "en.yaml", content)
    with pytest.raises(ContentError):
        Translator("en", tmp_path)

import pytest

from ocr_overlay.scripts import (
    cjk_ratio,
    contains_kana,
    detect_script_language,
    is_meaningful,
    latin_ratio,
)


@pytest.mark.parametrize(
    "text, code",
    [
        ("設定を保存", "ja"),
        ("설정 저장", "ko"),
        ("设置", "zh"),
        ("Save settings", "en"),
        ("", "en"),
    ],
)
def test_detect_script_language(text, code):
    assert detect_script_language(text) == code


def test_ratios_ignore_whitespace():
    assert latin_ratio("ab cd") == 1.0
    assert cjk_ratio("設定 ab") == pytest.approx(0.5)
    assert latin_ratio("") == 0.0


def test_halfwidth_katakana_counts_as_kana():
    assert contains_kana("ｶﾀｶﾅ") is True


def test_meaningful_characters():
    assert is_meaningful("a") and is_meaningful("7") and is_meaningful("設")
    assert not is_meaningful("-") and not is_meaningful(" ")

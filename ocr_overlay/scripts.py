"""
Writing-system helpers shared by OCR filtering and translation checks.

脚本判定：假名 / 谚文 / 汉字 / 拉丁字母。
"""

import re

# Kana: Hiragana + Katakana (+ phonetic extensions, halfwidth katakana)
_KANA_RE = re.compile(r"[\u3040-\u309f\u30a0-\u30ff\u31f0-\u31ff\uff66-\uff9f]")
# Hangul syllables + Jamo + compatibility Jamo
_HANGUL_RE = re.compile(r"[\uac00-\ud7af\u1100-\u11ff\u3130-\u318f]")
# CJK unified ideographs (+ ext A, compatibility ideographs)
_HAN_RE = re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff]")
_LATIN_RE = re.compile(r"[A-Za-z\u00c0-\u024f]")


def is_kana(ch: str) -> bool:
    return bool(_KANA_RE.match(ch))


def is_hangul(ch: str) -> bool:
    return bool(_HANGUL_RE.match(ch))


def is_han(ch: str) -> bool:
    return bool(_HAN_RE.match(ch))


def is_latin(ch: str) -> bool:
    return bool(_LATIN_RE.match(ch))


def is_cjk(ch: str) -> bool:
    """Han ideograph, kana or hangul."""
    return is_han(ch) or is_kana(ch) or is_hangul(ch)


def is_meaningful(ch: str) -> bool:
    """Letter, digit or CJK character."""
    return ch.isalnum() or is_cjk(ch)


def contains_kana(text: str) -> bool:
    return bool(_KANA_RE.search(text or ""))


def contains_hangul(text: str) -> bool:
    return bool(_HANGUL_RE.search(text or ""))


def contains_han(text: str) -> bool:
    return bool(_HAN_RE.search(text or ""))


def contains_cjk(text: str) -> bool:
    return contains_han(text) or contains_kana(text) or contains_hangul(text)


def _non_space(text: str) -> list[str]:
    return [ch for ch in (text or "") if not ch.isspace()]


def ratio(text: str, predicate) -> float:
    """Fraction of non-space characters matching ``predicate`` (0.0 for empty text)."""
    chars = _non_space(text)
    if not chars:
        return 0.0
    return sum(1 for ch in chars if predicate(ch)) / len(chars)


def kana_ratio(text: str) -> float:
    return ratio(text, is_kana)


def hangul_ratio(text: str) -> float:
    return ratio(text, is_hangul)


def cjk_ratio(text: str) -> float:
    return ratio(text, is_cjk)


def latin_ratio(text: str) -> float:
    return ratio(text, is_latin)


def detect_script_language(text: str) -> str:
    """
    Guess a language code from the script present in ``text``.

    kana -> ja, hangul -> ko, ideographs -> zh, otherwise en.
    """
    if contains_kana(text):
        return "ja"
    if contains_hangul(text):
        return "ko"
    if contains_han(text):
        return "zh"
    return "en"

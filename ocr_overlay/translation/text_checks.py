"""
Script heuristics around a translation call.

- bypass: text already in the target script is passed through untranslated
- acceptability: results still dominated by the wrong script are rejected
- fallback: sanitised source text, or a fixed per-language placeholder
"""

import re

from ..models import TranslationLanguage
from ..scripts import (
    contains_cjk,
    contains_hangul,
    contains_kana,
    cjk_ratio,
    hangul_ratio,
    is_han,
    is_hangul,
    is_kana,
    is_meaningful,
    kana_ratio,
    latin_ratio,
    ratio,
)

BYPASS_RATIO = 0.8
FOREIGN_SCRIPT_MAX_RATIO = 0.25
ENGLISH_MIN_LATIN_RATIO = 0.45
ENGLISH_MAX_CJK_RATIO = 0.2

_CHINESE_TARGETS = {
    TranslationLanguage.TRADITIONAL_CHINESE,
    TranslationLanguage.SIMPLIFIED_CHINESE,
}

PLACEHOLDERS = {
    TranslationLanguage.ENGLISH: "[unreadable]",
    TranslationLanguage.TRADITIONAL_CHINESE: "[無法辨識]",
    TranslationLanguage.SIMPLIFIED_CHINESE: "[无法识别]",
    TranslationLanguage.JAPANESE: "[判読不能]",
    TranslationLanguage.KOREAN: "[판독 불가]",
}

_UNK_RE = re.compile(r"<unk\d*>", re.IGNORECASE)
_BASIC_PUNCT = set(".,!?;:'\"-()[]%&/+#@" "。、，！？；：「」『』（）・ー～…")
_SPACES_RE = re.compile(r"[ \t]+")


def should_bypass(text: str, target: TranslationLanguage) -> bool:
    """True when ``text`` is already predominantly in the target script."""
    if not text or not text.strip():
        return True
    if target == TranslationLanguage.ENGLISH:
        return not contains_cjk(text) and latin_ratio(text) > BYPASS_RATIO
    if target in _CHINESE_TARGETS:
        if contains_kana(text) or contains_hangul(text):
            return False
        return ratio(text, is_han) > BYPASS_RATIO
    if target == TranslationLanguage.JAPANESE:
        if contains_hangul(text) or not contains_kana(text):
            return False
        return ratio(text, lambda ch: is_kana(ch) or is_han(ch)) > BYPASS_RATIO
    if target == TranslationLanguage.KOREAN:
        if contains_kana(text):
            return False
        return ratio(text, is_hangul) > BYPASS_RATIO
    return False


def is_acceptable(source: str, result: str, target: TranslationLanguage) -> bool:
    """Reject empty results and results still written in the wrong script family."""
    if not result or not result.strip():
        return False
    long_enough = len(result.strip()) > 2

    if target != TranslationLanguage.JAPANESE and contains_kana(result):
        if not contains_kana(source):
            return False
        if kana_ratio(result) > FOREIGN_SCRIPT_MAX_RATIO and long_enough:
            return False

    if target != TranslationLanguage.KOREAN and contains_hangul(result):
        if not contains_hangul(source):
            return False
        if hangul_ratio(result) > FOREIGN_SCRIPT_MAX_RATIO and long_enough:
            return False

    if target == TranslationLanguage.ENGLISH:
        if result.strip() == source.strip() and contains_cjk(source):
            return False
        if latin_ratio(result) < ENGLISH_MIN_LATIN_RATIO:
            return False
        if cjk_ratio(result) > ENGLISH_MAX_CJK_RATIO:
            return False
    return True


def needs_strict_retry(source: str, target: TranslationLanguage) -> bool:
    """Source/target pairs where a rejected result earns one stricter re-ask."""
    if target in _CHINESE_TARGETS:
        return contains_kana(source) or contains_hangul(source)
    if target == TranslationLanguage.ENGLISH:
        return contains_cjk(source)
    return False


def sanitize_fallback(text: str) -> str:
    """
    Strip decode-failure markers and anything that is not a letter, digit,
    CJK character, whitespace or basic punctuation.
    """
    if not text:
        return ""
    cleaned = _UNK_RE.sub(" ", text).replace("\ufffd", "")
    kept = []
    for ch in cleaned:
        if ch == "\n" or is_meaningful(ch) or ch in _BASIC_PUNCT:
            kept.append(ch)
        elif ch.isspace():
            kept.append(" ")
    lines = [_SPACES_RE.sub(" ", line).strip() for line in "".join(kept).split("\n")]
    return "\n".join(line for line in lines if line)


def placeholder_for(target: TranslationLanguage) -> str:
    return PLACEHOLDERS.get(target, PLACEHOLDERS[TranslationLanguage.ENGLISH])


def fallback_text(source: str, target: TranslationLanguage) -> str:
    """Sanitised source if anything meaningful survives, else the placeholder."""
    sanitized = sanitize_fallback(source)
    if any(is_meaningful(ch) for ch in sanitized):
        return sanitized
    return placeholder_for(target)


__all__ = [
    "should_bypass",
    "is_acceptable",
    "needs_strict_retry",
    "sanitize_fallback",
    "placeholder_for",
    "fallback_text",
]

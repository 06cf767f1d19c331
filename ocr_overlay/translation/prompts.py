"""Prompt construction and LLM output clean-up."""

import re

from ..models import OCRLanguage, TranslationLanguage
from ..scripts import detect_script_language

TARGET_LANGUAGE_NAMES = {
    TranslationLanguage.TRADITIONAL_CHINESE: "Traditional Chinese (Taiwan)",
    TranslationLanguage.SIMPLIFIED_CHINESE: "Simplified Chinese",
    TranslationLanguage.ENGLISH: "English",
    TranslationLanguage.JAPANESE: "Japanese",
    TranslationLanguage.KOREAN: "Korean",
}

_SOURCE_LANGUAGE_NAMES = {
    OCRLanguage.ENGLISH: "English",
    OCRLanguage.JAPANESE: "Japanese",
    OCRLanguage.KOREAN: "Korean",
    OCRLanguage.TRADITIONAL_CHINESE: "Traditional Chinese",
    OCRLanguage.SIMPLIFIED_CHINESE: "Simplified Chinese",
}

_DETECTED_NAMES = {"ja": "Japanese", "ko": "Korean", "zh": "Chinese", "en": "English"}

_PREFIX_RE = re.compile(
    r"^\s*(translated text|translation|output|result)\s*[:：]\s*",
    re.IGNORECASE,
)
_QUOTE_PAIRS = (('"', '"'), ("'", "'"), ("“", "”"), ("「", "」"), ("『", "』"))


def target_language_name(target: TranslationLanguage) -> str:
    return TARGET_LANGUAGE_NAMES.get(target, "English")


def source_language_name(source: OCRLanguage, text: str) -> str:
    """Prompt name for the source; ``auto`` is resolved from the script in ``text``."""
    if source == OCRLanguage.AUTO:
        return _DETECTED_NAMES[detect_script_language(text)]
    return _SOURCE_LANGUAGE_NAMES.get(source, "English")


def build_translation_prompt(text: str, source: OCRLanguage, target: TranslationLanguage) -> str:
    src = source_language_name(source, text)
    tgt = target_language_name(target)
    return (
        f"You are an expert translator. Translate the following {src} text into {tgt} accurately.\n"
        "Rules:\n"
        "1) Output ONLY the translated text.\n"
        "2) NO explanations, NO quotes, NO original text.\n"
        '3) Do NOT say "Translation:", "Sure", or "Here is the translation".\n'
        "4) Preserve formatting, punctuation, and ORIGINAL LINE BREAKS.\n"
        f"5) If the text is already in {tgt}, return it as is.\n\n"
        f"Input:\n{text}\n\n"
        "Output:"
    )


def build_strict_retry_prompt(text: str, target: TranslationLanguage) -> str:
    tgt = target_language_name(target)
    return (
        f"Translate to {tgt}.\n"
        "Rules:\n"
        f"1) Output ONLY {tgt}.\n"
        "2) ABSOLUTELY NO Japanese kana or Korean hangul if translating to Chinese.\n"
        "3) NO explanations.\n\n"
        f"Input:\n{text}\n\n"
        "Output:"
    )


def clean_llm_output(text: str) -> str:
    """Strip echoed labels (``Translation:`` etc.) and one layer of surrounding quotes."""
    if not text:
        return ""
    cleaned = text.strip()
    previous = None
    while previous != cleaned:
        previous = cleaned
        cleaned = _PREFIX_RE.sub("", cleaned).strip()
    for left, right in _QUOTE_PAIRS:
        if len(cleaned) >= 2 and cleaned.startswith(left) and cleaned.endswith(right):
            cleaned = cleaned[len(left):-len(right)].strip()
            break
    return cleaned

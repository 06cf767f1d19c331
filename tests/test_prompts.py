from ocr_overlay.models import OCRLanguage, TranslationLanguage
from ocr_overlay.translation.prompts import (
    build_strict_retry_prompt,
    build_translation_prompt,
    clean_llm_output,
    source_language_name,
)


def test_translation_prompt_names_languages_and_keeps_text():
    prompt = build_translation_prompt("設定を保存\n閉じる", OCRLanguage.AUTO, TranslationLanguage.ENGLISH)
    assert "Translate the following Japanese text into English" in prompt
    assert "ORIGINAL LINE BREAKS" in prompt
    assert prompt.endswith("Input:\n設定を保存\n閉じる\n\nOutput:")


def test_strict_prompt_forbids_kana_and_hangul():
    prompt = build_strict_retry_prompt("設定を保存", TranslationLanguage.TRADITIONAL_CHINESE)
    assert prompt.startswith("Translate to Traditional Chinese (Taiwan).")
    assert "NO Japanese kana or Korean hangul" in prompt


def test_source_language_name_detects_script_for_auto():
    assert source_language_name(OCRLanguage.AUTO, "설정") == "Korean"
    assert source_language_name(OCRLanguage.AUTO, "设置") == "Chinese"
    assert source_language_name(OCRLanguage.AUTO, "Save") == "English"
    assert source_language_name(OCRLanguage.KOREAN, "Save") == "Korean"


def test_clean_llm_output_strips_labels_and_quotes():
    assert clean_llm_output('Translation: "Save settings"') == "Save settings"
    assert clean_llm_output("Output: Result：「保存設定」") == "保存設定"
    assert clean_llm_output("  plain  ") == "plain"
    assert clean_llm_output("") == ""

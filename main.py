#!/usr/bin/env python3
"""
截图 OCR 翻译 - 命令行入口

功能：
- 文字区域检测 + 识别 (ONNX)
- 翻译 (本地 seq2seq / Ollama / Gemini)
- 输出可叠加显示的翻译块 (JSON)

用法：
    # 识别并翻译一张截图
    python main.py image <图片路径> [-s japanese] [-t english] [-e ollama]

    # 只翻译一段文字
    python main.py text "設定を保存" -t english
"""

import argparse
import asyncio
import json
import sys


def _engine_config(args):
    from ocr_overlay.config import get_settings
    from ocr_overlay.models import OCRLanguage, TranslationEngine, TranslationLanguage

    config = get_settings().to_engine_config()
    updates = {}
    if args.source:
        updates["source_language"] = OCRLanguage(args.source)
    if args.target:
        updates["target_language"] = TranslationLanguage(args.target)
    if args.engine:
        updates["engine"] = TranslationEngine(args.engine)
    if args.model:
        field = "gemini_model" if (updates.get("engine") or config.engine) == TranslationEngine.GEMINI else "ollama_model"
        updates[field] = args.model
    return config.model_copy(update=updates)


def analyze_image_cmd(args):
    """识别并翻译单张图片"""
    from ocr_overlay.image_io import load_image
    from ocr_overlay.logging_config import init_default_logging
    from ocr_overlay.pipeline import analyze_image

    init_default_logging()
    config = _engine_config(args)

    try:
        image = load_image(args.image)
    except (FileNotFoundError, OSError, ValueError) as e:
        print(f"❌ 无法读取图片: {e}", file=sys.stderr)
        sys.exit(1)

    blocks = asyncio.run(analyze_image(image, config))
    print(json.dumps([b.model_dump() for b in blocks], ensure_ascii=False, indent=2))
    if not blocks:
        sys.exit(2)


def translate_text_cmd(args):
    """只翻译文字（跳过 OCR）"""
    from ocr_overlay.logging_config import init_default_logging
    from ocr_overlay.translation import TranslationDispatcher

    init_default_logging()
    config = _engine_config(args)

    async def run():
        dispatcher = TranslationDispatcher()
        try:
            return await dispatcher.translate(args.text, config)
        finally:
            await dispatcher.aclose()

    outcome = asyncio.run(run())
    print(json.dumps({"text": outcome.text, "state": outcome.state.value}, ensure_ascii=False))


def _add_common(p):
    p.add_argument("-s", "--source", default=None, help="OCR/源语言 (auto, english, japanese, korean, ...)")
    p.add_argument("-t", "--target", default=None, help="目标语言 (traditional_chinese, english, ...)")
    p.add_argument("-e", "--engine", default=None, help="翻译引擎 (local_seq2seq, ollama, gemini)")
    p.add_argument("-m", "--model", default=None, help="模型名称 (Ollama / Gemini)")


def main():
    parser = argparse.ArgumentParser(
        description="截图 OCR 翻译 - 识别截图中的文字并翻译",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  python main.py image shot.png -t english              # 识别并翻译
  python main.py image shot.png -s japanese -e gemini   # 指定源语言和引擎
  python main.py text "設定を保存" -t english            # 只翻译文字
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="可用命令")

    image_parser = subparsers.add_parser("image", help="识别并翻译单张图片")
    image_parser.add_argument("image", help="图片路径")
    _add_common(image_parser)
    image_parser.set_defaults(func=analyze_image_cmd)

    text_parser = subparsers.add_parser("text", help="只翻译一段文字")
    text_parser.add_argument("text", help="待翻译文字")
    _add_common(text_parser)
    text_parser.set_defaults(func=translate_text_cmd)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()

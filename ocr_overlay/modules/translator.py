"""
Translator Module - turns the merged OCR block into a TranslatedBlock.
"""

import logging
import time
from typing import Optional

from ..logging_config import get_log_level, setup_module_logger
from ..models import TaskContext, TranslatedBlock
from ..translation.dispatcher import TranslationDispatcher
from .base import BaseModule

# 配置日志
logger = setup_module_logger(
    __name__,
    "translator/translator.log",
    level=get_log_level("TRANSLATOR_LOG_LEVEL", logging.INFO),
)


class TranslatorModule(BaseModule):
    """Translates ``context.merged``; produces at most one TranslatedBlock."""

    def __init__(self, dispatcher: Optional[TranslationDispatcher] = None):
        super().__init__(name="Translator")
        self.dispatcher = dispatcher or TranslationDispatcher()

    async def validate_input(self, context: TaskContext) -> bool:
        return context.merged is not None and bool(context.merged.text.strip())

    async def process(self, context: TaskContext) -> TaskContext:
        start = time.perf_counter()
        context.results = []
        if not await self.validate_input(context):
            self.last_metrics = {"duration_ms": 0.0, "blocks": 0}
            return context

        merged = context.merged
        outcome = await self.dispatcher.translate(merged.text, context.config, context.cancel_token)
        context.results = [
            TranslatedBlock(
                original_text=merged.text,
                translated_text=outcome.text,
                bounds=merged.box.to_rect(),
            )
        ]
        self.last_metrics = {
            "duration_ms": (time.perf_counter() - start) * 1000,
            "blocks": 1,
            "state": outcome.state.value,
            "backend": outcome.backend,
            "attempts": outcome.attempts,
        }
        logger.info(
            f"[{context.task_id}] translate: state={outcome.state.value} backend={outcome.backend} "
            f"ms={self.last_metrics['duration_ms']:.0f}"
        )
        return context

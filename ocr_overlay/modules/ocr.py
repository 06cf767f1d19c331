"""
OCR Module - detection + recognition + aggregation as one pipeline stage.

同步 OCR 在线程池中执行；取消信号以 OperationAborted 形式透传。
"""

import asyncio
import logging
import os
import time
from typing import Optional

from ..errors import OCRNoTextError, OperationAborted
from ..models import TaskContext
from ..vision.ocr import OnnxOCREngine
from .base import BaseModule

# 配置日志
logger = logging.getLogger(__name__)


class OCRModule(BaseModule):
    """Runs the OCR engine for the configured source language."""

    def __init__(self, engine: Optional[OnnxOCREngine] = None):
        super().__init__(name="OCR")
        self._engine = engine

    @property
    def engine(self) -> OnnxOCREngine:
        if self._engine is None:
            self._engine = OnnxOCREngine()
        return self._engine

    @staticmethod
    def _env_flag(name: str, default: str = "0") -> bool:
        return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}

    def _fail_on_empty(self) -> bool:
        return self._env_flag("OCR_FAIL_ON_EMPTY", "0")

    async def process(self, context: TaskContext) -> TaskContext:
        if not await self.validate_input(context):
            raise ValueError("OCR stage requires a decoded image")

        start = time.perf_counter()
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None,
                self.engine.run,
                context.image,
                context.config.source_language,
                context.cancel_token,
            )
        except OperationAborted:
            raise
        except Exception as e:
            # Model load failures and the like: no text, visible in the task.
            logger.exception(f"[{context.task_id}] OCR failed: {e}")
            context.error_message = f"OCR failed: {type(e).__name__}: {e}"
            context.error_code = "ocr_failed"
            context.regions = []
            context.blocks = []
            context.merged = None
            self.last_metrics = {"duration_ms": (time.perf_counter() - start) * 1000, "error": str(e)}
            return context

        context.regions = result.regions
        context.blocks = result.blocks
        context.merged = result.merged
        self.last_metrics = {
            "duration_ms": (time.perf_counter() - start) * 1000,
            "image_size": (context.image_width, context.image_height),
            **(self.engine.last_metrics or {}),
        }

        if context.merged is None:
            msg = (
                f"[{context.task_id}] OCR produced no usable text ({len(result.regions)} regions, "
                f"{context.image_width}x{context.image_height})"
            )
            if self._fail_on_empty():
                raise OCRNoTextError(msg)
            logger.info(msg)
        return context

"""
Pipeline Manager - Orchestrates the analysis pipeline.

流程: OCR (detect -> recognize -> aggregate) → Translator

Includes per-stage timing and module metrics.
"""

import logging
import time
from pathlib import Path
from typing import Optional

import numpy as np

from .cancellation import CancellationToken
from .errors import OperationAborted
from .image_io import PixelInput, to_rgb_array
from .models import EngineConfig, PipelineResult, TaskContext, TaskStatus, TranslatedBlock
from .modules import BaseModule, OCRModule, TranslatorModule

# 配置日志
logger = logging.getLogger(__name__)


class Pipeline:
    """
    Analysis pipeline manager.

    Each stage updates the TaskContext with its results. Cancellation
    propagates as ``OperationAborted``; any other stage failure marks the
    task failed and is reported in the PipelineResult.
    """

    def __init__(
        self,
        ocr: Optional[BaseModule] = None,
        translator: Optional[BaseModule] = None,
    ):
        self.ocr = ocr or OCRModule()
        self.translator = translator or TranslatorModule()
        self.stages = [
            ("ocr", self.ocr),
            ("translator", self.translator),
        ]

    async def process(self, context: TaskContext, collect_metrics: bool = True) -> PipelineResult:
        start_time = time.time()
        stages_completed: list[str] = []
        metrics: Optional[dict] = {"stages": {}} if collect_metrics else None

        logger.info(f"[{context.task_id}] Pipeline 开始: {context.image_path or 'buffer'}")
        context.update_status(TaskStatus.PROCESSING)

        try:
            for stage_name, module in self.stages:
                stage_start = time.perf_counter()
                try:
                    context = await module.process(context)
                except OperationAborted:
                    raise
                except Exception as stage_error:
                    logger.error(f"[{context.task_id}] {stage_name} 阶段失败: {stage_error}")
                    raise

                stage_duration = (time.perf_counter() - stage_start) * 1000
                stages_completed.append(stage_name)
                if metrics is not None:
                    metrics["stages"][stage_name] = {
                        "duration_ms": stage_duration,
                        "sub_metrics": getattr(module, "last_metrics", None) or {},
                    }
        except OperationAborted as e:
            logger.info(f"[{context.task_id}] Pipeline 取消: {e}")
            context.error_code = e.error_code
            context.update_status(TaskStatus.ABORTED, error=str(e))
            raise
        except Exception as e:
            logger.error(f"[{context.task_id}] Pipeline 失败: {e}")
            context.error_code = getattr(e, "error_code", None) or context.error_code
            context.update_status(TaskStatus.FAILED, error=str(e))
            total_time = (time.time() - start_time) * 1000
            if metrics is not None:
                metrics["total_duration_ms"] = total_time
            return PipelineResult(
                success=False,
                task=context,
                processing_time_ms=total_time,
                stages_completed=stages_completed,
                metrics=metrics,
            )

        context.update_status(TaskStatus.COMPLETED)
        total_time = (time.time() - start_time) * 1000
        if metrics is not None:
            metrics["total_duration_ms"] = total_time
        logger.info(
            f"[{context.task_id}] Pipeline 完成: 耗时 {total_time:.0f}ms, 输出 {len(context.results)} 块"
        )
        return PipelineResult(
            success=True,
            task=context,
            processing_time_ms=total_time,
            stages_completed=stages_completed,
            metrics=metrics,
        )


_default_pipeline: Optional[Pipeline] = None


def _get_default_pipeline() -> Pipeline:
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = Pipeline()
    return _default_pipeline


# Convenience function
async def analyze_image(
    image: PixelInput,
    config: Optional[EngineConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
    pipeline: Optional[Pipeline] = None,
) -> list[TranslatedBlock]:
    """
    OCR + translate one captured region.

    Returns the overlay blocks (zero or one). Raises ``OperationAborted``
    when ``cancel_token`` is cancelled; any other stage failure degrades to
    an empty list.
    """
    pixels: np.ndarray = to_rgb_array(image)
    context = TaskContext(
        image=pixels,
        image_path=str(image) if isinstance(image, (str, Path)) else None,
        config=config or EngineConfig(),
        cancel_token=cancel_token,
    )
    result = await (pipeline or _get_default_pipeline()).process(context)
    return list(result.task.results) if result.success else []

"""
Core Data Models for the screenshot OCR overlay.

Defines the standard data structures used across all modules:
- TextRegion: detected text box in source-image pixels
- RecognizedBlock: one recognized box with text and confidence
- TranslatedBlock: final overlay record for the rendering layer
- EngineConfig: read-only language / engine selection
- TaskContext: full analysis context passed through the pipeline
- PipelineResult: final result of pipeline execution
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(str, Enum):
    """Task execution status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


class OCRLanguage(str, Enum):
    """Recognition language (selects the rec model and label table)."""
    AUTO = "auto"
    ENGLISH = "english"
    JAPANESE = "japanese"
    KOREAN = "korean"
    TRADITIONAL_CHINESE = "traditional_chinese"
    SIMPLIFIED_CHINESE = "simplified_chinese"


class TranslationLanguage(str, Enum):
    """Translation target language."""
    TRADITIONAL_CHINESE = "traditional_chinese"
    SIMPLIFIED_CHINESE = "simplified_chinese"
    ENGLISH = "english"
    JAPANESE = "japanese"
    KOREAN = "korean"


class TranslationEngine(str, Enum):
    """Translation backend selection."""
    LOCAL_SEQ2SEQ = "local_seq2seq"
    OLLAMA = "ollama"
    GEMINI = "gemini"


class TextRegion(BaseModel):
    """Detected text box in source-image pixel coordinates (right/bottom exclusive)."""
    model_config = ConfigDict(frozen=True)

    left: int = Field(..., ge=0, description="Left coordinate")
    top: int = Field(..., ge=0, description="Top coordinate")
    right: int = Field(..., description="Right coordinate (exclusive)")
    bottom: int = Field(..., description="Bottom coordinate (exclusive)")

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    def union(self, other: "TextRegion") -> "TextRegion":
        return TextRegion(
            left=min(self.left, other.left),
            top=min(self.top, other.top),
            right=max(self.right, other.right),
            bottom=max(self.bottom, other.bottom),
        )

    def to_rect(self) -> "Rect":
        return Rect(x=self.left, y=self.top, width=self.width, height=self.height)


class Rect(BaseModel):
    """Overlay rectangle (origin + size) handed to the rendering layer."""
    model_config = ConfigDict(frozen=True)

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


class RecognizedBlock(BaseModel):
    """Recognition result for one detected box."""
    model_config = ConfigDict(frozen=True)

    box: TextRegion
    text: str = Field(default="", description="Decoded text")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Mean per-symbol probability")


class TranslatedBlock(BaseModel):
    """Final overlay record."""
    original_text: str = Field(default="", description="Merged OCR text")
    translated_text: str = Field(default="", description="Translation, passthrough or placeholder")
    bounds: Rect = Field(default_factory=Rect, description="Union of accepted boxes")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "original_text": "設定を保存",
                "translated_text": "Save settings",
                "bounds": {"x": 12, "y": 40, "width": 180, "height": 24},
            }
        },
    )


class EngineConfig(BaseModel):
    """Read-only engine configuration consumed by the analysis core."""
    model_config = ConfigDict(frozen=True)

    source_language: OCRLanguage = Field(default=OCRLanguage.AUTO)
    target_language: TranslationLanguage = Field(default=TranslationLanguage.TRADITIONAL_CHINESE)
    engine: TranslationEngine = Field(default=TranslationEngine.OLLAMA)
    ollama_api_url: Optional[str] = Field(default=None, description="Local text-generation endpoint")
    ollama_model: Optional[str] = Field(default=None, description="Local model name")
    gemini_api_key: Optional[str] = Field(default=None, description="Cloud API key")
    gemini_model: str = Field(default="gemini-2.5-flash", description="Cloud model name")
    nmt_model_dir: Optional[str] = Field(default=None, description="Local seq2seq model directory")


class TaskContext(BaseModel):
    """
    Analysis context that flows through the pipeline.

    Holds the decoded pixel buffer and the intermediate results of every stage.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    task_id: UUID = Field(default_factory=uuid4, description="Unique task identifier")
    image: Any = Field(default=None, exclude=True, description="RGB uint8 pixel buffer (H, W, 3)")
    image_path: Optional[str] = Field(default=None, description="Optional source path, for logging")
    config: EngineConfig = Field(default_factory=EngineConfig)
    regions: list[TextRegion] = Field(default_factory=list, description="Detected boxes")
    blocks: list[RecognizedBlock] = Field(default_factory=list, description="Accepted recognitions")
    merged: Optional[RecognizedBlock] = Field(default=None, description="Single merged paragraph")
    results: list[TranslatedBlock] = Field(default_factory=list, description="Overlay output")
    cancel_token: Any = Field(default=None, exclude=True, description="Cooperative cancel signal")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current task status")
    error_message: Optional[str] = Field(default=None, description="Error message if failed")
    error_code: Optional[str] = Field(default=None, description="Machine-readable error code")
    created_at: datetime = Field(default_factory=datetime.now, description="Task creation time")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last update time")

    @property
    def image_width(self) -> int:
        return int(self.image.shape[1]) if self.image is not None else 0

    @property
    def image_height(self) -> int:
        return int(self.image.shape[0]) if self.image is not None else 0

    def update_status(self, status: TaskStatus, error: Optional[str] = None) -> "TaskContext":
        """Update task status and timestamp."""
        self.status = status
        self.updated_at = datetime.now()
        if error:
            self.error_message = error
        return self


class PipelineResult(BaseModel):
    """Result of pipeline execution."""
    success: bool = Field(..., description="Whether pipeline completed successfully")
    task: TaskContext = Field(..., description="Final task context")
    processing_time_ms: float = Field(default=0.0, description="Total processing time in ms")
    stages_completed: list[str] = Field(default_factory=list, description="List of completed stages")
    metrics: Optional[dict] = Field(default=None, description="Performance metrics per stage")

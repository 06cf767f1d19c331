"""Core business exceptions for pipeline stages."""

from typing import Optional


class PipelineStageError(Exception):
    """Base exception with machine-readable code for stage failures."""

    def __init__(self, message: str, *, error_code: str):
        super().__init__(message)
        self.error_code = error_code


class OCRNoTextError(PipelineStageError):
    """Raised when OCR detects no text regions."""

    def __init__(self, message: str = "OCR found no text regions"):
        super().__init__(message, error_code="ocr_no_text")


class OperationAborted(PipelineStageError):
    """
    Caller-issued cancellation.

    The only error allowed to escape the analysis core; every phase boundary
    re-raises it before its generic ``except Exception`` handler.
    """

    def __init__(self, message: str = "operation aborted"):
        super().__init__(message, error_code="aborted")


class TranslationTimeout(PipelineStageError):
    """Backend transport timeout (soft failure, retried by the timeout ladder)."""

    def __init__(self, message: str = "translation backend timed out"):
        super().__init__(message, error_code="translate_timeout")


class TranslationBackendError(PipelineStageError):
    """
    Non-timeout backend failure.

    ``user_message`` is short and shown to the user in place of the translation.
    """

    def __init__(self, user_message: str, *, status_code: Optional[int] = None):
        super().__init__(user_message, error_code="translate_backend_error")
        self.user_message = user_message
        self.status_code = status_code

"""
Offline seq2seq translation (M2M100-style encoder/decoder ONNX export).

逐行翻译：每行独立编码，贪心自回归解码，保持原有换行。
"""

import asyncio
import logging
import re
import threading
import time
from pathlib import Path
from typing import Optional

import numpy as np

from ..cancellation import CancellationToken, check_cancelled
from ..errors import OperationAborted
from ..logging_config import get_log_level, setup_module_logger
from ..models import OCRLanguage, TranslationLanguage
from ..scripts import contains_cjk, detect_script_language
from ..vision.inference import InferenceSession, onnx_session_factory
from .base import TranslationBackend, TranslationRequest

logger = setup_module_logger(
    __name__,
    "translation/backends.log",
    level=get_log_level("BACKEND_LOG_LEVEL", logging.INFO),
)

ENCODER_FILE = "encoder_model.onnx"
DECODER_FILE = "decoder_model.onnx"
MAX_DECODE_STEPS = 512

_UNK_IN_RE = re.compile(r"<unk\d*>")
_MULTI_SPACE_RE = re.compile(r"[ \t]{2,}")

_SOURCE_CODES = {
    OCRLanguage.ENGLISH: "en",
    OCRLanguage.JAPANESE: "ja",
    OCRLanguage.KOREAN: "ko",
    OCRLanguage.TRADITIONAL_CHINESE: "zh",
    OCRLanguage.SIMPLIFIED_CHINESE: "zh",
}
_TARGET_CODES = {
    TranslationLanguage.ENGLISH: "en",
    TranslationLanguage.JAPANESE: "ja",
    TranslationLanguage.KOREAN: "ko",
    TranslationLanguage.TRADITIONAL_CHINESE: "zh",
    TranslationLanguage.SIMPLIFIED_CHINESE: "zh",
}


def language_token(code: str) -> str:
    return f"__{code}__"


class HFTokenizer:
    """Thin adapter over a ``transformers`` tokenizer loaded from the model directory."""

    def __init__(self, model_dir: str):
        from transformers import AutoTokenizer

        self._tok = AutoTokenizer.from_pretrained(model_dir)

    @property
    def pad_token_id(self) -> int:
        return int(self._tok.pad_token_id if self._tok.pad_token_id is not None else 1)

    @property
    def eos_token_id(self) -> int:
        return int(self._tok.eos_token_id if self._tok.eos_token_id is not None else 2)

    def token_id(self, token: str) -> int:
        return int(self._tok.convert_tokens_to_ids(token))

    def encode(self, text: str) -> list[int]:
        return list(self._tok(text, add_special_tokens=False)["input_ids"])

    def decode(self, ids: list[int]) -> str:
        return self._tok.decode(ids, skip_special_tokens=True)


def _is_loop(sequence: list[int], next_token: int) -> bool:
    # third identical token in a row
    if len(sequence) >= 2 and sequence[-1] == next_token and sequence[-2] == next_token:
        return True
    # a b a -> b
    if len(sequence) >= 3 and sequence[-2] == next_token and sequence[-1] == sequence[-3]:
        return True
    return False


class LocalSeq2SeqEngine:
    """
    Greedy autoregressive translator.

    ``translate`` never raises except for ``OperationAborted``: load or
    inference failures return the input unchanged.
    """

    def __init__(
        self,
        model_dir: Optional[str] = None,
        encoder: Optional[InferenceSession] = None,
        decoder: Optional[InferenceSession] = None,
        tokenizer=None,
        session_factory=onnx_session_factory,
        max_steps: int = MAX_DECODE_STEPS,
    ):
        self.model_dir = model_dir
        self.encoder = encoder
        self.decoder = decoder
        self.tokenizer = tokenizer
        self._factory = session_factory
        self.max_steps = max_steps
        self._lock = threading.Lock()
        self.last_metrics: Optional[dict] = None

    def _ensure_loaded(self) -> None:
        with self._lock:
            if self.encoder is not None and self.decoder is not None and self.tokenizer is not None:
                return
            if not self.model_dir:
                raise FileNotFoundError("seq2seq model directory not configured")
            model_dir = Path(self.model_dir)
            if self.tokenizer is None:
                self.tokenizer = HFTokenizer(str(model_dir))
            if self.encoder is None:
                self.encoder = self._factory(str(model_dir / ENCODER_FILE))
            if self.decoder is None:
                self.decoder = self._factory(str(model_dir / DECODER_FILE))
            logger.info(f"seq2seq: loaded {model_dir}")

    @staticmethod
    def _filter_feeds(session: InferenceSession, feeds: dict) -> dict:
        names = session.input_names
        if not names:
            return feeds
        return {k: v for k, v in feeds.items() if k in names}

    def _translate_line(
        self,
        line: str,
        src_code: str,
        tgt_code: str,
        cancel_token: Optional[CancellationToken],
    ) -> str:
        tok = self.tokenizer
        eos = tok.eos_token_id
        input_ids = [tok.token_id(language_token(src_code))] + tok.encode(line) + [eos]
        ids = np.array([input_ids], dtype=np.int64)
        mask = np.ones_like(ids, dtype=np.int64)

        enc_out = self.encoder.run(
            self._filter_feeds(self.encoder, {"input_ids": ids, "attention_mask": mask})
        )
        hidden = enc_out[0]

        sequence = [tok.pad_token_id, tok.token_id(language_token(tgt_code))]
        for _ in range(self.max_steps):
            check_cancelled(cancel_token)
            feeds = {
                "input_ids": np.array([sequence], dtype=np.int64),
                "encoder_hidden_states": hidden,
                "encoder_attention_mask": mask,
            }
            logits = self.decoder.run(self._filter_feeds(self.decoder, feeds))[0]
            next_token = int(np.asarray(logits)[0, -1, :].argmax())
            if next_token == eos or _is_loop(sequence, next_token):
                break
            sequence.append(next_token)

        generated = sequence[2:]
        if not generated:
            return ""
        decoded = tok.decode(generated).replace("<unk>", "")
        return _MULTI_SPACE_RE.sub(" ", decoded).strip()

    def translate(
        self,
        text: str,
        target: TranslationLanguage,
        source: OCRLanguage = OCRLanguage.AUTO,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        if not text or not text.strip():
            return text
        check_cancelled(cancel_token)
        try:
            self._ensure_loaded()
        except Exception as e:
            logger.error(f"seq2seq: load failed: {type(e).__name__}: {e}")
            return text

        start = time.perf_counter()
        cleaned = _MULTI_SPACE_RE.sub(" ", _UNK_IN_RE.sub(" ", text))
        tgt_code = _TARGET_CODES.get(target, "en")
        fixed_src = _SOURCE_CODES.get(source)
        src_is_cjk = fixed_src in {"ja", "ko", "zh"}

        out_lines: list[str] = []
        translated = 0
        for line in cleaned.split("\n"):
            line = line.rstrip("\r")
            if not line.strip():
                out_lines.append(line)
                continue
            if fixed_src is not None:
                has_cjk = contains_cjk(line)
                if src_is_cjk != has_cjk:
                    out_lines.append(line.strip())
                    continue
                src_code = fixed_src
            else:
                src_code = detect_script_language(line)
            if src_code == tgt_code:
                out_lines.append(line.strip())
                continue
            try:
                out_lines.append(self._translate_line(line.strip(), src_code, tgt_code, cancel_token))
                translated += 1
            except OperationAborted:
                raise
            except Exception as e:
                logger.error(f"seq2seq: line failed: {type(e).__name__}: {e}")
                out_lines.append(line.strip())

        self.last_metrics = {
            "lines": len(out_lines),
            "translated_lines": translated,
            "ms": (time.perf_counter() - start) * 1000,
        }
        return "\n".join(out_lines)


class LocalSeq2SeqBackend(TranslationBackend):
    """Dispatcher adapter running ``LocalSeq2SeqEngine`` in the default executor."""

    name = "local_seq2seq"
    supports_strict_retry = False
    uses_timeout_ladder = False

    def __init__(self, engine: Optional[LocalSeq2SeqEngine] = None, model_dir: Optional[str] = None):
        self.engine = engine or LocalSeq2SeqEngine(model_dir=model_dir)

    async def translate(self, request: TranslationRequest, timeout: Optional[float] = None) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            self.engine.translate,
            request.text,
            request.target_language,
            request.source_language,
            request.cancel_token,
        )

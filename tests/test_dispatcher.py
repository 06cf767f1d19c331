import asyncio

import pytest

from ocr_overlay.cancellation import CancellationToken
from ocr_overlay.errors import OperationAborted, TranslationBackendError
from ocr_overlay.models import EngineConfig, TranslationEngine, TranslationLanguage
from ocr_overlay.translation.base import STRICT_RETRY_SEED, TranslationBackend
from ocr_overlay.translation.dispatcher import DispatchState, TranslationDispatcher, build_backend
from ocr_overlay.translation.retry_policy import TimeoutLadder


class _DummyBackend(TranslationBackend):
    """Replays scripted responses: a string, an exception, or ("sleep", seconds)."""

    name = "dummy"

    def __init__(self, responses, strict_retry=True, ladder=True):
        self.responses = list(responses)
        self.requests = []
        self.timeouts = []
        self.supports_strict_retry = strict_retry
        self.uses_timeout_ladder = ladder

    async def translate(self, request, timeout=None):
        self.requests.append(request)
        self.timeouts.append(timeout)
        step = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, tuple):
            await asyncio.sleep(step[1])
            return "late"
        return step


def _dispatcher(backend):
    return TranslationDispatcher(
        backend_factory=lambda config: backend,
        ladder_factory=lambda slow: TimeoutLadder([0.2, 1.0]),
    )


EN = EngineConfig(target_language=TranslationLanguage.ENGLISH)
ZH_TW = EngineConfig(target_language=TranslationLanguage.TRADITIONAL_CHINESE)


@pytest.mark.asyncio
async def test_text_in_target_script_is_bypassed():
    backend = _DummyBackend(["never"])
    result = await _dispatcher(backend).translate("Hello World", EN)

    assert result.text == "Hello World"
    assert result.state == DispatchState.BYPASSED
    assert backend.requests == []


@pytest.mark.asyncio
async def test_accepted_translation():
    backend = _DummyBackend(["Save settings"])
    result = await _dispatcher(backend).translate("設定を保存", EN)

    assert result.text == "Save settings"
    assert result.state == DispatchState.ACCEPTED
    assert result.attempts == 1
    assert backend.timeouts == [0.2]


@pytest.mark.asyncio
async def test_first_timeout_then_longer_retry_succeeds():
    backend = _DummyBackend([("sleep", 12), "Save settings"])
    result = await _dispatcher(backend).translate("設定を保存", EN)

    assert result.text == "Save settings"
    assert result.state == DispatchState.ACCEPTED
    assert result.attempts == 2
    assert backend.timeouts == [0.2, 1.0]


@pytest.mark.asyncio
async def test_two_timeouts_return_source_text():
    backend = _DummyBackend([("sleep", 12)])
    result = await _dispatcher(backend).translate("設定を保存", EN)

    assert result.text == "設定を保存"
    assert result.state == DispatchState.TIMEOUT_FALLBACK
    assert result.attempts == 2


@pytest.mark.asyncio
async def test_backend_error_message_is_shown():
    backend = _DummyBackend([TranslationBackendError("Error: rate limited", status_code=429)])
    result = await _dispatcher(backend).translate("設定を保存", EN)

    assert result.text == "Error: rate limited"
    assert result.state == DispatchState.BACKEND_ERROR
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_rejected_result_gets_one_strict_retry():
    backend = _DummyBackend(["設定を保存", "Save settings"])
    result = await _dispatcher(backend).translate("設定を保存", EN)

    assert result.text == "Save settings"
    assert result.state == DispatchState.RETRY_ACCEPTED
    assert [r.strict for r in backend.requests] == [False, True]
    assert backend.requests[1].seed == STRICT_RETRY_SEED


@pytest.mark.asyncio
async def test_kana_leak_into_chinese_target_is_retried_then_falls_back():
    backend = _DummyBackend(["せっていをほぞん"])
    result = await _dispatcher(backend).translate("設定を保存", ZH_TW)

    assert len(backend.requests) == 2
    assert result.state == DispatchState.FALLBACK
    assert result.text == "設定を保存"


@pytest.mark.asyncio
async def test_unreadable_source_falls_back_to_placeholder():
    backend = _DummyBackend([""])
    result = await _dispatcher(backend).translate("\ufffd\ufffd <unk>", EN)

    assert result.state == DispatchState.FALLBACK
    assert result.text == "[unreadable]"
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_unexpected_backend_exception_degrades_to_fallback():
    backend = _DummyBackend([RuntimeError("boom")], strict_retry=False)
    result = await _dispatcher(backend).translate("設定を保存", EN)
    assert result.state == DispatchState.FALLBACK
    assert result.text == "設定を保存"


@pytest.mark.asyncio
async def test_backend_without_ladder_is_called_once_without_timeout():
    backend = _DummyBackend(["保存设置"], strict_retry=False, ladder=False)
    result = await _dispatcher(backend).translate("Save settings", ZH_TW)

    assert result.text == "保存设置"
    assert backend.timeouts == [None]


@pytest.mark.asyncio
async def test_cancelled_token_propagates_before_translation():
    token = CancellationToken()
    token.cancel()
    backend = _DummyBackend(["Save settings"])

    with pytest.raises(OperationAborted):
        await _dispatcher(backend).translate("設定を保存", EN, token)
    assert backend.requests == []


@pytest.mark.asyncio
async def test_cancel_during_call_propagates():
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.01, token.cancel)
    backend = _DummyBackend([("sleep", 12)])
    dispatcher = TranslationDispatcher(
        backend_factory=lambda config: backend,
        ladder_factory=lambda slow: TimeoutLadder([5.0, 5.0]),
    )

    with pytest.raises(OperationAborted):
        await dispatcher.translate("設定を保存", EN, token)


@pytest.mark.asyncio
async def test_backend_instances_are_reused_per_config():
    built = []

    def factory(config):
        backend = _DummyBackend(["Save settings"])
        built.append(backend)
        return backend

    dispatcher = TranslationDispatcher(backend_factory=factory)
    assert dispatcher.backend_for(EN) is dispatcher.backend_for(EN)
    dispatcher.backend_for(EN.model_copy(update={"ollama_model": "qwen2.5:7b"}))
    assert len(built) == 2
    await dispatcher.aclose()


def test_build_backend_selects_engine():
    from ocr_overlay.translation.cloud_backend import GeminiBackend
    from ocr_overlay.translation.local_seq2seq import LocalSeq2SeqBackend
    from ocr_overlay.translation.ollama_backend import OllamaBackend

    assert isinstance(build_backend(EngineConfig(engine=TranslationEngine.OLLAMA)), OllamaBackend)
    assert isinstance(
        build_backend(EngineConfig(engine=TranslationEngine.GEMINI, gemini_api_key="k")),
        GeminiBackend,
    )
    local = build_backend(EngineConfig(engine=TranslationEngine.LOCAL_SEQ2SEQ, nmt_model_dir="/nowhere"))
    assert isinstance(local, LocalSeq2SeqBackend)
    assert local.engine.model_dir == "/nowhere"


@pytest.mark.asyncio
async def test_auto_selected_slow_model_gets_slow_first_timeout():
    import httpx

    from ocr_overlay.translation.ollama_backend import OllamaBackend

    def handler(request):
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "qwen2.5:32b"}]})
        return httpx.Response(200, json={"response": "Save settings"})

    backend = OllamaBackend(
        api_url="http://localhost:11434",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    slow_flags = []

    def ladder_factory(slow):
        slow_flags.append(slow)
        return TimeoutLadder([0.2, 1.0])

    dispatcher = TranslationDispatcher(backend_factory=lambda config: backend, ladder_factory=ladder_factory)
    result = await dispatcher.translate("設定を保存", EN)

    assert result.text == "Save settings"
    assert slow_flags == [True]
    assert backend.model_name == "qwen2.5:32b"


@pytest.mark.asyncio
async def test_prepare_error_is_shown_without_calling_translate():
    class _NoModels(_DummyBackend):
        async def prepare(self):
            raise TranslationBackendError("Error: No Ollama models found. Please install one first.")

    backend = _NoModels(["never"])
    result = await _dispatcher(backend).translate("設定を保存", EN)

    assert result.state == DispatchState.BACKEND_ERROR
    assert result.text.startswith("Error: No Ollama models")
    assert backend.requests == []

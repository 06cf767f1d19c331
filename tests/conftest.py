import asyncio
import inspect

import pytest


@pytest.fixture(autouse=True)
def _reset_shared_caches():
    """Ensure module-level caches do not leak between tests."""
    from ocr_overlay.config import get_settings
    from ocr_overlay.translation import ollama_backend

    get_settings.cache_clear()
    ollama_backend.clear_model_cache()
    yield
    get_settings.cache_clear()
    ollama_backend.clear_model_cache()


def pytest_pyfunc_call(pyfuncitem):
    """Run async tests marked with pytest.mark.asyncio without external plugins."""
    if "asyncio" not in pyfuncitem.keywords:
        return None
    if not inspect.iscoroutinefunction(pyfuncitem.obj):
        return None
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        argnames = pyfuncitem._fixtureinfo.argnames
        kwargs = {name: pyfuncitem.funcargs[name] for name in argnames}
        loop.run_until_complete(pyfuncitem.obj(**kwargs))
    finally:
        loop.close()
        asyncio.set_event_loop(None)
    return True

"""Tests for taskana.core.llm — provider selection and tier routing."""

import pytest
from unittest.mock import AsyncMock, patch

from taskana.config import settings
from taskana.core import llm


@pytest.fixture(autouse=True)
def reset_provider():
    llm._provider_fn = None
    llm._models = {}
    llm._api_key = ""
    yield
    llm._provider_fn = None


class TestSelectProvider:
    def test_default_models(self):
        with patch.object(settings, "LLM_PROVIDER", "openai"), \
             patch.object(settings, "LLM_MODEL", ""), \
             patch.object(settings, "LLM_MODEL_CAPABLE", ""):
            fn, models, api_key = llm._select_provider()
        assert fn is llm._complete_openai
        assert models == {"fast": "gpt-4o-mini", "capable": "gpt-4o"}
        assert api_key == settings.LLM_API_KEY

    def test_model_overrides(self):
        with patch.object(settings, "LLM_PROVIDER", "anthropic"), \
             patch.object(settings, "LLM_MODEL", "small"), \
             patch.object(settings, "LLM_MODEL_CAPABLE", "large"):
            _, models, _ = llm._select_provider()
        assert models == {"fast": "small", "capable": "large"}

    def test_unknown_provider(self):
        with patch.object(settings, "LLM_PROVIDER", "mystery"):
            with pytest.raises(ValueError, match="mystery"):
                llm._select_provider()


class TestComplete:
    @pytest.mark.asyncio
    async def test_routes_tier_to_model(self):
        provider = AsyncMock(return_value='{"intent": "greeting"}')
        selected = (provider, {"fast": "f-model", "capable": "c-model"}, "key")
        with patch.object(llm, "_select_provider", return_value=selected):
            await llm.complete("sys", "hi", max_tokens=100)
            await llm.complete("sys", "hi", max_tokens=100, tier="capable")

        assert provider.await_args_list[0].args == ("key", "f-model", "sys", "hi", 100)
        assert provider.await_args_list[1].args == ("key", "c-model", "sys", "hi", 100)

    @pytest.mark.asyncio
    async def test_provider_selected_once(self):
        provider = AsyncMock(return_value="{}")
        selected = (provider, {"fast": "f", "capable": "c"}, "key")
        with patch.object(llm, "_select_provider", return_value=selected) as select:
            await llm.complete("sys", "a")
            await llm.complete("sys", "b")
        select.assert_called_once()

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        provider = AsyncMock(side_effect=RuntimeError("boom"))
        with patch.object(llm, "_select_provider", return_value=(provider, {"fast": "f"}, "k")):
            with pytest.raises(RuntimeError):
                await llm.complete("sys", "a")

import pytest

from feedback_encyclopedia.config import AIConfig
from feedback_encyclopedia.exceptions import RankerNotConfigured
from feedback_encyclopedia.llm_factory import LLMFactory


def test_unknown_provider():
    with pytest.raises(ValueError, match="Unknown provider"):
        LLMFactory.create(provider="bedrock", api_key="whatever-123")


@pytest.mark.parametrize("provider", ["gemini", "openrouter"])
def test_missing_key_is_not_configured(provider):
    with pytest.raises(RankerNotConfigured):
        LLMFactory.create(provider=provider)


def test_from_config_without_key():
    with pytest.raises(RankerNotConfigured, match="GEMINI_API_KEY"):
        LLMFactory.from_config(AIConfig(provider="gemini"))


def test_openrouter_model(monkeypatch):
    from langchain_openai import ChatOpenAI

    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test-key-123")
    llm = LLMFactory.from_config(AIConfig(provider="openrouter", model="some/model"))
    assert isinstance(llm, ChatOpenAI)
    assert llm.model_name == "some/model"


def test_defaults():
    assert LLMFactory.list_providers() == ["gemini", "openrouter", "ollama"]
    assert LLMFactory.get_default_model("gemini") == "gemini-2.0-flash"
    assert LLMFactory.get_default_model("unknown") == ""

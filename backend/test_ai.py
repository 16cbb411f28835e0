"""Gemini advisor fallbacks and caching (Gemini itself is never called)."""

import asyncio

import pytest

import ai
from config import EMPTY_SUMMARY, FALLBACK_SUGGESTION, FALLBACK_SUMMARY, GEMINI_KEY_STORAGE_KEY
from feeds import SEED_INCIDENTS
from store import MemoryStore

real_configure = ai._configure


@pytest.fixture(autouse=True)
def configured_keys(monkeypatch):
    keys = []
    monkeypatch.setattr(ai, "_configure", keys.append)
    return keys


@pytest.fixture
def advisor():
    return ai.RiskAdvisor(MemoryStore(), default_api_key="test-key")


def test_no_key_returns_fallbacks(monkeypatch, configured_keys):
    def boom(prompt):
        raise AssertionError("Gemini must not be called without a key")

    monkeypatch.setattr(ai, "_generate", boom)
    advisor = ai.RiskAdvisor(MemoryStore(), default_api_key="")
    assert advisor.enabled is False
    assert asyncio.run(advisor.suggest_action(SEED_INCIDENTS[0])) == (FALLBACK_SUGGESTION, False)
    assert asyncio.run(advisor.summarize(SEED_INCIDENTS)) == FALLBACK_SUMMARY
    assert configured_keys == []


def test_suggestion_strips_quotes(monkeypatch, advisor):
    monkeypatch.setattr(ai, "_generate", lambda prompt: '"강남역 일대를 우회하세요."\n')
    suggestion = asyncio.run(advisor.suggest_action(SEED_INCIDENTS[0]))
    assert suggestion.text == "강남역 일대를 우회하세요."
    assert suggestion.generated is True


def test_gemini_errors_fall_back(monkeypatch, advisor):
    def fail(prompt):
        raise RuntimeError("quota exceeded")

    monkeypatch.setattr(ai, "_generate", fail)
    suggestion = asyncio.run(advisor.suggest_action(SEED_INCIDENTS[0]))
    assert suggestion.text == FALLBACK_SUGGESTION
    assert suggestion.generated is False
    assert asyncio.run(advisor.summarize(SEED_INCIDENTS)) == FALLBACK_SUMMARY


def test_blank_model_output_is_not_generated(monkeypatch, advisor):
    monkeypatch.setattr(ai, "_generate", lambda prompt: ' "" ')
    assert asyncio.run(advisor.suggest_action(SEED_INCIDENTS[0])) == (FALLBACK_SUGGESTION, False)


def test_failed_suggestion_is_not_cached(monkeypatch, advisor):
    def fail(prompt):
        raise RuntimeError("down")

    monkeypatch.setattr(ai, "_generate", fail)
    asyncio.run(advisor.suggest_action(SEED_INCIDENTS[0]))

    monkeypatch.setattr(ai, "_generate", lambda prompt: "우회하세요")
    assert asyncio.run(advisor.suggest_action(SEED_INCIDENTS[0])) == ("우회하세요", True)


def test_empty_incident_list_needs_no_model(monkeypatch, advisor):
    monkeypatch.setattr(ai, "_generate", lambda prompt: "unused")
    assert asyncio.run(advisor.summarize([])) == EMPTY_SUMMARY


def test_summary_prompt_uses_first_five_incidents():
    prompt = ai.build_summary_prompt(SEED_INCIDENTS)
    assert "crime: 강남역 흉기 난동 발생 - 1명 부상, 용의자 검거 (강남역 2번 출구)" in prompt
    assert "2호선 신호 장애" not in prompt


def test_summary_is_cached(monkeypatch, advisor):
    calls = []

    def fake(prompt):
        calls.append(prompt)
        return " 강남역 주변에 주의가 필요합니다. "

    monkeypatch.setattr(ai, "_generate", fake)
    first = asyncio.run(advisor.summarize(SEED_INCIDENTS))
    second = asyncio.run(advisor.summarize(SEED_INCIDENTS))
    assert first == second == "강남역 주변에 주의가 필요합니다."
    assert len(calls) == 1


def test_advisors_do_not_share_caches(monkeypatch):
    replies = iter(["첫 번째 제안", "두 번째 제안", "첫 번째 요약", "두 번째 요약"])
    monkeypatch.setattr(ai, "_generate", lambda prompt: next(replies))
    first = ai.RiskAdvisor(MemoryStore(), default_api_key="key-a")
    second = ai.RiskAdvisor(MemoryStore(), default_api_key="key-b")

    assert asyncio.run(first.suggest_action(SEED_INCIDENTS[0])).text == "첫 번째 제안"
    assert asyncio.run(second.suggest_action(SEED_INCIDENTS[0])).text == "두 번째 제안"
    assert asyncio.run(first.summarize(SEED_INCIDENTS)) == "첫 번째 요약"
    assert asyncio.run(second.summarize(SEED_INCIDENTS)) == "두 번째 요약"


def test_runtime_key_overrides_config(monkeypatch, configured_keys):
    monkeypatch.setattr(ai, "_generate", lambda prompt: "조심하세요")
    store = MemoryStore()
    advisor = ai.RiskAdvisor(store, default_api_key="")
    advisor.set_api_key("  user-key ")
    assert store.get(GEMINI_KEY_STORAGE_KEY) == "user-key"
    assert asyncio.run(advisor.suggest_action(SEED_INCIDENTS[1])) == ("조심하세요", True)
    assert configured_keys == ["user-key"]


def test_set_api_key_clears_cached_answers(monkeypatch, advisor):
    replies = iter(["예전 제안", "새 제안"])
    monkeypatch.setattr(ai, "_generate", lambda prompt: next(replies))
    assert asyncio.run(advisor.suggest_action(SEED_INCIDENTS[0])).text == "예전 제안"
    advisor.set_api_key("other-key")
    assert asyncio.run(advisor.suggest_action(SEED_INCIDENTS[0])).text == "새 제안"


def test_configure_only_when_key_changes(monkeypatch):
    import google.generativeai as genai

    calls = []
    monkeypatch.setattr(genai, "configure", lambda api_key: calls.append(api_key))
    monkeypatch.setattr(ai, "_configured_key", None)

    real_configure("key-a")
    real_configure("key-a")
    real_configure("key-b")
    assert calls == ["key-a", "key-b"]

"""Safety Spotter Backend — Gemini risk summaries & action suggestions.

Both calls are best-effort: with no API key, or on any Gemini failure, a
fixed Korean fallback message is returned instead. Neither function raises.
"""

import asyncio
import logging
import threading
from typing import NamedTuple, Optional

from cachetools import LRUCache, TTLCache

from config import (
    GEMINI_API_KEY, GEMINI_MODEL, GEMINI_KEY_STORAGE_KEY,
    FALLBACK_SUGGESTION, FALLBACK_SUMMARY, EMPTY_SUMMARY,
)
from models import Incident
from store import KeyValueStore

logger = logging.getLogger("safety.ai")

SUMMARY_INCIDENT_LIMIT = 5

# genai.configure sets one key for the whole process
_CONFIGURE_LOCK = threading.Lock()
_configured_key: Optional[str] = None


class Suggestion(NamedTuple):
    text: str
    generated: bool  # False when text is the fallback message


def _configure(api_key: str) -> None:
    """Point the Gemini SDK at api_key; a no-op while the key is unchanged."""
    global _configured_key
    with _CONFIGURE_LOCK:
        if api_key == _configured_key:
            return
        import google.generativeai as genai
        genai.configure(api_key=api_key)
        _configured_key = api_key
    logger.info("Gemini client configured")


def _generate(prompt: str) -> str:
    """Blocking Gemini call; run via asyncio.to_thread after _configure."""
    import google.generativeai as genai
    model = genai.GenerativeModel(GEMINI_MODEL)
    result = model.generate_content(prompt)
    return result.text


def build_suggestion_prompt(incident: Incident) -> str:
    return f"""다음 사건 정보를 분석하고 시민에게 실용적인 행동 제안을 한 문장으로 제공해주세요:

사건 유형: {incident.type}
제목: {incident.title}
위치: {incident.location}
설명: {incident.description}
위험도: {incident.riskLevel}
출처: {incident.source}
제보 수: {incident.reportCount or 0}건

응답은 다음 형식으로 해주세요:
"[구체적인 행동 제안 한 문장]"

예시: "이 지역 우회를 권장하며, 가급적 대중교통을 이용하세요."
"""


def build_summary_prompt(incidents: list[Incident]) -> str:
    lines = "\n".join(
        f"{inc.type}: {inc.title} ({inc.location})"
        for inc in incidents[:SUMMARY_INCIDENT_LIMIT]
    )
    return f"""다음은 현재 지역의 주요 사건들입니다:

{lines}

이 정보를 바탕으로 현재 지역의 전체적인 안전 상황을 2-3문장으로 요약해주세요.
시민들이 알아야 할 주요 주의사항을 포함해주세요.
"""


class RiskAdvisor:
    """Gemini-backed advisor. The key comes from the store first, then config.

    Caches belong to the advisor, so advisors with different stores never
    answer from each other's results.
    """

    def __init__(
        self,
        store: KeyValueStore,
        default_api_key: str = GEMINI_API_KEY,
        summaries: Optional[TTLCache] = None,
    ):
        self._store = store
        self._default_api_key = default_api_key
        self._summaries = summaries if summaries is not None else TTLCache(maxsize=200, ttl=600)
        self._suggestions = LRUCache(maxsize=256)
        self._lock = threading.Lock()

    def api_key(self) -> str:
        return self._store.get(GEMINI_KEY_STORAGE_KEY) or self._default_api_key

    def set_api_key(self, api_key: str) -> None:
        self._store.set(GEMINI_KEY_STORAGE_KEY, api_key.strip())
        with self._lock:
            self._summaries.clear()
            self._suggestions.clear()
        logger.info("Gemini API key updated")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key())

    async def suggest_action(self, incident: Incident) -> Suggestion:
        """One-sentence action suggestion for a single incident."""
        api_key = self.api_key()
        if not api_key:
            return Suggestion(FALLBACK_SUGGESTION, generated=False)

        cache_key = (incident.id, incident.title, incident.riskLevel, incident.reportCount)
        with self._lock:
            if cache_key in self._suggestions:
                return Suggestion(self._suggestions[cache_key], generated=True)

        try:
            _configure(api_key)
            text = await asyncio.to_thread(_generate, build_suggestion_prompt(incident))
            suggestion = text.replace('"', "").strip()
        except Exception as e:
            logger.warning(f"Gemini suggestion failed for incident {incident.id}: {e}")
            return Suggestion(FALLBACK_SUGGESTION, generated=False)
        if not suggestion:
            return Suggestion(FALLBACK_SUGGESTION, generated=False)

        with self._lock:
            self._suggestions[cache_key] = suggestion
        return Suggestion(suggestion, generated=True)

    async def summarize(self, incidents: list[Incident]) -> str:
        """2-3 sentence safety summary of the first few incidents."""
        if not incidents:
            return EMPTY_SUMMARY
        api_key = self.api_key()
        if not api_key:
            return FALLBACK_SUMMARY

        cache_key = "summary:" + ",".join(i.id for i in incidents[:SUMMARY_INCIDENT_LIMIT])
        with self._lock:
            cached: Optional[str] = self._summaries.get(cache_key)
        if cached is not None:
            return cached

        try:
            _configure(api_key)
            text = await asyncio.to_thread(_generate, build_summary_prompt(incidents))
            summary = text.strip()
        except Exception as e:
            logger.warning(f"Gemini summary failed ({len(incidents)} incidents): {e}")
            return FALLBACK_SUMMARY
        if not summary:
            return FALLBACK_SUMMARY

        with self._lock:
            self._summaries[cache_key] = summary
        logger.info(f"Gemini summary generated for {min(len(incidents), SUMMARY_INCIDENT_LIMIT)} incidents")
        return summary

"""Safety Spotter Backend — Configuration & Constants"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root (one level up from backend/)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)

# ── API Keys ──
GOOGLE_MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY", "")
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "") or os.environ.get("VITE_GEMINI_API_KEY", "")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")

# ── Storage ──
# Empty path → settings live in memory for the lifetime of the process
SETTINGS_PATH = os.environ.get("SETTINGS_PATH", "")
LOCATIONS_STORAGE_KEY = "safety_spotter_locations"
GEMINI_KEY_STORAGE_KEY = "gemini_api_key"

# ── Limits ──
RATE_LIMIT = int(os.environ.get("RATE_LIMIT", "60"))  # requests per minute per IP
MAX_INTEREST_LOCATIONS = 3
MAX_USER_REPORTS = 1000
POSITION_TIMEOUT_SECONDS = 5.0

# ── Geo ──
EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = float(os.environ.get("DEFAULT_RADIUS_KM", "5.0"))
DEFAULT_CENTER = {"lat": 37.5665, "lng": 126.9780, "name": "서울시청"}

# Incident type → icon mapping (unknown types fall back to ⚠️)
ICON_MAP = {
    "crime": "🔪",
    "traffic": "🚗",
    "fire": "🔥",
    "flood": "🌊",
    "subway": "🚇",
    "disaster": "🌪",
    "other": "⚠️",
    "missing": "🧒",
}
FALLBACK_ICON = "⚠️"

# Risk level → marker colour
RISK_COLORS = {
    "critical": "#dc2626",
    "high": "#ea580c",
    "medium": "#ca8a04",
    "low": "#16a34a",
}
FALLBACK_COLOR = "#6b7280"
MISSING_COLOR = "#7c3aed"

# Ordinal weights used for area risk scores (0-10 scale)
RISK_WEIGHTS = {"low": 2.5, "medium": 5.0, "high": 7.5, "critical": 10.0}

EMERGENCY_NUMBERS = [
    {"number": "112", "label": "경찰 (Police)"},
    {"number": "119", "label": "소방·구급 (Fire & Ambulance)"},
]

# ── AI fallbacks ──
FALLBACK_SUGGESTION = "현재 상황을 주의 깊게 살펴보시고 안전한 경로를 이용하세요."
FALLBACK_SUMMARY = "현재 지역에서 여러 사건이 보고되고 있습니다. 외출 시 주의하시기 바랍니다."
EMPTY_SUMMARY = "현재 이 지역에 보고된 사건이 없습니다."

"""Safety Spotter Backend — Shared TTL caches"""

from cachetools import TTLCache

geocode_cache = TTLCache(maxsize=500, ttl=86400)   # 24 hours, addresses rarely move
summary_cache = TTLCache(maxsize=200, ttl=600)     # 10 min, AI area summaries of the served advisor

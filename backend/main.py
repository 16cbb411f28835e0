"""
Safety Spotter Backend — FastAPI
Modular entry point. All logic is split across:
  config.py, models.py, geo.py, geocoding.py, locations.py, store.py,
  feeds.py, ai.py, stats.py, position.py, cache.py, routes.py
"""

import logging

logging.basicConfig(level=logging.INFO)

# Import the FastAPI app from routes (this also builds the shared services)
from routes import app  # noqa: F401

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

"""
Entry point for the coursework API service.

Run with:
    uvicorn main:app --reload --port 8100
    python main.py
"""
import uvicorn

from config import get_settings
from coursework.api.main import app

settings = get_settings()

if __name__ == "__main__":
    uvicorn.run(
        "coursework.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )

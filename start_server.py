#!/usr/bin/env python3
"""
Startup script for the Listing Autofill Server
"""
import sys
from pathlib import Path

# Add current directory to Python path
sys.path.insert(0, str(Path(__file__).parent))

from autofill.gazetteer import GazetteerLoadError, get_gazetteer
from config import settings
import uvicorn


def check_reference_data() -> bool:
    """Make sure the gazetteer loads before binding the port"""
    print("[INIT] Loading gazetteer...")
    try:
        gazetteer = get_gazetteer()
    except GazetteerLoadError as e:
        print(f"[ERROR] {e}")
        return False
    print(f"[OK] Gazetteer loaded from {gazetteer.data_dir}")
    return True


def main():
    if not check_reference_data():
        sys.exit(1)

    if not settings.OPENAI_API_KEY:
        print("[WARNING] OPENAI_API_KEY not set - LLM enrichment disabled")

    print(f"[START] Listening on {settings.API_HOST}:{settings.PORT}")
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Run script for the Audio Guide service
"""
import uvicorn

from audioguide.config.settings import settings
from audioguide.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, reload=settings.debug)

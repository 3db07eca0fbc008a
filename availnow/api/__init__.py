"""
AvailNow HTTP API

Usage:
    uvicorn availnow.api.main:create_app --factory --host 127.0.0.1 --port 8000
"""

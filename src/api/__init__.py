"""
FastAPI alert engine service.

Provides REST API for alert evaluation with:
- POST /admin/alerts/evaluate - Manual evaluation run
- GET /admin/alerts/events - Event history
- GET|POST /cron/evaluate-alerts - Scheduled evaluation run
- GET /health - Service health check
"""

from src.api.app import create_app

__all__ = ["create_app"]

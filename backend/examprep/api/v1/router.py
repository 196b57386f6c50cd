"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from examprep.api.v1.endpoints import health, question_attempts, test_configuration, test_sessions

api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(test_configuration.router, prefix="", tags=["Test Configuration"])
api_router.include_router(test_sessions.router, prefix="/test-sessions", tags=["Test Sessions"])
api_router.include_router(
    question_attempts.router, prefix="/question-attempts", tags=["Question Attempts"]
)

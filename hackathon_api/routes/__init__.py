"""
hackathon_api/routes/__init__.py
Route registration; main.py mounts `router` under /api
"""
from fastapi import APIRouter

from hackathon_api.routes import (
    announcements, auth, certificates, chat, enrollments, events, submissions, teams, users
)

router = APIRouter()

router.include_router(auth.router)
router.include_router(users.router)
router.include_router(events.router)
router.include_router(enrollments.router)
router.include_router(teams.router)

# Document-backed resources
router.include_router(submissions.router)
router.include_router(announcements.router)
router.include_router(certificates.router)
router.include_router(chat.router)

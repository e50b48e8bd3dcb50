"""
API v1 routes.
"""

from fastapi import APIRouter

from src.api.v1 import lectures, prerequisites, progress, student

router = APIRouter()

router.include_router(lectures.router, prefix="/lectures", tags=["Lectures"])
router.include_router(prerequisites.router, prefix="/prerequisites", tags=["Prerequisites"])
router.include_router(student.router, prefix="/student", tags=["Student"])
router.include_router(progress.router, prefix="/progress", tags=["Progress"])

from fastapi import APIRouter

from app.features.audits.routes.tasks import router as tasks_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(tasks_router)

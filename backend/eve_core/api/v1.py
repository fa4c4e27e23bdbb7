# eve_core/api/v1.py
from fastapi import APIRouter

from eve_core.api.endpoints import status
from eve_core.modules.collaboration.routers import router as collaboration_router
from eve_core.modules.intelligence.routers import router as intelligence_router
from eve_core.modules.memory.routers import router as memory_router
from eve_core.modules.tasks.routers import router as tasks_router
from eve_core.modules.voice.routers import router as voice_router

api_router = APIRouter()

api_router.include_router(status.router)
api_router.include_router(collaboration_router)
api_router.include_router(tasks_router)
api_router.include_router(memory_router)
api_router.include_router(intelligence_router)
api_router.include_router(voice_router)

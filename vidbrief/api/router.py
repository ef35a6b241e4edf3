from fastapi import APIRouter

from vidbrief.api.endpoints import notifications, uploads, videos

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(uploads.router)
api_router.include_router(notifications.router)
api_router.include_router(videos.router)

from fastapi import APIRouter
from streamit.modules.realtime.router import router as realtime_router
from streamit.modules.videos.router import router as videos_router

api_router = APIRouter()
# realtime first: "/videos/events" must win over "/videos/{video_id}"
api_router.include_router(realtime_router, prefix="/videos", tags=["realtime"])
api_router.include_router(videos_router, prefix="/videos", tags=["videos"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}

from fastapi import APIRouter

from src.api.routes.messages import router as messages_router
from src.api.routes.ops import router as ops_router
from src.api.routes.webhooks import router as webhooks_router

api_router = APIRouter()
api_router.include_router(webhooks_router, prefix="/api", tags=["webhooks"])
api_router.include_router(messages_router, prefix="/api", tags=["messages"])
api_router.include_router(ops_router, prefix="/ops", tags=["ops"])

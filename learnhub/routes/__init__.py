from fastapi import APIRouter

from learnhub.routes import products, users, videos

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(users.router)
api_router.include_router(videos.router)
api_router.include_router(products.router)

from fastapi import APIRouter

from .endpoints import aggregate, entities, health, leaderboard

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(entities.router)
api_router.include_router(aggregate.router)
api_router.include_router(leaderboard.router)

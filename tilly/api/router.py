from fastapi import APIRouter

from tilly.api.push import router as push_router

api_router = APIRouter()

# Scheduler-facing push routes at /push/*
api_router.include_router(push_router, prefix="/push", tags=["push"])

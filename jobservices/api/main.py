from fastapi import APIRouter

from jobservices.jobs.api.router import router as jobs_router
from . import debug
from . import health

api_router = APIRouter()

api_router.include_router(jobs_router)
api_router.include_router(debug.router)
api_router.include_router(health.router)

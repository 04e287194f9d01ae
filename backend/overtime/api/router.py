from fastapi import APIRouter

from overtime.api.config import config_router
from overtime.api.employees import employees_router
from overtime.api.orders import orders_router
from overtime.api.quota import quota_router
from overtime.api.submissions import submissions_router

api_router = APIRouter()
api_router.include_router(orders_router)
api_router.include_router(submissions_router)
api_router.include_router(quota_router)
api_router.include_router(config_router)
api_router.include_router(employees_router)

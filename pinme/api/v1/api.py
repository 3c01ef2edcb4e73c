from fastapi import APIRouter
from pinme.api.v1.endpoints import reminder_settings, reminders, notifications, toys

api_router = APIRouter()
api_router.include_router(reminder_settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(reminders.router, prefix="/reminders", tags=["reminders"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(toys.router, prefix="/toys", tags=["toys"])

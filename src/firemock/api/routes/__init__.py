from fastapi import APIRouter

from firemock.api.routes.accounts import router as accounts_router
from firemock.api.routes.documents import router as documents_router
from firemock.api.routes.emulator import accounts_router as accounts_reset_router
from firemock.api.routes.emulator import router as emulator_router
from firemock.api.routes.healthz import router as healthz_router

api_router = APIRouter()
api_router.include_router(healthz_router)
api_router.include_router(emulator_router)
api_router.include_router(documents_router)

auth_router = APIRouter()
auth_router.include_router(healthz_router)
auth_router.include_router(accounts_reset_router)
auth_router.include_router(accounts_router)

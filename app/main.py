import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from app.core.config import settings
from app.core.permissions import AllowListPolicy
from app.modules.moderation.enforcement import EnforcementDispatcher

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# Admin allow-list is fixed for the life of the process
app.state.authorization_policy = AllowListPolicy.from_settings(settings)
# Executors for enforcement side effects register on this at startup
app.state.enforcement_dispatcher = EnforcementDispatcher()

from app.modules.worker.runner import worker
from app.modules.moderation import ingress

ingress.register(worker)

@app.on_event("startup")
async def startup_event():
    await worker.start()

@app.on_event("shutdown")
async def shutdown_event():
    await worker.stop()

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed or missing fields are a plain 400 across the API
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

@app.get("/")
def root():
    return {"message": "Campus moderation API", "docs": "/docs"}

from app.modules.moderation.router import router as moderation_router

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from app.core.middleware import ContentScanMiddleware
app.add_middleware(ContentScanMiddleware, worker=worker, enabled=settings.MODERATION_SCAN_ENABLED)

app.include_router(moderation_router, prefix=f"{settings.API_V1_STR}/moderation", tags=["moderation"])

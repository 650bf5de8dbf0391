import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from mastersapi.config import config
from mastersapi.database import database
from mastersapi.logging_conf import configure_logging
from mastersapi.routers.user import router as user_router
from mastersapi.routers.users import router as users_router
from mastersapi.routers.form import router as form_router
from mastersapi.routers.master import router as master_router
from mastersapi.routers.lookup import router as lookup_router
from mastersapi.routers.picklist import router as picklist_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting Masters Dashboard API")
    # connect database
    await database.connect()
    yield
    # disconnect database
    await database.disconnect()

app = FastAPI(
    title="Masters Dashboard API",
    description="Metadata-driven CRUD screens for master data",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(user_router, prefix="/api/user", tags=["User"])
app.include_router(users_router, prefix="/api/users", tags=["Users"])
app.include_router(form_router, prefix="/api/forms", tags=["Forms"])
app.include_router(master_router, prefix="/api/masters", tags=["Masters"])
app.include_router(lookup_router, prefix="/api/lookup", tags=["Lookup"])
app.include_router(picklist_router, prefix="/api/picklists", tags=["Picklists"])


@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}

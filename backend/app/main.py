# Centro Lúdico backend entrypoint.

import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.api import activities
from backend.app.api import admin_users
from backend.app.api import attendance
from backend.app.api import calendar
from backend.app.api import chat
from backend.app.api import files
from backend.app.api import groups
from backend.app.api import login
from backend.app.api import media
from backend.app.api import profile
from backend.app.api import register
from backend.app.api import students
from backend.app.api import teachers
from backend.app.api.auth.router import router as auth_router
from backend.app.core.dev_seed import ensure_default_dev_admin
from backend.app.core.logging_config import configure_logging
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.services.storage import LocalStorageService, get_storage

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Centro Lúdico API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(register.router)
app.include_router(login.router)
app.include_router(profile.router)
app.include_router(admin_users.router)
app.include_router(students.router)
app.include_router(groups.router)
app.include_router(teachers.router)
app.include_router(activities.router)
app.include_router(attendance.router)
app.include_router(chat.router)
app.include_router(calendar.router)
app.include_router(media.router)
app.include_router(files.router)


@app.get("/")
def read_root():
    return {"app": "Centro Lúdico backend", "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok", "environment": settings.environment, "timestamp": utc_now().isoformat()}


@app.get("/health/storage")
def storage_health(storage: LocalStorageService = Depends(get_storage)):
    return storage.health_check()


@app.on_event("startup")
def prepare_database():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_default_dev_admin(db)
    finally:
        db.close()
    logger.info("Centro Lúdico API started (%s)", settings.environment)

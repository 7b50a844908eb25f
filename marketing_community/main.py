"""Main FastAPI application entry point."""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketing_community.api.routes import router
from marketing_community.database import Base, SessionLocal, engine
# Import models to register them with SQLAlchemy Base
from marketing_community.models.audit import AuditLog
from marketing_community.models.domain import Activity, Notification, User
from marketing_community.models.permissions import Permission, Role, RolePermission, UserRole
from marketing_community.services.permissions import PermissionsService
from marketing_community.settings import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", "module": "%(name)s"}',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed the permission catalog on startup."""
    logger.info("Starting marketing community API...")
    Base.metadata.create_all(bind=engine)

    if settings.seed_permissions_on_startup:
        db = SessionLocal()
        try:
            PermissionsService(db).initialize_permissions()
        finally:
            db.close()

    yield
    logger.info("Shutting down marketing community API...")


# Create FastAPI app
app = FastAPI(
    title="Marketing Community API",
    description="Points ledger, role-based permissions and audit trail for the marketing community.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api", tags=["community"])


# Health check
@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Marketing Community API"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

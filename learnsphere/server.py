from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from learnsphere.config import settings
from learnsphere.db.database import close_db, init_db
from learnsphere.errors import register_error_handlers
from learnsphere.middleware.auth import AuthMiddleware
from learnsphere.services.roles import RoleHierarchy

# CORS: CORS_ORIGINS setting (comma-separated) or local dev defaults.
if settings.cors_origins:
    _allowed_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
else:
    _allowed_origins = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(title="LearnSphere API", lifespan=lifespan)
app.state.role_hierarchy = RoleHierarchy()

app.add_middleware(AuthMiddleware)
# Outermost, so 401s from the auth gate carry CORS headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
register_error_handlers(app)

# Import and register routes
from learnsphere.routes.auth import router as auth_router
from learnsphere.routes.courses import router as courses_router
from learnsphere.routes.lessons import router as lessons_router
from learnsphere.routes.quiz import router as quiz_router
from learnsphere.routes.ai import router as ai_router
from learnsphere.routes.reports import router as reports_router

app.include_router(auth_router)
app.include_router(courses_router)
app.include_router(lessons_router)
app.include_router(quiz_router)
app.include_router(ai_router)
app.include_router(reports_router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from planner_micro.config import config
from planner_micro.db.connection import get_store
from planner_micro.Endpoints import admin, ai, auth, calendar, community, grades, notifications, schedule, teacher
from planner_micro.services.catalog_service import ensure_seed_data
from planner_micro.services.notification_poller import notification_poller
from planner_micro.services.session_context import session_registry

# Logger setup
logger = logging.getLogger("planner.main")
logging.basicConfig(level=logging.INFO)

app = FastAPI(
    title="Planner API",
    description="Schedule sync, notifications and admin console for the school planner",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
    allow_headers=["Accept", "Content-Type", "Authorization", "X-Requested-With", "Origin"],
)


@app.on_event("startup")
async def startup_event():
    store = get_store()
    if store.ensure_schema():
        logger.info("Key-value table ensured")
    if store.check_connection():
        logger.info("Record store connected")
    else:
        logger.warning("Record store offline, serving from the local cache")

    seeded = ensure_seed_data(store)
    if any(seeded.values()):
        logger.info(f"Seeded defaults: {[name for name, done in seeded.items() if done]}")

    if config.POLLER_ENABLED and notification_poller.start():
        logger.info("Notification poller running")


@app.on_event("shutdown")
async def shutdown_event():
    session_registry.clear()
    notification_poller.shutdown()


# Include routers
app.include_router(auth.router)
app.include_router(schedule.router, prefix="/schedule")
app.include_router(notifications.router, prefix="/notifications")
app.include_router(admin.router, prefix="/admin")
app.include_router(community.router, prefix="/community")
app.include_router(calendar.router, prefix="/calendar")
app.include_router(teacher.router, prefix="/teacher")
app.include_router(grades.router, prefix="/grades")
app.include_router(ai.router, prefix="/ai")


@app.get("/")
def root():
    return {"message": "Welcome to the Planner API"}


@app.get("/health")
def health_check():
    """Health check with record store status"""
    store = get_store()
    store.check_connection()
    return {
        "status": "healthy",
        "store": store.status(),
        "sessions": len(session_registry.active_sessions()),
        "poller": notification_poller.running,
    }

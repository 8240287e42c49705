import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.admin.course_points_router import router as course_points_router
from app.admin.router import router as admin_router, public_router as content_router
from app.auth.router import router as auth_router
from app.config import CORS_ALLOWED_ORIGINS, LOG_LEVEL, VERSION
from app.courses.course_router import router as course_router
from app.courses.enrollment_router import router as enrollment_router
from app.courses.quiz_router import router as quiz_router
from app.database import create_indexes, db
from app.gamification.achievements import seed_achievements
from app.gamification.cron_router import router as cron_router
from app.gamification.leaderboard_router import router as leaderboard_router
from app.gamification.points_router import router as points_router
from app.gamification.ranks import seed_rank_configurations
from app.notifications.router import router as notifications_router
from app.users.router import router as users_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Academy Backend", version=VERSION)


@app.on_event("startup")
async def startup_event():
    await create_indexes(db)
    await seed_rank_configurations(db)
    await seed_achievements(db)
    logger.info("Academy backend %s started", VERSION)


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ROUTER REGISTRATION ====================
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(enrollment_router)
app.include_router(quiz_router)
app.include_router(course_router)
app.include_router(points_router)
app.include_router(leaderboard_router)
app.include_router(notifications_router)
app.include_router(cron_router)
app.include_router(course_points_router)
app.include_router(admin_router)
app.include_router(content_router)
# ============================================================


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/version")
def version():
    return {"version": VERSION}

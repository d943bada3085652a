from contextlib import asynccontextmanager
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from eduos.config import settings
from eduos.database import init_db
from eduos.core.utils.logger import setup_logging
from eduos.core.utils.customize_response import register_exception_handlers
from eduos.core.utils.face_matcher import get_face_matcher

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.uses_default_secret:
        logger.warning("SECRET_KEY is not set; using the development signing secret")
    get_face_matcher()
    init_db()
    logger.info("EduOS API started")
    yield


app = FastAPI(title="EduOS API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

register_exception_handlers(app)

from eduos.endpoints.auth.login import router as login_router
app.include_router(login_router)

from eduos.endpoints.auth.password import router as password_router
app.include_router(password_router)

from eduos.endpoints.api.v1.student import router as student_router
app.include_router(student_router)

from eduos.endpoints.api.v1.teacher import router as teacher_router
app.include_router(teacher_router)

from eduos.endpoints.api.v1.doctor import router as doctor_router
app.include_router(doctor_router)

from eduos.endpoints.api.v1.admin import router as admin_router
app.include_router(admin_router)


@app.get("/api/health")
def health_check():
    return {"status": "OK", "message": "EduOS API is running"}


def run():
    uvicorn.run("eduos.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()

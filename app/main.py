import logging
import secrets
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from app.config import CORS_ORIGINS, SCHEDULER_ENABLED, VERSION
from app.logging_config import setup_logging, bind_context, clear_context
from app.database_setup import create_indexes
from app.attendance.attendance_cron import start_scheduler, stop_scheduler
from app.auth.auth_router import router as auth_router
from app.classrooms.classroom_router import router as classroom_router
from app.teachers.teacher_router import router as teacher_router
from app.students.student_router import router as student_router
from app.attendance.attendance_router import router as attendance_router
from app.attendance.admin_attendance_router import router as admin_attendance_router
from app.payroll.payroll_router import router as payroll_router
from app.admin.admin_router import router as admin_router
from app.certificates.certificate_router import router as certificate_router
from app.courses.course_router import router as course_router
from app.public.public_router import router as public_router
from app.system.health_router import router as health_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Learning Management System API", version=VERSION)


@app.on_event("startup")
async def startup_event():
    await create_indexes()
    if SCHEDULER_ENABLED:
        start_scheduler()
    logger.info("LMS API %s started", VERSION)


@app.on_event("shutdown")
async def shutdown_event():
    stop_scheduler()


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or secrets.token_hex(8)
    bind_context(request_id=request_id, path=request.url.path, method=request.method)
    try:
        response = await call_next(request)
    finally:
        clear_context()
    response.headers["x-request-id"] = request_id
    return response


# ==================== ROUTER REGISTRATION ====================
app.include_router(auth_router)
app.include_router(classroom_router)
app.include_router(teacher_router)
app.include_router(student_router)
app.include_router(attendance_router)
app.include_router(admin_attendance_router)
app.include_router(payroll_router)
app.include_router(admin_router)
app.include_router(certificate_router)
app.include_router(course_router)
app.include_router(public_router)
app.include_router(health_router)
# ============================================================

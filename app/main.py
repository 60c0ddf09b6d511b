import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.attendance.router import router as attendance_router
from app.api.v1.class_assignments.router import router as class_assignments_router
from app.api.v1.faculty.router import router as faculty_router
from app.core.config import settings
from app.core.notifier import AttendanceNotifier


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Attendance Ledger")

    # Process-local registry of connected student streams
    app.state.notifier = AttendanceNotifier(settings.notify_queue_size)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(attendance_router)
    app.include_router(class_assignments_router)
    app.include_router(faculty_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

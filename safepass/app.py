# ============================================================
# SAFEPASS  —  campus & classroom monitoring API
# FastAPI  •  Supabase / Firebase partition store  •  Redis
# JWT admin auth  •  live dashboard tabs over WebSocket
# ============================================================
#
#  uvicorn --factory safepass.app:create_app
#
#  POST /auth/signup  /auth/login  /auth/logout   GET /auth/me
#  GET  /students  /campus-logs  /attendance
#  GET  /dashboard/stats  /campus  /classroom  /tabs/{tab}
#  WS   /ws/dashboard  /ws/tabs/{tab}   ?token=...&date=YYYY-MM-DD
# ============================================================

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Form, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm

from safepass.auth import AuthError, AuthService
from safepass.cache import KeyCache
from safepass.config import Settings, configure_logging
from safepass.models import (
    AdminUser,
    AttendanceRecord,
    CampusEvent,
    CampusView,
    ClassroomView,
    DashboardStats,
    Student,
)
from safepass.service import LIVE_TAB_COMMANDS, AttendanceService
from safepass.store import BaseStore, create_store

logger = logging.getLogger(__name__)

router = APIRouter()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

STATUS_BY_CODE = {
    "auth/user-not-found":         401,
    "auth/wrong-password":         401,
    "auth/invalid-credential":     401,
    "auth/user-token-expired":     401,
    "auth/too-many-requests":      429,
    "auth/network-request-failed": 503,
}


# ================================================================
# DEPENDENCIES
# ================================================================

def get_attendance_service(request: Request) -> AttendanceService:
    return request.app.state.attendance


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def require_admin(
    token: str = Depends(oauth2_scheme),
    auth: AuthService = Depends(get_auth_service),
) -> AdminUser:
    return auth.current_user(token)


def partition_date(
    date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    service: AttendanceService = Depends(get_attendance_service),
) -> str:
    try:
        return service.partition_date(date)
    except ValueError as e:
        raise HTTPException(422, str(e))


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    status = STATUS_BY_CODE.get(exc.code, 400)
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    return JSONResponse(
        status_code=status,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


# ================================================================
# AUTH ENDPOINTS
# ================================================================

@router.post("/auth/signup", status_code=201)
def signup(
    full_name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    confirm_password: Optional[str] = Form(None),
    auth: AuthService = Depends(get_auth_service),
) -> AdminUser:
    return auth.signup(full_name, email, password, confirm_password)


@router.post("/auth/login")
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    auth: AuthService = Depends(get_auth_service),
):
    user, token = auth.login(form_data.username, form_data.password)
    return {
        "access_token": token,
        "token_type":   "bearer",
        "user":         user.model_dump(by_alias=True),
    }


@router.post("/auth/logout")
def logout(
    token: str = Depends(oauth2_scheme),
    auth: AuthService = Depends(get_auth_service),
):
    auth.logout(token)
    return {"status": "signed_out"}


@router.get("/auth/me")
def me(admin: AdminUser = Depends(require_admin)) -> AdminUser:
    return admin


# ================================================================
# DASHBOARD DATA  (admin only)
# ================================================================

@router.get("/students")
def list_students(
    admin: AdminUser = Depends(require_admin),
    service: AttendanceService = Depends(get_attendance_service),
) -> List[Student]:
    return service.get_students()


@router.get("/campus-logs")
def campus_logs(
    date: str = Depends(partition_date),
    admin: AdminUser = Depends(require_admin),
    service: AttendanceService = Depends(get_attendance_service),
) -> List[CampusEvent]:
    return service.get_campus_logs(date)


@router.get("/attendance")
def attendance(
    date: str = Depends(partition_date),
    admin: AdminUser = Depends(require_admin),
    service: AttendanceService = Depends(get_attendance_service),
) -> List[AttendanceRecord]:
    return service.get_attendance(date)


@router.get("/dashboard/stats")
def dashboard_stats(
    date: str = Depends(partition_date),
    admin: AdminUser = Depends(require_admin),
    service: AttendanceService = Depends(get_attendance_service),
) -> DashboardStats:
    return service.get_dashboard_stats(date)


@router.get("/campus")
def campus(
    date: str = Depends(partition_date),
    admin: AdminUser = Depends(require_admin),
    service: AttendanceService = Depends(get_attendance_service),
) -> CampusView:
    return service.get_campus_data(date)


@router.get("/classroom")
def classroom(
    date: str = Depends(partition_date),
    admin: AdminUser = Depends(require_admin),
    service: AttendanceService = Depends(get_attendance_service),
) -> ClassroomView:
    return service.get_classroom_data(date)


@router.get("/tabs/{tab}")
def tab_data(
    tab: str,
    date: str = Depends(partition_date),
    admin: AdminUser = Depends(require_admin),
    service: AttendanceService = Depends(get_attendance_service),
):
    try:
        view = service.load_tab(tab, date)
    except KeyError:
        raise HTTPException(404, f"Unknown tab {tab!r}")
    return {"tab": tab, "date": date, "data": view.model_dump(by_alias=True)}


# ================================================================
# LIVE VIEWS
# ================================================================

async def _stream(websocket: WebSocket, token: str, date: Optional[str], tab: str) -> None:
    auth: AuthService = websocket.app.state.auth
    service: AttendanceService = websocket.app.state.attendance
    try:
        admin = auth.current_user(token)
        partition = service.partition_date(date)
    except (AuthError, ValueError) as e:
        await websocket.close(code=1008, reason=str(e))
        return
    if tab not in LIVE_TAB_COMMANDS:
        await websocket.close(code=1008, reason=f"Unknown tab {tab!r}")
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # store listeners may fire on their own threads
    subscription = service.listen_tab(
        tab, partition, lambda view: loop.call_soon_threadsafe(queue.put_nowait, view),
    )

    async def pump():
        while True:
            view = await queue.get()
            await websocket.send_json(view.model_dump(by_alias=True))

    sender = asyncio.create_task(pump())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("%s socket for %s closed (%s)", tab, admin.uid, partition)
    finally:
        subscription.close()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await sender


@router.websocket("/ws/dashboard")
async def dashboard_socket(websocket: WebSocket, token: str = "", date: Optional[str] = None):
    await _stream(websocket, token, date, "home")


@router.websocket("/ws/tabs/{tab}")
async def tab_socket(websocket: WebSocket, tab: str, token: str = "", date: Optional[str] = None):
    await _stream(websocket, token, date, tab)


# ================================================================
# APP
# ================================================================

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[BaseStore] = None,
    cache: Optional[KeyCache] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings)

    store = store if store is not None else create_store(settings)
    cache = cache if cache is not None else KeyCache.from_settings(settings)

    app = FastAPI(title="SafePass — campus & classroom monitoring")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.attendance = AttendanceService(store, settings)
    app.state.auth = AuthService(store, cache, settings)
    app.add_exception_handler(AuthError, auth_error_handler)
    app.include_router(router)

    logger.info("SafePass ready (store=%s, tz=%s)", settings.store_backend, settings.timezone)
    return app

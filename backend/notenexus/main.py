"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the NoteNexus backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Domain errors raised by services
are mapped to status codes by a single exception handler.

Endpoints implemented (all under /api):
- POST /auth/register, POST /auth/login, GET /auth/user
- GET /saved, GET /saved/courses, POST /saved/course, DELETE /saved/course/{id}
- GET /saved/notes, POST /saved/note, DELETE /saved/note/{id}
- GET /saved/syllabus, POST /saved/syllabus, DELETE /saved/syllabus/{id}
- GET /saved/papers, POST /saved/paper, DELETE /saved/paper/{id}
- GET /courses, GET /course/{course_name}
- GET /admin/users, POST /admin/users, GET /admin/users/{id},
  PUT /admin/users/{id}, DELETE /admin/users/{id}, POST /admin/clear-data,
  GET /admin/stats, GET /admin/backup
"""

from contextlib import asynccontextmanager
import json
import logging
import time
import uuid

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from . import services
from .auth import get_admin_user, get_current_user
from .config import settings
from .database import create_backend
from .errors import SavedContentError
from .repositories import UserRepository
from .schemas import (
    AdminUserIn,
    AdminUserUpdate,
    CourseIn,
    LeafIn,
    LoginIn,
    RegisterIn,
    TokenOut,
    UserRecord,
)
from .utils import catalog

logger = logging.getLogger("notenexus.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the user table at startup and close it at shutdown."""
    cfg = app.state.settings
    users = UserRepository(create_backend(cfg)).open()
    app.state.users = users
    app.state.store = services.SavedContentStore(users)
    app.state.auth = services.AuthService(users, cfg)
    app.state.admin = services.AdminService(users, app.state.store)
    if cfg.ADMIN_EMAIL:
        app.state.auth.ensure_admin(cfg.ADMIN_EMAIL, cfg.ADMIN_PASSWORD)
    logger.info("storage ready: %s backend at %s (%d users)", cfg.STORAGE_BACKEND, cfg.DB_PATH, len(users))
    try:
        yield
    finally:
        users.close()
        logger.info("storage closed")


app = FastAPI(title="NoteNexus API", lifespan=lifespan)
app.state.settings = settings

# Wide-open CORS keeps the static browser pages working from file:// or another port in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api"):
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
    return response


@app.exception_handler(SavedContentError)
async def saved_content_error_handler(request: Request, exc: SavedContentError):
    if exc.status_code >= 500:
        logger.error("storage failure on %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": "Server error"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def get_store(request: Request) -> services.SavedContentStore:
    return request.app.state.store


def get_auth_service(request: Request) -> services.AuthService:
    return request.app.state.auth


def get_admin_service(request: Request) -> services.AdminService:
    return request.app.state.admin


auth_router = APIRouter(prefix="/api/auth", tags=["auth"])
saved_router = APIRouter(prefix="/api/saved", tags=["saved"])
admin_router = APIRouter(prefix="/api/admin", tags=["admin"])
catalog_router = APIRouter(prefix="/api", tags=["catalog"])


@auth_router.post('/register', response_model=TokenOut)
def register(payload: RegisterIn, auth: services.AuthService = Depends(get_auth_service)):
    """Register a new user and return a token for the new account.

    A second registration with the same email fails with 400.
    """
    user = auth.register(payload.name, payload.email, payload.password)
    return {'token': auth.issue_token(user)}


@auth_router.post('/login', response_model=TokenOut)
def login(payload: LoginIn, auth: services.AuthService = Depends(get_auth_service)):
    """Authenticate a user and return a signed JWT token."""
    token = auth.authenticate(payload.email, payload.password)
    if not token:
        raise HTTPException(status_code=400, detail='Invalid credentials')
    return {'token': token}


@auth_router.get('/user')
def current_user(user: UserRecord = Depends(get_current_user)):
    """Return the authenticated user's record without the password hash."""
    return user.public()


def _dump(items):
    return [i.model_dump(by_alias=True, mode="json") for i in items]


@saved_router.get('')
def list_saved(user: UserRecord = Depends(get_current_user), store: services.SavedContentStore = Depends(get_store)):
    """Return all four saved collections for the authenticated user."""
    saved = store.list_all(user.id)
    return {key: _dump(items) for key, items in saved.items()}


@saved_router.get('/courses')
def list_saved_courses(user: UserRecord = Depends(get_current_user), store: services.SavedContentStore = Depends(get_store)):
    return _dump(store.list_courses(user.id))


@saved_router.post('/course')
def save_course(payload: CourseIn, user: UserRecord = Depends(get_current_user), store: services.SavedContentStore = Depends(get_store)):
    """Save a course directly; fails with 400 if it is already saved."""
    return _dump(store.save_course(user.id, payload.course_name, payload.course_id))


@saved_router.delete('/course/{course_id}')
def remove_course(course_id: str, user: UserRecord = Depends(get_current_user), store: services.SavedContentStore = Depends(get_store)):
    """Remove a saved course. Notes, syllabi and papers saved under it are kept."""
    return _dump(store.remove_course(user.id, course_id))


def _leaf_routes(kind: str, singular: str, plural: str):
    """Register list/save/remove routes for one leaf kind."""

    def list_items(user: UserRecord = Depends(get_current_user), store: services.SavedContentStore = Depends(get_store)):
        return _dump(store.list_kind(user.id, kind))

    def save_item(payload: LeafIn, user: UserRecord = Depends(get_current_user), store: services.SavedContentStore = Depends(get_store)):
        return _dump(store.save_leaf(user.id, kind, payload.title, payload.course_name, payload.url))

    def remove_item(item_id: str, user: UserRecord = Depends(get_current_user), store: services.SavedContentStore = Depends(get_store)):
        return _dump(store.remove_leaf(user.id, kind, item_id))

    saved_router.add_api_route(f'/{plural}', list_items, methods=['GET'], name=f'list_saved_{kind}')
    saved_router.add_api_route(f'/{singular}', save_item, methods=['POST'], name=f'save_{kind}')
    saved_router.add_api_route(f'/{singular}/{{item_id}}', remove_item, methods=['DELETE'], name=f'remove_{kind}')


_leaf_routes('note', 'note', 'notes')
_leaf_routes('syllabus', 'syllabus', 'syllabus')
_leaf_routes('paper', 'paper', 'papers')


@catalog_router.get('/courses')
def list_catalog_courses(request: Request):
    """List the course directories found in the catalog folder."""
    courses = catalog.list_courses(request.app.state.settings.CATALOG_DIR)
    logger.info("sending %d courses to client", len(courses))
    return courses


@catalog_router.get('/course/{course_name}')
def get_catalog_course(course_name: str, request: Request):
    """Return a course's files grouped into notes, syllabus and questionPapers."""
    return catalog.course_files(request.app.state.settings.CATALOG_DIR, course_name)


@admin_router.get('/users')
def admin_list_users(admin: UserRecord = Depends(get_admin_user), svc: services.AdminService = Depends(get_admin_service)):
    return {'users': svc.list_users()}


@admin_router.get('/users/{user_id}')
def admin_get_user(user_id: str, admin: UserRecord = Depends(get_admin_user), svc: services.AdminService = Depends(get_admin_service)):
    return {'user': svc.get_user(user_id)}


@admin_router.post('/users', status_code=201)
def admin_create_user(payload: AdminUserIn, admin: UserRecord = Depends(get_admin_user), svc: services.AdminService = Depends(get_admin_service)):
    return {'user': svc.create_user(payload.name, payload.email, payload.password, payload.is_admin)}


@admin_router.put('/users/{user_id}')
def admin_update_user(user_id: str, payload: AdminUserUpdate, admin: UserRecord = Depends(get_admin_user), svc: services.AdminService = Depends(get_admin_service)):
    user = svc.update_user(user_id, name=payload.name, email=payload.email, password=payload.password, is_admin=payload.is_admin)
    return {'user': user}


@admin_router.delete('/users/{user_id}')
def admin_delete_user(user_id: str, admin: UserRecord = Depends(get_admin_user), svc: services.AdminService = Depends(get_admin_service)):
    svc.delete_user(admin.id, user_id)
    return {'message': 'User deleted successfully'}


@admin_router.post('/clear-data')
def admin_clear_data(admin: UserRecord = Depends(get_admin_user), svc: services.AdminService = Depends(get_admin_service)):
    """Delete every non-admin user."""
    removed = svc.clear_data()
    return {'message': 'Data cleared successfully', 'removed': removed}


@admin_router.get('/stats')
def admin_stats(admin: UserRecord = Depends(get_admin_user), svc: services.AdminService = Depends(get_admin_service)):
    return svc.stats()


@admin_router.get('/backup')
def admin_backup(admin: UserRecord = Depends(get_admin_user), svc: services.AdminService = Depends(get_admin_service)):
    """Return every user (without passwords) plus a timestamp."""
    return svc.backup()


app.include_router(auth_router)
app.include_router(saved_router)
app.include_router(catalog_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# Course files are served read-only; must be mounted after the API routes.
app.mount("/database", StaticFiles(directory=settings.CATALOG_DIR, check_dir=False), name="database")

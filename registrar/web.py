"""HTTP routes for the student registration portal."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PayloadValidationError

from .auth import AuthenticationService
from .config import Settings
from .enrollment import EnrollmentService
from .errors import RegistrarError, ValidationError
from .models import SessionIdentity
from .sessions import SessionManager

logger = logging.getLogger("registrar.web")

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"


class CourseView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    title: str
    description: str
    credits: int
    instructor: str
    schedule: str
    capacity: int
    enrolled: int


class StudentProfileView(BaseModel):
    id: str
    username: str
    email: str
    registeredCourses: List[CourseView] = Field(default_factory=list)


class EnrollRequest(BaseModel):
    courseId: str

    @field_validator("courseId")
    @classmethod
    def _strip_course_id(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("courseId is required")
        return cleaned


def _template_environment() -> Jinja2Templates:
    return Jinja2Templates(directory=str(TEMPLATE_DIR))


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _failure(exc: RegistrarError, generic_message: str) -> JSONResponse:
    """Translate a service error, hiding detail for server-side failures."""

    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return _error(generic_message, exc.status_code)
    return _error(exc.message, exc.status_code)


async def _read_payload(request: Request) -> Dict[str, str]:
    """Decode a JSON or URL-encoded request body into a flat mapping."""

    body_bytes = await request.body()
    if not body_bytes:
        return {}

    content_type = request.headers.get("content-type", "")
    charset = "utf-8"
    if "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
    try:
        decoded = body_bytes.decode(charset)
    except (LookupError, UnicodeDecodeError):
        decoded = body_bytes.decode("utf-8", errors="ignore")

    if "application/json" in content_type:
        try:
            data = json.loads(decoded)
        except ValueError as exc:
            raise ValidationError("Malformed JSON body") from exc
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return {str(key): "" if value is None else str(value) for key, value in data.items()}

    parsed = parse_qs(decoded, keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items()}


def register_routes(
    app: FastAPI,
    *,
    settings: Settings,
    auth: AuthenticationService,
    enrollment: EnrollmentService,
    session_manager: SessionManager,
) -> None:
    """Expose the HTML pages and the JSON API on the provided FastAPI app."""

    templates = _template_environment()
    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    router = APIRouter()
    cookie_name = settings.session_cookie_name

    def _load_identity(request: Request) -> Tuple[Optional[SessionIdentity], Optional[str]]:
        token = request.cookies.get(cookie_name)
        return session_manager.resolve(token), token

    def _issue_session_cookie(response, token: str) -> None:
        response.set_cookie(
            cookie_name,
            token,
            max_age=session_manager.cookie_max_age,
            secure=settings.session_cookie_secure,
            httponly=True,
            samesite="lax",
            path="/",
        )

    def _clear_session_cookie(response, token: Optional[str]) -> None:
        session_manager.destroy(token)
        response.delete_cookie(cookie_name, path="/")

    def _redirect_to_login(request: Request) -> RedirectResponse:
        return RedirectResponse(
            request.url_for("show_login"),
            status_code=status.HTTP_303_SEE_OTHER,
        )

    def _unauthorized() -> JSONResponse:
        return _error("Unauthorized", status.HTTP_401_UNAUTHORIZED)

    @router.get("/healthz", include_in_schema=False)
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @router.get("/", include_in_schema=False)
    async def root(request: Request):
        return _redirect_to_login(request)

    @router.get("/register", response_class=HTMLResponse, name="show_register")
    async def register_form(request: Request):
        return templates.TemplateResponse(request, "register.html", {})

    @router.post("/register", name="process_register")
    async def register(request: Request):
        try:
            payload = await _read_payload(request)
            await auth.signup(
                payload.get("username", ""),
                payload.get("email", ""),
                payload.get("phone", ""),
                payload.get("password", ""),
                payload.get("confirmPassword", ""),
            )
        except RegistrarError as exc:
            if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
                logger.warning("Registration rejected: %s", exc.message)
            return _failure(exc, "Registration failed")
        except Exception:
            logger.exception("Registration failed")
            return _error("Registration failed", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return {"message": "Registered!"}

    @router.get("/login", response_class=HTMLResponse, name="show_login")
    async def login_form(request: Request):
        identity, _ = _load_identity(request)
        if identity is not None:
            return RedirectResponse(request.url_for("home"), status_code=status.HTTP_303_SEE_OTHER)
        return templates.TemplateResponse(request, "login.html", {})

    @router.post("/login", name="process_login")
    async def login(request: Request):
        try:
            payload = await _read_payload(request)
            identity = await auth.login(payload.get("email", ""), payload.get("password", ""))
        except RegistrarError as exc:
            return _failure(exc, "Login failed")
        except Exception:
            logger.exception("Login failed")
            return _error("Login failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

        existing_token = request.cookies.get(cookie_name)
        if existing_token:
            session_manager.destroy(existing_token)

        token = session_manager.create(identity)
        logger.info("Student %s signed in", identity.id)
        response = JSONResponse({"message": "Logged in!"})
        _issue_session_cookie(response, token)
        return response

    @router.get("/logout", name="logout")
    async def logout(request: Request):
        token = request.cookies.get(cookie_name)
        response = _redirect_to_login(request)
        _clear_session_cookie(response, token)
        return response

    @router.get("/home", response_class=HTMLResponse, name="home")
    async def home(request: Request):
        identity, token = _load_identity(request)
        if identity is None:
            response = _redirect_to_login(request)
            if token:
                _clear_session_cookie(response, token)
            return response
        return templates.TemplateResponse(request, "home.html", {"user": identity})

    @router.get("/api/courses", name="list_courses")
    async def list_courses(request: Request):
        identity, _ = _load_identity(request)
        if identity is None:
            return _unauthorized()
        try:
            courses = await enrollment.list_courses()
        except Exception:
            logger.exception("Failed to list courses")
            return _error("Failed to load courses", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return [CourseView.model_validate(course) for course in courses]

    @router.post("/api/courses/register", name="register_course")
    async def register_course(request: Request):
        identity, _ = _load_identity(request)
        if identity is None:
            return _unauthorized()
        try:
            payload = await _read_payload(request)
            try:
                enroll_request = EnrollRequest.model_validate(payload)
            except PayloadValidationError as exc:
                raise ValidationError("courseId is required") from exc
            await enrollment.enroll(identity.id, enroll_request.courseId)
        except RegistrarError as exc:
            return _failure(exc, "Failed to register course")
        except Exception:
            logger.exception("Failed to register course for %s", identity.id)
            return _error("Failed to register course", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return {"message": "Course Registered!"}

    @router.get("/api/me", name="current_student")
    async def current_student(request: Request):
        identity, _ = _load_identity(request)
        if identity is None:
            return _unauthorized()
        try:
            courses = await enrollment.registered_courses(identity.id)
        except RegistrarError as exc:
            return _failure(exc, "Failed to load profile")
        except Exception:
            logger.exception("Failed to load profile for %s", identity.id)
            return _error("Failed to load profile", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return StudentProfileView(
            id=identity.id,
            username=identity.username,
            email=identity.email,
            registeredCourses=[CourseView.model_validate(course) for course in courses],
        )

    app.include_router(router)


__all__ = ["register_routes"]

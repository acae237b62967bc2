import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from homebase.database import init_db
from homebase.errors import AuthenticationError, CollaboratorError, ValidationError
from homebase.routers import calendar, chat, chores, families, settings, todos

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent.parent


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Homebase",
    description="Shared calendar, chores, todos and assistant for a family",
    version="0.1.0",
    lifespan=lifespan,
)

# Static files
static_dir = BASE_DIR / "static"
if static_dir.is_dir():
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

# Templates
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

# Include routers
app.include_router(families.router)
app.include_router(todos.router)
app.include_router(chores.router)
app.include_router(calendar.router)
app.include_router(chat.router)
app.include_router(settings.router)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(CollaboratorError)
async def collaborator_error_handler(request: Request, exc: CollaboratorError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": exc.user_message})


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    """API callers get a 401; page loads go back to sign-in."""
    if request.url.path.startswith("/api/"):
        return JSONResponse(status_code=401, content={"detail": str(exc)})
    return RedirectResponse(url="/login", status_code=303)


@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    """Serve the sign-in page."""
    return templates.TemplateResponse(request, "login.html", {})


@app.get("/", response_class=HTMLResponse)
def index(request: Request):
    """Serve the app shell, or send anonymous visitors to sign in."""
    if not request.headers.get("x-user-id"):
        return RedirectResponse(url="/login", status_code=303)
    return templates.TemplateResponse(
        request, "index.html", {"user_name": request.headers.get("x-user-name") or "there"}
    )

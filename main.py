import logging
import secrets
import sys
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import markdown
from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.security import OAuth2PasswordBearer
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ADMIN_PASSWORD,
    ADMIN_PASSWORD_HASH,
    ALGORITHM,
    ASSETS_DIR,
    FRONTEND_URL,
    JWT_SECRET,
    LOG_LEVEL,
    PORT,
    TEMPLATES_DIR,
    TIMELINE_LIMIT,
    UPLOAD_DIR,
    UPLOAD_URL_PREFIX,
)
from database import JsonDatabase, get_db
from errors import ContentError, NotFoundError, ValidationError
from insights import build_timeline, compute_stats, format_date, time_ago
from media import ImageUpload, MediaStore, get_media
from schemas import ActivityEvent, DemoRequest, Resource, Stats, Testimonial
from services import DemoService, ResourceService, TestimonialService

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/admin/login")

app = FastAPI(title="BrandBiography CMS")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*" if FRONTEND_URL == "*" else FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=UPLOAD_DIR), name="uploads")
app.mount("/assets", StaticFiles(directory=ASSETS_DIR), name="assets")

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["date"] = format_date
templates.env.filters["ago"] = time_ago


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:8])
    start = time.time()
    response = await call_next(request)
    duration_ms = round((time.time() - start) * 1000, 1)

    if request.url.path != "/health":
        logger.info(f"{request_id} {request.method} {request.url.path} {response.status_code} {duration_ms}ms")

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Response-Time-Ms"] = str(duration_ms)
    return response


@app.exception_handler(ContentError)
async def content_error_handler(request: Request, exc: ContentError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


# ---------------------- Dependencies ----------------------
def resource_service(database: JsonDatabase = Depends(get_db), store: MediaStore = Depends(get_media)) -> ResourceService:
    return ResourceService(database, store)


def demo_service(database: JsonDatabase = Depends(get_db)) -> DemoService:
    return DemoService(database)


def testimonial_service(database: JsonDatabase = Depends(get_db)) -> TestimonialService:
    return TestimonialService(database)


async def to_image_upload(upload) -> Optional[ImageUpload]:
    # Form values are plain strings unless a file part was sent.
    if upload is None or isinstance(upload, str) or not upload.filename:
        return None
    return ImageUpload(filename=upload.filename, content_type=upload.content_type or "", body=await upload.read())


RESOURCE_FIELDS = ("type", "title", "description", "content", "link")


async def read_resource_input(request: Request) -> Tuple[dict, Optional[ImageUpload]]:
    """Fields actually sent (multipart or JSON) plus the optional image part."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Malformed JSON body") from None
        if not isinstance(body, dict):
            raise ValidationError("Expected a JSON object")
        return {k: body[k] for k in RESOURCE_FIELDS if k in body}, None

    form = await request.form()
    data = {k: form[k] for k in RESOURCE_FIELDS if k in form and isinstance(form[k], str)}
    return data, await to_image_upload(form.get("image"))


# ---------------------- Auth helpers ----------------------
class AdminLogin(BaseModel):
    password: str = ""


def verify_admin_password(password: str) -> bool:
    if ADMIN_PASSWORD_HASH:
        return pwd_context.verify(password, ADMIN_PASSWORD_HASH)
    return secrets.compare_digest(password.encode(), ADMIN_PASSWORD.encode())


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=ALGORITHM)


async def get_current_admin(token: str = Depends(oauth2_scheme)) -> str:
    credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    if payload.get("sub") != "admin":
        raise credentials_exception
    return payload["sub"]


# ---------------------- Auth routes ----------------------
@app.post("/api/admin/login")
async def admin_login(payload: AdminLogin):
    if not verify_admin_password(payload.password):
        logger.warning("Rejected admin login")
        return JSONResponse(status_code=401, content={"success": False, "error": "Incorrect password"})
    token = create_access_token({"sub": "admin"})
    return {"success": True, "access_token": token, "token_type": "bearer"}


@app.get("/api/admin/session")
async def admin_session(admin: str = Depends(get_current_admin)):
    return {"success": True, "user": admin}


# ---------------------- Resources ----------------------
@app.get("/api/resources", response_model=List[Resource])
def list_resources(type: Optional[str] = None, q: Optional[str] = None, service: ResourceService = Depends(resource_service)):
    return service.list(type=type, q=q)


@app.get("/api/resources/{resource_id}", response_model=Resource)
def get_resource(resource_id: str, service: ResourceService = Depends(resource_service)):
    return service.get(resource_id)


@app.post("/api/resources", response_model=Resource, status_code=201)
async def create_resource(request: Request, service: ResourceService = Depends(resource_service)):
    data, image = await read_resource_input(request)
    return await run_in_threadpool(service.create, data, image=image)


@app.put("/api/resources/{resource_id}", response_model=Resource)
async def update_resource(resource_id: str, request: Request, service: ResourceService = Depends(resource_service)):
    data, image = await read_resource_input(request)
    return await run_in_threadpool(service.update, resource_id, data, image=image)


@app.delete("/api/resources/{resource_id}")
def delete_resource(resource_id: str, service: ResourceService = Depends(resource_service)):
    service.delete(resource_id)
    return {"message": "Deleted"}


# ---------------------- Demo requests ----------------------
class DemoSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    ad_spend: Optional[str] = Field(None, alias="adSpend")


class DemoUpdate(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None


@app.get("/api/demos", response_model=List[DemoRequest])
def list_demos(status: Optional[str] = None, q: Optional[str] = None, service: DemoService = Depends(demo_service)):
    return service.list(status=status, q=q)


@app.post("/api/demos", status_code=201)
def submit_demo(item: DemoSubmission, service: DemoService = Depends(demo_service)):
    service.create(item.model_dump(exclude_unset=True))
    return {"message": "Demo request submitted! We'll be in touch shortly."}


@app.put("/api/demos/{demo_id}", response_model=DemoRequest)
def update_demo(demo_id: str, item: DemoUpdate, service: DemoService = Depends(demo_service)):
    return service.update(demo_id, item.model_dump(exclude_unset=True))


@app.delete("/api/demos/{demo_id}")
def delete_demo(demo_id: str, service: DemoService = Depends(demo_service)):
    service.delete(demo_id)
    return {"message": "Deleted"}


# ---------------------- Testimonials ----------------------
class TestimonialInput(BaseModel):
    quote: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    initials: Optional[str] = None
    rating: Optional[int] = None
    visible: Optional[bool] = None


@app.get("/api/testimonials", response_model=List[Testimonial])
def list_testimonials(visible: Optional[bool] = None, q: Optional[str] = None, service: TestimonialService = Depends(testimonial_service)):
    return service.list(visible=visible, q=q)


@app.post("/api/testimonials", response_model=Testimonial, status_code=201)
def create_testimonial(item: TestimonialInput, service: TestimonialService = Depends(testimonial_service)):
    return service.create(item.model_dump(exclude_unset=True))


@app.put("/api/testimonials/{testimonial_id}", response_model=Testimonial)
def update_testimonial(testimonial_id: str, item: TestimonialInput, service: TestimonialService = Depends(testimonial_service)):
    return service.update(testimonial_id, item.model_dump(exclude_unset=True))


@app.delete("/api/testimonials/{testimonial_id}")
def delete_testimonial(testimonial_id: str, service: TestimonialService = Depends(testimonial_service)):
    service.delete(testimonial_id)
    return {"message": "Deleted"}


# ---------------------- Dashboard ----------------------
@app.get("/api/stats", response_model=Stats)
def stats(database: JsonDatabase = Depends(get_db)):
    return compute_stats(database)


@app.get("/api/activity", response_model=List[ActivityEvent])
def activity(limit: int = TIMELINE_LIMIT, database: JsonDatabase = Depends(get_db)):
    return build_timeline(database, limit=limit)


# ---------------------- Media upload ----------------------
@app.post("/api/upload")
async def upload_image(image: Optional[UploadFile] = File(None), store: MediaStore = Depends(get_media)):
    upload = await to_image_upload(image)
    if upload is None:
        raise ValidationError("No image", ["image"])
    return {"url": store.save(upload)}


# ---------------------- Pages ----------------------
@app.get("/")
def home(request: Request, resources: ResourceService = Depends(resource_service), testimonials: TestimonialService = Depends(testimonial_service)):
    return templates.TemplateResponse(
        request,
        "index.html",
        {"testimonials": testimonials.list(visible=True), "resources": resources.all()[:3]},
    )


@app.get("/resources")
def resources_page(request: Request, service: ResourceService = Depends(resource_service)):
    return templates.TemplateResponse(request, "resources.html", {"resources": service.all()})


@app.get("/resources.html")
def legacy_resources_page():
    return RedirectResponse("/resources", status_code=301)


@app.get("/resources/{slug}")
def resource_page(slug: str, request: Request, service: ResourceService = Depends(resource_service)):
    try:
        resource = service.get_by_slug(slug)
    except NotFoundError:
        return PlainTextResponse("Resource not found", status_code=404)
    content_html = markdown.markdown(resource.content, extensions=["extra"]) if resource.content else "<p>Content coming soon.</p>"
    return templates.TemplateResponse(request, "resource-single.html", {"resource": resource, "content_html": content_html})


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    logger.info(f"BrandBiography server -> http://localhost:{PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)

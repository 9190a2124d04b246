"""BookShare REST API.

JSON envelopes: ``{user}``, ``{book}``, ``{books}`` on success and
``{error}`` on failure. Protected routes use HTTP Basic authentication
with ``email:password``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookshare.catalog import BookUnavailableError, Catalog
from bookshare.config import settings
from bookshare.models import ROLE_OWNER, ROLE_SEEKER, User

logger = logging.getLogger(__name__)


# --- Models ---
class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class RegisterModel(_CamelModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=1)
    role: Literal["owner", "seeker"]
    mobile_number: str = Field(default="", alias="mobileNumber")
    address: str = ""


class LoginModel(_CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProfileUpdateModel(_CamelModel):
    name: Optional[str] = None
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+$")
    password: Optional[str] = None
    mobile_number: Optional[str] = Field(default=None, alias="mobileNumber")
    address: Optional[str] = None


class BookModel(_CamelModel):
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    genre: str = ""
    location: str = Field(min_length=1)
    contact_info: str = Field(min_length=1, alias="contactInfo")
    status: Literal["available", "rented"] = "available"
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    cover_color: Optional[str] = Field(default=None, alias="coverColor", pattern=r"^#[0-9a-fA-F]{6}$")


# --- Dependencies ---
basic_auth = HTTPBasic(auto_error=False)


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def get_current_user(
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
    catalog: Catalog = Depends(get_catalog),
) -> User:
    """Resolve the Basic auth credentials to a user."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = catalog.authenticate(credentials.username, credentials.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return user


def require_owner(user: User = Depends(get_current_user)) -> User:
    if user.role != ROLE_OWNER:
        raise HTTPException(status_code=403, detail="Owner access required")
    return user


def require_seeker(user: User = Depends(get_current_user)) -> User:
    if user.role != ROLE_SEEKER:
        raise HTTPException(status_code=403, detail="Seeker access required")
    return user


router = APIRouter()


# --- Auth ---
@router.post("/register", status_code=201)
def register(payload: RegisterModel, catalog: Catalog = Depends(get_catalog)):
    try:
        user = catalog.create_user(
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            mobile_number=payload.mobile_number,
            address=payload.address,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "User registered successfully", "user": user.to_dict()}


@router.post("/login")
def login(payload: LoginModel, catalog: Catalog = Depends(get_catalog)):
    user = catalog.authenticate(payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"message": "Login successful", "user": user.to_dict()}


@router.post("/logout")
def logout():
    # Basic auth keeps no server-side session; clients drop their credentials
    return {"message": "Logged out successfully"}


# --- Profile ---
@router.get("/me")
@router.get("/users/profile")
def get_profile(user: User = Depends(get_current_user)):
    return {"user": user.to_dict()}


@router.put("/me")
@router.put("/users/profile")
def update_profile(payload: ProfileUpdateModel, user: User = Depends(get_current_user),
                   catalog: Catalog = Depends(get_catalog)):
    try:
        updated = catalog.update_user(
            user.id,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            mobile_number=payload.mobile_number,
            address=payload.address,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Profile updated successfully", "user": updated.to_dict()}


# --- Books ---
@router.get("/books")
def list_books(
    q: Optional[str] = Query(None, description="Matches title or author"),
    title: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    genre: Optional[str] = Query(None),
    catalog: Catalog = Depends(get_catalog),
):
    books = catalog.list_books(q=q, title=title, location=location, genre=genre)
    return {"books": [b.to_dict() for b in books]}


@router.get("/books/owned")
def owned_books(user: User = Depends(require_owner), catalog: Catalog = Depends(get_catalog)):
    return {"books": [b.to_dict() for b in catalog.books_by_owner(user.id)]}


@router.get("/rented-books")
def rented_books(user: User = Depends(get_current_user), catalog: Catalog = Depends(get_catalog)):
    return {"books": [b.to_dict() for b in catalog.books_rented_by(user.id)]}


@router.get("/books/{book_id}")
def get_book(book_id: str, catalog: Catalog = Depends(get_catalog)):
    book = catalog.get_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return {"book": book.to_dict()}


@router.post("/books", status_code=201)
def create_book(payload: BookModel, user: User = Depends(require_owner),
                catalog: Catalog = Depends(get_catalog)):
    book = catalog.create_book(
        user,
        title=payload.title,
        author=payload.author,
        genre=payload.genre,
        location=payload.location,
        contact_info=payload.contact_info,
        status=payload.status,
        image_url=payload.image_url,
        cover_color=payload.cover_color,
    )
    return {"message": "Book created successfully", "book": book.to_dict()}


@router.put("/books/{book_id}")
def update_book(book_id: str, payload: BookModel, user: User = Depends(require_owner),
                catalog: Catalog = Depends(get_catalog)):
    try:
        book = catalog.update_book(
            book_id,
            user,
            title=payload.title,
            author=payload.author,
            genre=payload.genre,
            location=payload.location,
            contact_info=payload.contact_info,
            status=payload.status,
            image_url=payload.image_url or "",
            cover_color=payload.cover_color or "",
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return {"message": "Book updated successfully", "book": book.to_dict()}


@router.delete("/books/{book_id}")
def delete_book(book_id: str, user: User = Depends(require_owner), catalog: Catalog = Depends(get_catalog)):
    try:
        catalog.delete_book(book_id, user)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return {"message": "Book deleted successfully"}


@router.post("/books/{book_id}/request")
def request_book(book_id: str, user: User = Depends(require_seeker), catalog: Catalog = Depends(get_catalog)):
    try:
        book = catalog.request_book(book_id, user)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except BookUnavailableError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"message": "Book request sent successfully", "book": book.to_dict()}


@router.get("/health")
def health(catalog: Catalog = Depends(get_catalog)):
    users, books = catalog.counts()
    return {"status": "healthy", "users": users, "books": books}


# --- Error envelopes ---
async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse({"error": message}, status_code=400)


def create_app(catalog: Optional[Catalog] = None) -> FastAPI:
    """Build the API around ``catalog`` (the configured SQLite file by default)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        users, books = app.state.catalog.counts()
        logger.info(f"{settings.app_name} API ready: {users} users, {books} books")
        yield

    app = FastAPI(title=f"{settings.app_name} API", version=settings.app_version, lifespan=lifespan)
    app.state.catalog = catalog or Catalog()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    )
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(router, prefix="/api")
    return app

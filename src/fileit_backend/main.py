from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Header, Path as PathParam, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from .book_index import BookIndex
from .book_tree import BookTreeProcessor
from .cloud_storage import CloudStorage
from .configuration import get_settings
from .content_processor import ContentProcessor
from .credentials import CredentialStore, SessionRecord
from .delete_book import DeleteBookProcessor
from .errors import AuthenticationError, FileItError, InvalidRequestError, RateLimitError
from .middleware import RateLimiter
from .models import BookNames, ContentUploadResult, LoginRequest, LoginResponse, SignedUrl
from .utils import PDF_CONTENT_TYPE, WORD_CONTENT_TYPE, allowed_document_extensions, split_extension

logger = logging.getLogger(__name__)

app = FastAPI(title="FileIt API", version="0.1.0")

allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

settings = get_settings()
storage = CloudStorage(settings)
credential_store = CredentialStore(settings.credentials_db)
login_limiter = RateLimiter(requests_per_minute=settings.login_attempts_per_minute)

NO_BOOK_PRESENT = {"Error": "No Book Present"}


def bootstrap_admin_from_env(store: CredentialStore) -> None:
    username = os.environ.get("FILEIT_ADMIN_USERNAME", "").strip()
    password = os.environ.get("FILEIT_ADMIN_PASSWORD", "")
    if not username or not password:
        return
    store.add_user(username, password)
    logger.info(f"Admin credentials bootstrapped from environment for '{username}'")


bootstrap_admin_from_env(credential_store)


@app.exception_handler(FileItError)
async def fileit_error_handler(request, exc: FileItError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"Error": exc.message})


def get_storage() -> CloudStorage:
    return storage


def get_credential_store() -> CredentialStore:
    return credential_store


def get_login_limiter() -> RateLimiter:
    return login_limiter


def get_book_index(storage: CloudStorage = Depends(get_storage)) -> BookIndex:
    return BookIndex(storage)


def get_book_tree(storage: CloudStorage = Depends(get_storage), index: BookIndex = Depends(get_book_index)) -> BookTreeProcessor:
    return BookTreeProcessor(storage, index)


def get_delete_processor(
    storage: CloudStorage = Depends(get_storage), index: BookIndex = Depends(get_book_index)
) -> DeleteBookProcessor:
    return DeleteBookProcessor(storage, index)


def get_content_processor(storage: CloudStorage = Depends(get_storage)) -> ContentProcessor:
    return ContentProcessor.get_instance(storage)


def require_session(
    x_auth_token: Optional[str] = Header(None),
    store: CredentialStore = Depends(get_credential_store),
) -> SessionRecord:
    if not x_auth_token:
        raise AuthenticationError("Missing session token")
    session = store.validate_token(x_auth_token)
    if session is None:
        raise AuthenticationError("Invalid or expired session token")
    return session


@app.get("/sayHello", response_class=PlainTextResponse)
def say_hello() -> str:
    return "Hello World"


@app.get("/getMasterJson")
def get_master_json() -> JSONResponse:
    try:
        with Path(settings.master_json_path).open(encoding="utf-8") as handle:
            document = json.load(handle)
    except (OSError, ValueError) as exc:
        logger.warning(f"Master JSON unavailable at {settings.master_json_path}: {exc}")
        return JSONResponse(content=NO_BOOK_PRESENT)
    if not isinstance(document, dict):
        return JSONResponse(content=NO_BOOK_PRESENT)
    return JSONResponse(content=document)


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    store: CredentialStore = Depends(get_credential_store),
    limiter: RateLimiter = Depends(get_login_limiter),
) -> LoginResponse:
    if not limiter.is_allowed(payload.username):
        raise RateLimitError("Too many login attempts, try again later")
    token, session = store.login(payload.username, payload.password)
    limiter.reset(payload.username)
    return LoginResponse(username=session.username, token=token)


@app.get("/books", response_model=BookNames)
def list_books(index: BookIndex = Depends(get_book_index)) -> BookNames:
    return BookNames(books=index.names())


@app.get("/books/{book_name}")
def get_book(book_name: str, processor: BookTreeProcessor = Depends(get_book_tree)) -> JSONResponse:
    return JSONResponse(content=processor.process_book_xml(book_name))


@app.post("/books/{book_name}", status_code=201)
async def add_book(
    book_name: str,
    xml: UploadFile = File(...),
    processor: BookTreeProcessor = Depends(get_book_tree),
    session: SessionRecord = Depends(require_session),
) -> Dict[str, Any]:
    content = await xml.read()
    await xml.close()
    if not content:
        raise InvalidRequestError("Book XML must not be empty")
    logger.info(f"User '{session.username}' adding book '{book_name}'")
    return await run_in_threadpool(processor.register_book, book_name, content)


@app.post("/books/{book_name}/content", response_model=ContentUploadResult)
async def upload_content(
    book_name: str,
    document: UploadFile = File(...),
    processor: ContentProcessor = Depends(get_content_processor),
    session: SessionRecord = Depends(require_session),
) -> Dict[str, Any]:
    filename = document.filename or ""
    content_type = document.content_type or ""
    _, extension = split_extension(filename)
    if extension.lower() not in allowed_document_extensions() and content_type not in {PDF_CONTENT_TYPE, WORD_CONTENT_TYPE}:
        raise InvalidRequestError("Only PDF and Word (.docx) uploads are supported")

    data = await document.read()
    await document.close()
    logger.info(f"User '{session.username}' uploading {filename or 'document'} for '{book_name}'")
    return await run_in_threadpool(
        processor.process_content_image,
        book_name,
        data,
        None,
        content_type or PDF_CONTENT_TYPE,
        filename,
    )


@app.get("/books/{book_name}/url", response_model=SignedUrl)
def book_content_url(book_name: str, processor: BookTreeProcessor = Depends(get_book_tree)) -> SignedUrl:
    return SignedUrl(url=processor.content_url(book_name), expires_in=processor.storage.settings.content_url_expiry)


@app.get("/books/{book_name}/images/{page}/url", response_model=SignedUrl)
def book_image_url(
    book_name: str,
    page: int = PathParam(..., ge=1),
    processor: ContentProcessor = Depends(get_content_processor),
) -> SignedUrl:
    return SignedUrl(url=processor.image_url(book_name, page), expires_in=processor.storage.settings.image_url_expiry)


@app.delete("/books/{book_name}")
def delete_book(
    book_name: str,
    purge_images: bool = False,
    processor: DeleteBookProcessor = Depends(get_delete_processor),
    session: SessionRecord = Depends(require_session),
) -> Dict[str, str]:
    logger.info(f"User '{session.username}' deleting book '{book_name}'")
    return processor.delete_book(book_name, purge_images=purge_images)

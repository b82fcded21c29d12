import logging
from contextlib import asynccontextmanager
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Request, Response, UploadFile, status

from fileshare_client import create_fileshare_client
from fileshare_client.client import FileShareClient
from fileshare_client.config import Settings, get_settings
from fileshare_client.exceptions import (
    AccountLockedError,
    ConnectivityError,
    DataClientError,
    DatabaseError,
    FileRecordNotFoundError,
    InvalidCredentialsError,
    StorageNotReadyError,
)
from fileshare_client.ingest import ConnectivityGate, ConnectivityMonitor
from fileshare_client.logging import configure
from fileshare_client.models import CandidateFile, FileRecordInDB, UploadReport
from fileshare_client.repositories import LoginAttemptRepository
from fileshare_client.server.auth import LoginGuard, get_current_admin

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["Auth"])
files_router = APIRouter(prefix="/files", tags=["Files"])


def get_client(request: Request) -> FileShareClient:
    return request.app.state.client


def get_guard(request: Request) -> LoginGuard:
    return request.app.state.guard


# --- auth ---

@auth_router.post("/login")
async def login(
    response: Response,
    request: Request,
    guard: Annotated[LoginGuard, Depends(get_guard)],
    username: str = Form(...),
    password: str = Form(...),
):
    try:
        token = await guard.login(username, password)
    except AccountLockedError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
            headers={"Retry-After": str(e.retry_after)},
        )
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except DatabaseError as e:
        logger.error(f"Login attempt store unavailable: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Login is temporarily unavailable.")

    config = request.app.state.auth_config
    response.set_cookie(
        config.cookie_name,
        token,
        httponly=True,
        secure=config.cookie_secure,
        samesite="strict",
        max_age=config.session_minutes * 60,
    )
    return {"success": True}


@auth_router.post("/logout")
async def logout(response: Response, request: Request):
    response.delete_cookie(request.app.state.auth_config.cookie_name)
    return {"success": True}


# --- files ---

@files_router.get("", response_model=List[FileRecordInDB])
async def list_files(
    client: Annotated[FileShareClient, Depends(get_client)],
    limit: Optional[int] = None,
    offset: int = 0,
):
    """Public gallery listing, newest first."""
    return await client.list_files(limit, offset)


@files_router.get("/{file_id}", response_model=FileRecordInDB)
async def get_file(file_id: UUID, client: Annotated[FileShareClient, Depends(get_client)]):
    try:
        return await client.get_file(file_id)
    except FileRecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@files_router.post("/upload", response_model=UploadReport)
async def upload_files(
    admin: Annotated[str, Depends(get_current_admin)],
    client: Annotated[FileShareClient, Depends(get_client)],
    files: List[UploadFile] = File(...),
):
    """
    Uploads a batch. Per-file problems come back in the report with status 200;
    only a batch that cannot start (offline, bucket missing) is an HTTP error.
    """
    limit = client.upload_config.max_file_size
    candidates = []
    for upload in files:
        name = upload.filename or "unnamed"
        # an oversized part is rejected by its declared size and never read
        if upload.size is not None and upload.size > limit:
            candidates.append(CandidateFile(
                name=name,
                size=upload.size,
                mime_type=upload.content_type or "application/octet-stream",
            ))
            continue
        content = await upload.read()
        candidates.append(CandidateFile.from_bytes(name, content, upload.content_type))

    logger.info(f"Admin '{admin}' submitted {len(candidates)} file(s).")
    try:
        return await client.upload(candidates)
    except (ConnectivityError, StorageNotReadyError) as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@files_router.delete("/{file_id}")
async def delete_file(
    file_id: UUID,
    admin: Annotated[str, Depends(get_current_admin)],
    client: Annotated[FileShareClient, Depends(get_client)],
):
    try:
        await client.delete_file_by_id(file_id)
    except FileRecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DataClientError as e:
        logger.error(f"Delete of {file_id} failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to delete file.")
    return {"deleted": True, "id": str(file_id)}


# --- app ---

def create_app(
    client: Optional[FileShareClient] = None,
    guard: Optional[LoginGuard] = None,
    settings: Optional[Settings] = None,
    monitor: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    if client is None:
        # standalone launch, e.g. `uvicorn --factory fileshare_client.server.main:create_app`
        configure(settings.log_level)
        client = create_fileshare_client(gate=ConnectivityGate())
    if guard is None:
        guard = LoginGuard(LoginAttemptRepository(client.session_factory), settings.auth)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        probe_loop = None
        if monitor:
            probe_loop = ConnectivityMonitor(client.gate, client.probe, settings.probe_interval)
            probe_loop.start()
        try:
            yield
        finally:
            if probe_loop is not None:
                await probe_loop.stop()
            await client.aclose()

    app = FastAPI(title="fileshare", lifespan=lifespan)
    app.state.client = client
    app.state.guard = guard
    app.state.auth_config = settings.auth

    @app.get("/health", tags=["Health"])
    async def health():
        statuses = await client.check_connections()
        statuses["reachable"] = "ok" if client.gate.is_reachable() else "failed"
        return statuses

    app.include_router(auth_router)
    app.include_router(files_router)
    return app

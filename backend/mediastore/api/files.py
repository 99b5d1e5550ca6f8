"""
File browser endpoints.

Listing returns keys only. A signed URL is issued per key through
GET /files/presign when a preview or download is actually requested.

Endpoints are plain ``def``: every call blocks on the blob backend, so
FastAPI runs them in its threadpool.

Security:
- All endpoints require an authenticated principal
- Delete, move and bulk delete additionally require an admin role
- Uploads are restricted to the allow-listed category roots
"""
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import StreamingResponse

from mediastore.auth.dependencies import get_current_principal
from mediastore.schemas.files import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    FolderSummaryResponse,
    ListResponse,
    MoveRequest,
    MoveResponse,
    ObjectResponse,
    ReadPresignResponse,
    SummaryResponse,
    UploadPresignRequest,
    UploadPresignResponse,
    YearMonthsResponse,
)
from mediastore.storage.deletion import DeletionAuthority, Principal
from mediastore.storage.dependencies import (
    get_deletion_authority,
    get_lister,
    get_presign_service,
)
from mediastore.storage.listing import (
    FileKind,
    ListMode,
    ObjectLister,
    SortDirection,
    SortKey,
    months_by_year,
    refine,
    summarize_folders,
)
from mediastore.storage.presign import PresignService

router = APIRouter()


@router.get("/list", response_model=ListResponse)
def list_files(
    prefix: str = Query("", description="Folder prefix, e.g. 'clients/42/'"),
    token: Optional[str] = Query(None, description="nextToken from the previous page"),
    recursive: bool = Query(False, description="Flat listing of everything below the prefix"),
    q: Optional[str] = Query(None, description="Case-insensitive search in keys"),
    sort: SortKey = Query(SortKey.DATE),
    order: SortDirection = Query(SortDirection.DESC),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    kind: FileKind = Query(FileKind.ALL),
    lister: ObjectLister = Depends(get_lister),
    principal: Principal = Depends(get_current_principal),
):
    """
    List a folder.

    Shallow (default): sub-folders plus the files directly in the folder,
    one backend page at a time. Recursive: every file below the prefix with
    a year/month table for the month picker.

    Search, sort and filters only apply to the files already fetched.
    """
    mode = ListMode.RECURSIVE if recursive else ListMode.SHALLOW
    listing = lister.list(prefix, mode=mode, continuation_token=token)

    files = refine(listing.files, query=q, sort=sort, direction=order, month=month, kind=kind)
    months = None
    if recursive:
        months = [YearMonthsResponse.from_table(row) for row in months_by_year(listing.files)]

    return ListResponse(
        prefix=listing.prefix,
        folders=listing.folders,
        objects=[ObjectResponse.from_stored(obj) for obj in files],
        next_token=listing.next_token,
        truncated=listing.truncated,
        months=months,
    )


@router.get("/summary", response_model=SummaryResponse)
def folder_summary(
    prefix: str = Query(..., description="Parent folder, e.g. 'clients/'"),
    lister: ObjectLister = Depends(get_lister),
    principal: Principal = Depends(get_current_principal),
):
    """Per-folder object count, total size and latest upload below a prefix."""
    listing = lister.list(prefix, mode=ListMode.RECURSIVE)
    return SummaryResponse(
        prefix=listing.prefix,
        folders=[
            FolderSummaryResponse.from_summary(summary)
            for summary in summarize_folders(listing.files, listing.prefix)
        ],
        truncated=listing.truncated,
    )


@router.post("/presign", response_model=UploadPresignResponse)
def presign_upload(
    request: UploadPresignRequest,
    presign_service: PresignService = Depends(get_presign_service),
    principal: Principal = Depends(get_current_principal),
):
    """
    Generate a presigned URL for direct upload into a folder.

    Client then PUTs the bytes to ``url`` with the returned content type.
    """
    grant = presign_service.presign_upload(
        prefix=request.prefix,
        filename=request.filename,
        content_type=request.content_type,
        size=request.size,
    )
    return UploadPresignResponse(
        url=grant.url,
        key=grant.key,
        expires_in=grant.expires_in,
        content_type=grant.content_type,
        public_url=grant.public_url,
    )


@router.get("/presign", response_model=ReadPresignResponse)
def presign_read(
    key: str = Query(..., description="Object key"),
    presign_service: PresignService = Depends(get_presign_service),
    principal: Principal = Depends(get_current_principal),
):
    """Issue a time-limited GET URL for one object."""
    grant = presign_service.presign(key)
    return ReadPresignResponse(key=grant.key, url=grant.url, expires_at=grant.expires_at)


@router.get("/object")
def get_object(
    key: str = Query(..., description="Object key"),
    download: bool = Query(False, description="Serve as attachment instead of inline"),
    presign_service: PresignService = Depends(get_presign_service),
    principal: Principal = Depends(get_current_principal),
):
    """Stream an object through the backend with its stored content type."""
    content = presign_service.open(key)
    disposition = "attachment" if download else "inline"
    filename = content.info.name
    headers = {
        "Content-Disposition": f"{disposition}; filename*=UTF-8''{quote(filename)}",
        "Cache-Control": "private, max-age=300",
    }
    if content.info.size:
        headers["Content-Length"] = str(content.info.size)
    return StreamingResponse(content.chunks, media_type=content.info.content_type, headers=headers)


@router.delete("/object", status_code=status.HTTP_204_NO_CONTENT)
def delete_object(
    key: str = Query(..., description="Object key"),
    authority: DeletionAuthority = Depends(get_deletion_authority),
    principal: Principal = Depends(get_current_principal),
):
    """Delete exactly one object. Admin only; folders are never deleted recursively."""
    authority.delete(key, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/move", response_model=MoveResponse)
def move_object(
    request: MoveRequest,
    authority: DeletionAuthority = Depends(get_deletion_authority),
    principal: Principal = Depends(get_current_principal),
):
    """
    Rename or move an object (copy, then delete). Admin only.

    A 409 response means the copy exists but the source could not be removed.
    """
    result = authority.move(request.from_key, request.to_key, principal)
    return MoveResponse(from_key=result.from_key, to_key=result.to_key)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete(
    request: BulkDeleteRequest,
    authority: DeletionAuthority = Depends(get_deletion_authority),
    principal: Principal = Depends(get_current_principal),
):
    """Delete several objects, reporting the outcome per key. Admin only."""
    result = authority.bulk_delete(request.keys, principal)
    return BulkDeleteResponse(deleted=result.deleted, failed=result.failed)

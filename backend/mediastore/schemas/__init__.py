"""
Pydantic schemas for API request/response validation.
"""
from mediastore.schemas.files import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    ErrorResponse,
    FolderSummaryResponse,
    ImageUploadResponse,
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

__all__ = [
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    "ErrorResponse",
    "FolderSummaryResponse",
    "ImageUploadResponse",
    "ListResponse",
    "MoveRequest",
    "MoveResponse",
    "ObjectResponse",
    "ReadPresignResponse",
    "SummaryResponse",
    "UploadPresignRequest",
    "UploadPresignResponse",
    "YearMonthsResponse",
]

"""
Pydantic schemas for the file browser and image endpoints.

The browser frontend speaks camelCase; fields are snake_case here and
serialized through aliases. Requests accept either form.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mediastore.storage.blob_store import StoredObject
from mediastore.storage import listing


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ObjectResponse(CamelModel):
    """One listed object. Listings carry keys only; URLs are signed on demand."""
    key: str
    name: str
    size: int
    content_type: str
    last_modified: Optional[datetime] = None
    is_image: bool = False

    @classmethod
    def from_stored(cls, obj: StoredObject) -> "ObjectResponse":
        return cls(
            key=obj.key,
            name=obj.name,
            size=obj.size,
            content_type=obj.content_type,
            last_modified=obj.last_modified,
            is_image=listing.is_image(obj),
        )


class YearMonthsResponse(CamelModel):
    year: int
    counts: List[int] = Field(..., description="Twelve counts, January first")
    total: int

    @classmethod
    def from_table(cls, row: listing.YearMonths) -> "YearMonthsResponse":
        return cls(year=row.year, counts=row.counts, total=row.total)


class ListResponse(CamelModel):
    """Schema for a folder listing."""
    prefix: str
    folders: List[str] = Field(default_factory=list)
    objects: List[ObjectResponse] = Field(default_factory=list)
    next_token: Optional[str] = Field(None, description="Pass back as `token` to load more")
    truncated: bool = Field(False, description="Recursive listing stopped at the page cap")
    months: Optional[List[YearMonthsResponse]] = Field(
        None, description="Year/month counts, recursive listings only"
    )


class FolderSummaryResponse(CamelModel):
    prefix: str
    label: str
    object_count: int
    total_size: int
    latest_upload_at: Optional[datetime] = None

    @classmethod
    def from_summary(cls, summary: listing.FolderSummary) -> "FolderSummaryResponse":
        return cls(
            prefix=summary.prefix,
            label=summary.label,
            object_count=summary.object_count,
            total_size=summary.total_size,
            latest_upload_at=summary.latest_upload_at,
        )


class SummaryResponse(CamelModel):
    prefix: str
    folders: List[FolderSummaryResponse] = Field(default_factory=list)
    truncated: bool = False


class UploadPresignRequest(CamelModel):
    """Request schema for presigned upload URL generation."""
    prefix: str = Field(..., description="Target folder, e.g. 'clients/42/gallery/'")
    filename: str = Field(..., description="Original filename")
    content_type: Optional[str] = Field(None, description="MIME type the client will send")
    size: int = Field(..., description="File size in bytes")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "prefix": "clients/42/gallery/",
                "filename": "photo.jpg",
                "contentType": "image/jpeg",
                "size": 1048576,
            }
        },
    )


class UploadPresignResponse(CamelModel):
    """Response schema for presigned upload URL."""
    url: str = Field(..., description="Presigned PUT URL for direct upload")
    key: str = Field(..., description="Object key in storage bucket")
    expires_in: int = Field(..., description="URL expiration time in seconds")
    content_type: str = Field(..., description="Content type the PUT must send")
    public_url: Optional[str] = None


class ReadPresignResponse(CamelModel):
    """Response schema for a presigned read URL."""
    key: str
    url: str
    expires_at: datetime


class MoveRequest(CamelModel):
    from_key: str
    to_key: str


class MoveResponse(CamelModel):
    from_key: str
    to_key: str


class BulkDeleteRequest(CamelModel):
    keys: List[str] = Field(..., min_length=1)


class BulkDeleteResponse(CamelModel):
    deleted: List[str]
    failed: Dict[str, str] = Field(default_factory=dict, description="Key to error message")


class ImageUploadResponse(CamelModel):
    url: str = Field(..., description="Public URL of the optimized image")


class ErrorResponse(BaseModel):
    detail: str
    error: str

"""
Image upload endpoint.

Unlike the file browser, images do pass through the backend: they are
resized and re-encoded before storage, and the response carries the public
URL of the optimized copy.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from mediastore.auth.dependencies import get_current_principal
from mediastore.config import StorageConfig
from mediastore.schemas.files import ImageUploadResponse
from mediastore.storage.deletion import Principal
from mediastore.storage.dependencies import get_image_optimizer, get_storage_config
from mediastore.storage.errors import InvalidInputError
from mediastore.storage.images import ImageOptimizer

router = APIRouter()


@router.post("", response_model=ImageUploadResponse)
def upload_image(
    file: UploadFile = File(...),
    folder: str = Form(..., description="Destination folder, e.g. 'clients/42/gallery'"),
    previous_url: Optional[str] = Form(None, alias="previousUrl"),
    optimizer: ImageOptimizer = Depends(get_image_optimizer),
    config: StorageConfig = Depends(get_storage_config),
    principal: Principal = Depends(get_current_principal),
):
    """
    Optimize and store an uploaded image.

    When ``previousUrl`` is given, the image it points to is removed after
    the new one is stored. Failure to remove it never fails the upload.
    """
    # Read one byte past the limit to detect oversize uploads without
    # buffering arbitrarily large bodies
    data = file.file.read(config.max_upload_bytes + 1)
    if len(data) > config.max_upload_bytes:
        raise InvalidInputError(f"File too large (limit {config.max_upload_bytes} bytes)")
    if not data:
        raise InvalidInputError("Uploaded file is empty")

    url = optimizer.optimize(
        data,
        content_type=file.content_type or "",
        destination_folder=folder,
        previous_asset_url=previous_url,
    )
    return ImageUploadResponse(url=url)

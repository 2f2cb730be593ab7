"""
routers/uploads.py — Vehicle image uploads

Business Rules:
- Files must be real images (magic bytes) within the configured size limit
- The returned URLs are what intake stores in Vehicle.images and what
  dispatch may send as a cover image

Called by: main.py (router mount)
Depends on: services/storage
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from ..dependencies import require_user
from ..models import User
from ..services.storage import save_vehicle_image

router = APIRouter(tags=["uploads"])


@router.post("/api/uploads/vehicle-images", status_code=201)
async def upload_vehicle_images(
    files: list[UploadFile] = File(...),
    user: User = Depends(require_user),
):
    urls = []
    for upload in files:
        content = await upload.read()
        try:
            urls.append(save_vehicle_image(content, upload.filename or "", user.id))
        except ValueError as e:
            raise HTTPException(400, str(e))
    return {"urls": urls}

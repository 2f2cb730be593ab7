"""Documents API — vehicle document extraction and purchase order PDFs."""

import asyncio

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import Response
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_user
from ..models import User
from ..rate_limit import DOCUMENT_LIMIT, limiter
from ..utils.file_validation import PDF_TYPES, validate_file

router = APIRouter(tags=["documents"])


@router.post("/api/documents/vehicle-extract")
@limiter.limit(DOCUMENT_LIMIT)
async def extract_vehicle(
    request: Request,
    file: UploadFile = File(...),
    user: User = Depends(require_user),
):
    """Read brand/model/year/plate/chassis from a vehicle document PDF."""
    from ..services.vehicle_extraction import extract_vehicle_fields

    content = await file.read()
    check = validate_file(content, file.filename or "", PDF_TYPES)
    if not check["valid"]:
        raise HTTPException(400, check["reason"])
    try:
        return await extract_vehicle_fields(content)
    except ValueError as e:
        raise HTTPException(422, str(e))


@router.get("/api/purchase-orders/{order_id}/pdf")
@limiter.limit(DOCUMENT_LIMIT)
async def download_purchase_order_pdf(
    order_id: int,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Generate and download a purchase order PDF."""
    from ..services.document_service import generate_purchase_order_pdf

    try:
        loop = asyncio.get_running_loop()
        pdf_bytes = await loop.run_in_executor(
            None, generate_purchase_order_pdf, order_id, user.id, db
        )
    except ValueError as e:
        raise HTTPException(404, str(e))
    except Exception as e:
        logger.error(f"PDF generation failed for purchase order {order_id}: {e}")
        raise HTTPException(500, "PDF generation failed")

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=ordem-de-compra-{order_id}.pdf"},
    )

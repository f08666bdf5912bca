from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from nearbuy.api.deps import PipelineFactory, get_pipeline_factory
from nearbuy.core.errors import VisionError
from nearbuy.schemas.identify import IdentificationMode, IdentificationResult

router = APIRouter(prefix="/v1", tags=["identify"])


@router.post("/identify", response_model=IdentificationResult)
async def identify(
    image: UploadFile = File(...),
    mode: IdentificationMode = Form(IdentificationMode.DESCRIPTION),
    factory: PipelineFactory = Depends(get_pipeline_factory),
):
    """
    Identification only: barcode mode returns {"kind": "upc", "code"},
    description mode returns {"kind": "description", "text"}.
    """
    img_bytes = await image.read()
    try:
        return await factory.vision().identify(
            img_bytes,
            mode=mode,
            mime_type=image.content_type or "image/png",
        )
    except VisionError as e:
        # Upstream / config / parse problems become 422 with the redacted vendor details
        raise HTTPException(
            status_code=422,
            detail={
                "error": "vision_error",
                "message": e.user_message,
                "upstream": e.message,
                "status_code": e.status_code,
                "body": e.body,
            },
        )

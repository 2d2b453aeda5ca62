from __future__ import annotations

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import Response

from swapride_chat.devserver.deps import CurrentPrincipal, StoreDep
from swapride_chat.devserver.exceptions import ValidationError

router = APIRouter(prefix="/api/v1", tags=["uploads"])


@router.post("/upload")
async def upload_image(
    principal: CurrentPrincipal,
    store: StoreDep,
    image: UploadFile = File(...),
) -> dict[str, str]:
    content_type = image.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationError("Only images can be uploaded")
    upload = store.save_upload(image.filename or "upload", content_type, await image.read())
    return {"url": f"/api/v1/uploads/{upload.id}"}


@router.get("/uploads/{upload_id}")
async def get_upload(upload_id: str, store: StoreDep) -> Response:
    upload = store.get_upload(upload_id)
    return Response(content=upload.data, media_type=upload.content_type)

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile, status

from controllers.image_controller import list_images, upload_image
from models.errors import UploadError

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["images"])


@router.get("/images")
async def list_images_route(request: Request):
	"""Return all stored image records, newest first."""
	try:
		return await list_images(request)
	except UploadError:
		raise
	except Exception as exc:
		LOGGER.exception("Unexpected error listing images")
		raise UploadError("Failed to fetch images", detail=str(exc)) from exc


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_image_route(
	request: Request,
	image: Optional[UploadFile] = File(None),
	name: Optional[str] = Form(None),
):
	"""Store an uploaded image and return the created record.

	Args:
		request: The FastAPI request containing application state.
		image: Uploaded image file (multipart field `image`).
		name: Optional display name (multipart field `name`).
	"""
	try:
		return await upload_image(request, image, name)
	except UploadError:
		raise
	except Exception as exc:
		LOGGER.exception("Unexpected error during upload")
		raise UploadError("Upload failed", detail=str(exc)) from exc

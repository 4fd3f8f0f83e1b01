from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from media_api.services.asset_store import AssetStore, SizeRegistry, size_registry
from media_api.services.editor import acquire_editor
from media_api.services.errors import (
	DuplicateSizeDefinition,
	EditorAcquisitionError,
	ResizeOrSaveError,
	SizeAlreadyExists,
)
from media_api.services.metadata import MetadataExtractor
from media_api.services.sizes import SizeRegistrar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attachments", tags=["attachments"])


@lru_cache()
def get_asset_store() -> AssetStore:
	return AssetStore()


def get_size_registry() -> SizeRegistry:
	return size_registry


@lru_cache()
def get_extractor() -> MetadataExtractor:
	return MetadataExtractor()


class AddSizeRequest(BaseModel):
	name: str = Field(..., min_length=1)
	width: int = Field(0, ge=0)
	height: int = Field(0, ge=0)
	crop: bool = False
	force: bool = False


@router.post("/upload", summary="Upload an image and record its metadata")
async def upload(
	file: UploadFile = File(...),
	store: AssetStore = Depends(get_asset_store),
	extractor: MetadataExtractor = Depends(get_extractor),
):
	data = await file.read()
	attachment_id = store.add_attachment(file.filename or "image.jpg", data, file.content_type)
	record = store.load_metadata(attachment_id)
	path = store.resolve_attachment(attachment_id)
	if path is not None:
		record.file = path.relative_to(store.storage_root.resolve()).as_posix()
		try:
			record.width, record.height = acquire_editor(path).size
		except EditorAcquisitionError as e:
			logger.info("Uploaded file %s is not a readable image: %s", attachment_id, e)
		record.image_meta = extractor.extract(path).to_dict()
	if not store.save_metadata(attachment_id, record):
		raise HTTPException(status_code=500, detail="metadata could not be saved")
	return {"attachment_id": attachment_id, "metadata": record.to_dict()}


@router.get("/{attachment_id}", summary="Get the stored metadata record")
def get_attachment(attachment_id: str, store: AssetStore = Depends(get_asset_store)):
	if store.resolve_attachment(attachment_id) is None:
		raise HTTPException(status_code=404, detail="attachment not found")
	return {"attachment_id": attachment_id, "metadata": store.load_metadata(attachment_id).to_dict()}


@router.get("/{attachment_id}/image-meta", summary="Read IPTC/EXIF metadata from the file")
def image_meta(
	attachment_id: str,
	store: AssetStore = Depends(get_asset_store),
	extractor: MetadataExtractor = Depends(get_extractor),
):
	path = store.resolve_attachment(attachment_id)
	if path is None:
		raise HTTPException(status_code=404, detail="attachment not found")
	return extractor.extract(path).to_dict()


@router.post("/{attachment_id}/sizes", summary="Create a named size variant")
def add_size(
	attachment_id: str,
	body: AddSizeRequest,
	store: AssetStore = Depends(get_asset_store),
	registry: SizeRegistry = Depends(get_size_registry),
):
	registrar = SizeRegistrar(attachment_id, store, registry)
	if registrar.is_inert:
		raise HTTPException(status_code=404, detail="attachment is not an image")
	try:
		stored = registrar.add_size(body.name, body.width, body.height, body.crop, body.force)
	except (DuplicateSizeDefinition, SizeAlreadyExists) as e:
		raise HTTPException(status_code=409, detail={"code": e.code, "message": e.message})
	except (EditorAcquisitionError, ResizeOrSaveError) as e:
		raise HTTPException(status_code=422, detail={"code": e.code, "message": e.message})
	if stored is None:
		raise HTTPException(status_code=500, detail="metadata could not be saved")
	return {"attachment_id": attachment_id, "name": body.name, "size": stored.to_dict()}

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image

from media_api.config import settings
from media_api.services.errors import EditorAcquisitionError, ResizeOrSaveError, SaveError
from media_api.services.models import SizeDescriptor

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def constrain_dimensions(cur_w: int, cur_h: int, max_w: int = 0, max_h: int = 0) -> Tuple[int, int]:
	"""Scale (cur_w, cur_h) down to fit inside max_w x max_h; 0 means no limit."""
	if not max_w and not max_h:
		return cur_w, cur_h
	ratio = 1.0
	if max_w and cur_w > max_w:
		ratio = min(ratio, max_w / float(cur_w))
	if max_h and cur_h > max_h:
		ratio = min(ratio, max_h / float(cur_h))
	return max(1, int(round(cur_w * ratio))), max(1, int(round(cur_h * ratio)))


def resize_dimensions(
	orig_w: int, orig_h: int, dest_w: int, dest_h: int, crop: bool = False
) -> Optional[Tuple[int, int, int, int, int, int]]:
	"""
	Work out (dst_w, dst_h, src_x, src_y, src_w, src_h) for a resize.
	Returns None when the image is already within the requested bounds.
	"""
	if orig_w <= 0 or orig_h <= 0:
		return None
	if dest_w <= 0 and dest_h <= 0:
		return None

	if crop:
		aspect = orig_w / float(orig_h)
		new_w = min(dest_w, orig_w)
		new_h = min(dest_h, orig_h)
		if not new_w:
			new_w = int(new_h * aspect)
		if not new_h:
			new_h = int(new_w / aspect)
		size_ratio = max(new_w / float(orig_w), new_h / float(orig_h))
		crop_w = int(round(new_w / size_ratio))
		crop_h = int(round(new_h / size_ratio))
		s_x = int(math.floor((orig_w - crop_w) / 2))
		s_y = int(math.floor((orig_h - crop_h) / 2))
	else:
		crop_w, crop_h = orig_w, orig_h
		s_x = s_y = 0
		new_w, new_h = constrain_dimensions(orig_w, orig_h, dest_w, dest_h)

	if new_w >= orig_w and new_h >= orig_h:
		return None
	return new_w, new_h, s_x, s_y, crop_w, crop_h


class ImageEditor:
	"""Pillow-backed editor bound to one source file."""

	def __init__(self, file_path: Path, image: Image.Image, fmt: str, quality: int) -> None:
		self.file_path = file_path
		# resizes always start from the loaded original
		self.source = image
		self.image = image
		self.format = fmt
		self.quality = quality

	@property
	def size(self) -> Tuple[int, int]:
		return self.image.size

	def resize(self, max_w: int, max_h: int, crop: bool = False) -> None:
		w, h = self.source.size
		dims = resize_dimensions(w, h, int(max_w or 0), int(max_h or 0), crop)
		if dims is None:
			raise ResizeOrSaveError("Could not calculate resized image dimensions")
		dst_w, dst_h, s_x, s_y, src_w, src_h = dims
		img = self.source
		if crop:
			img = img.crop((s_x, s_y, s_x + src_w, s_y + src_h))
		try:
			self.image = img.resize((dst_w, dst_h), Image.LANCZOS)
		except (OSError, ValueError) as e:
			raise ResizeOrSaveError(f"Image resize failed: {e}") from e

	def generate_filename(self) -> Path:
		w, h = self.image.size
		return self.file_path.with_name(f"{self.file_path.stem}-{w}x{h}{self.file_path.suffix}")

	def save(self, dest: Optional[PathLike] = None) -> SizeDescriptor:
		out_path = Path(dest) if dest is not None else self.generate_filename()
		img = self.image
		params = {}
		if self.format == "JPEG":
			if img.mode not in ("RGB", "L"):
				img = img.convert("RGB")
			params = {"quality": self.quality, "optimize": True}
		try:
			out_path.parent.mkdir(parents=True, exist_ok=True)
			img.save(out_path, format=self.format, **params)
		except (OSError, ValueError) as e:
			raise SaveError(f"Image file could not be written: {e}") from e
		logger.debug("Saved %s (%dx%d)", out_path, img.width, img.height)
		return SizeDescriptor(
			file=out_path.name,
			width=img.width,
			height=img.height,
			mime_type=Image.MIME.get(self.format, "application/octet-stream"),
			path=str(out_path.resolve()),
		)


def acquire_editor(file_path: Optional[PathLike]) -> ImageEditor:
	if not file_path:
		raise EditorAcquisitionError("No image file to edit")
	p = Path(file_path)
	try:
		img = Image.open(p)
		img.load()
	except FileNotFoundError as e:
		raise EditorAcquisitionError(f"File not found: {p}") from e
	except (OSError, ValueError) as e:
		raise EditorAcquisitionError(f"Could not read image {p.name}: {e}") from e
	fmt = "JPEG" if img.format == "MPO" else (img.format or "PNG")
	return ImageEditor(p, img, fmt, settings.jpeg_quality)

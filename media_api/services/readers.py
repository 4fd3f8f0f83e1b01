from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import piexif
import piexif.helper
from PIL import Image, IptcImagePlugin

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Windows XP tags are reported under the names legacy EXIF readers use
_XP_TAG_NAMES = {
	"XPTitle": "Title",
	"XPComment": "Comments",
	"XPAuthor": "Author",
	"XPKeywords": "Keywords",
	"XPSubject": "Subject",
}


class ImageType(str, Enum):
	JPEG = "jpeg"
	PNG = "png"
	GIF = "gif"
	BMP = "bmp"
	WEBP = "webp"
	TIFF_II = "tiff_ii"
	TIFF_MM = "tiff_mm"
	OTHER = "other"


def detect_image_type(file_path: PathLike) -> Optional[ImageType]:
	try:
		with Image.open(file_path) as img:
			fmt = (img.format or "").upper()
	except Exception as e:
		logger.debug("Not a readable image %s: %s", file_path, e)
		return None
	if fmt == "TIFF":
		with open(file_path, "rb") as f:
			head = f.read(2)
		return ImageType.TIFF_MM if head == b"MM" else ImageType.TIFF_II
	# multi-picture JPEGs from cameras
	if fmt == "MPO":
		return ImageType.JPEG
	try:
		return ImageType(fmt.lower())
	except ValueError:
		return ImageType.OTHER


def read_iptc(file_path: PathLike) -> Optional[Dict[str, List[Any]]]:
	"""
	Return the IPTC datasets of the image keyed "record#dataset" ("2#105"),
	each holding the list of raw values. None when the file has no IPTC block.
	"""
	try:
		with Image.open(file_path) as img:
			info = IptcImagePlugin.getiptcinfo(img)
	except Exception as e:
		logger.debug("IPTC read failed for %s: %s", file_path, e)
		return None
	if not info:
		return None
	out: Dict[str, List[Any]] = {}
	for (record, dataset), value in info.items():
		key = f"{record}#{dataset:03d}"
		out[key] = list(value) if isinstance(value, list) else [value]
	return out


def _xp_text(value: Any) -> str:
	raw = bytes(value) if isinstance(value, (tuple, list)) else value
	if isinstance(raw, bytes):
		return raw.decode("utf-16-le", errors="ignore").rstrip("\x00")
	return str(raw)


def read_exif(file_path: PathLike) -> Optional[Dict[str, Any]]:
	"""
	Return EXIF tags of the 0th and Exif IFDs keyed by tag name. ASCII values
	stay raw bytes; rationals are (numerator, denominator) tuples.
	"""
	try:
		ex = piexif.load(str(file_path))
	except Exception as e:
		logger.debug("EXIF read failed for %s: %s", file_path, e)
		return None
	out: Dict[str, Any] = {}
	for ifd in ("0th", "Exif"):
		for tag, value in (ex.get(ifd) or {}).items():
			name = piexif.TAGS[ifd].get(tag, {}).get("name")
			if not name:
				continue
			if name in _XP_TAG_NAMES:
				out[_XP_TAG_NAMES[name]] = _xp_text(value)
			elif name == "UserComment":
				try:
					out[name] = piexif.helper.UserComment.load(value)
				except ValueError:
					out[name] = value
			else:
				out[name] = value
	return out or None

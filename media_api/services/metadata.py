from __future__ import annotations

import calendar
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Union

from media_api.services import readers
from media_api.services.models import ImageMetadataFields
from media_api.services.readers import ImageType

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
PostProcess = Callable[[ImageMetadataFields, PathLike, Optional[ImageType]], Optional[ImageMetadataFields]]

DEFAULT_EXIF_TYPES = frozenset({ImageType.JPEG, ImageType.TIFF_II, ImageType.TIFF_MM})
# fields that may carry legacy single-byte text
TEXT_FIELDS = ("title", "caption", "credit", "copyright", "camera", "iso")
# a description shorter than this is assumed to be a title
TITLE_MAX_CHARS = 80

_TRIM = " \t\n\r\x00\x0b"
_IPTC_TIME = re.compile(r"^(\d{2})(\d{2})(\d{2})(?:([+-])(\d{2}):?(\d{2}))?$")


def _present(v: Any) -> bool:
	if v is None:
		return False
	if isinstance(v, (str, bytes, tuple, list)):
		return len(v) > 0
	return v != 0


def _text(v: Any) -> str:
	# bytes are kept byte-for-byte (latin-1) until encoding normalisation
	if isinstance(v, bytes):
		return v.decode("latin-1")
	return str(v)


def _trim(v: Any) -> str:
	return _text(v).strip(_TRIM)


def normalize_encoding(value: str) -> str:
	"""
	Reinterpret text read as raw bytes: valid UTF-8 is decoded as UTF-8,
	anything else is taken as ISO-8859-1.
	"""
	if not value:
		return value
	try:
		raw = value.encode("latin-1")
	except UnicodeEncodeError:
		return value
	try:
		return raw.decode("utf-8")
	except UnicodeDecodeError:
		return value


def frac_to_decimal(value: Any) -> float:
	"""Convert an EXIF rational ("n/d", (n, d) or a plain number) to a float. n/0 is 0."""
	if isinstance(value, (tuple, list)):
		if len(value) == 2 and all(isinstance(x, (int, float)) for x in value):
			num, den = value
			return float(num) / float(den) if den else 0.0
		return frac_to_decimal(value[0]) if value else 0.0
	if isinstance(value, bool):
		return 0.0
	if isinstance(value, (int, float)):
		return float(value)
	text = _trim(value)
	if "/" not in text:
		try:
			return float(text)
		except ValueError:
			return 0.0
	num, _, den = text.partition("/")
	try:
		n = float(num)
		d = float(den)
	except ValueError:
		return 0.0
	if not d:
		return 0.0
	return n / d


def decimal_text(value: float) -> str:
	return "{:.14G}".format(value)


def exif_date_to_timestamp(value: Any) -> int:
	try:
		dt = datetime.strptime(_trim(value), "%Y:%m:%d %H:%M:%S")
	except ValueError:
		return 0
	return calendar.timegm(dt.timetuple())


def iptc_date_to_timestamp(date_value: Any, time_value: Any) -> int:
	"""Combine IPTC 2:55 (CCYYMMDD) and 2:60 (HHMMSS[+-HHMM]) into epoch seconds."""
	m = _IPTC_TIME.match(_trim(time_value))
	if not m:
		return 0
	hh, mm, ss, sign, off_h, off_m = m.groups()
	tz = timezone.utc
	if sign:
		offset = timedelta(hours=int(off_h), minutes=int(off_m))
		tz = timezone(offset if sign == "+" else -offset)
	try:
		day = datetime.strptime(_trim(date_value), "%Y%m%d")
		dt = day.replace(hour=int(hh), minute=int(mm), second=int(ss), tzinfo=tz)
	except ValueError:
		return 0
	return int(dt.timestamp())


def _first(values: Any) -> Any:
	if isinstance(values, (list, tuple)):
		return values[0] if values else None
	return values


class MetadataExtractor:
	"""
	Reads IPTC and EXIF from an image file and merges them into one
	ImageMetadataFields. EXIF values overwrite IPTC ones key by key.

	`reader` must expose read_iptc, read_exif and detect_image_type; a missing
	callable disables that source. `path_filter` may substitute the path before
	reading and `post_process(fields, path, image_type)` may replace the result.
	"""

	def __init__(
		self,
		reader: Any = readers,
		allowed_types: Optional[Iterable[ImageType]] = None,
		path_filter: Optional[Callable[[PathLike], PathLike]] = None,
		post_process: Optional[PostProcess] = None,
	) -> None:
		self.reader = reader
		self.allowed_types = frozenset(allowed_types) if allowed_types is not None else DEFAULT_EXIF_TYPES
		self.path_filter = path_filter
		self.post_process = post_process

	def extract(self, file_path: PathLike) -> ImageMetadataFields:
		if self.path_filter is not None:
			file_path = self.path_filter(file_path)
		image_type = self._read("detect_image_type", file_path)

		meta: Dict[str, Any] = {}
		meta.update(self.iptc_fields(file_path))
		meta.update(self.exif_fields(file_path, image_type))

		for key in TEXT_FIELDS:
			if meta.get(key):
				meta[key] = normalize_encoding(meta[key])

		fields = ImageMetadataFields(**meta)
		if self.post_process is not None:
			processed = self.post_process(fields, file_path, image_type)
			if processed is not None:
				fields = processed
		return fields

	def _read(self, name: str, file_path: PathLike) -> Any:
		fn = getattr(self.reader, name, None)
		if fn is None:
			return None
		try:
			return fn(file_path)
		except Exception as e:
			logger.debug("%s failed for %s: %s", name, file_path, e)
			return None

	def iptc_fields(self, file_path: PathLike) -> Dict[str, Any]:
		meta: Dict[str, Any] = {}
		iptc = self._read("read_iptc", file_path)
		if not iptc:
			return meta
		try:
			self._apply_iptc(iptc, meta)
		except Exception as e:
			logger.debug("Unusable IPTC data in %s: %s", file_path, e)
		return meta

	def exif_fields(self, file_path: PathLike, image_type: Optional[ImageType]) -> Dict[str, Any]:
		meta: Dict[str, Any] = {}
		if image_type not in self.allowed_types:
			return meta
		exif = self._read("read_exif", file_path)
		if not exif:
			return meta
		try:
			self._apply_exif(exif, meta)
		except Exception as e:
			logger.debug("Unusable EXIF data in %s: %s", file_path, e)
		return meta

	@staticmethod
	def _apply_iptc(iptc: Dict[str, Any], meta: Dict[str, Any]) -> None:
		def tag(code: str) -> Any:
			value = _first(iptc.get(code))
			return value if _present(value) else None

		# headline, then object name
		if tag("2#105") is not None:
			meta["title"] = _trim(tag("2#105"))
		elif tag("2#005") is not None:
			meta["title"] = _trim(tag("2#005"))

		# caption/abstract; short ones are usually titles
		if tag("2#120") is not None:
			caption = _trim(tag("2#120"))
			if not meta.get("title"):
				if len(caption) < TITLE_MAX_CHARS:
					meta["title"] = caption
				else:
					meta["caption"] = caption
			elif caption != meta["title"]:
				meta["caption"] = caption

		# credit, then by-line
		if tag("2#110") is not None:
			meta["credit"] = _trim(tag("2#110"))
		elif tag("2#080") is not None:
			meta["credit"] = _trim(tag("2#080"))

		if tag("2#055") is not None and tag("2#060") is not None:
			meta["created_timestamp"] = iptc_date_to_timestamp(tag("2#055"), tag("2#060"))

		if tag("2#116") is not None:
			meta["copyright"] = _trim(tag("2#116"))

	@staticmethod
	def _apply_exif(exif: Dict[str, Any], meta: Dict[str, Any]) -> None:
		def tag(name: str) -> Any:
			value = exif.get(name)
			return value if _present(value) else None

		if tag("Title") is not None:
			meta["title"] = _trim(tag("Title"))

		description = tag("ImageDescription")
		if description is not None:
			if not meta.get("title") and len(_text(description)) < TITLE_MAX_CHARS:
				meta["title"] = _trim(description)
				comment = tag("UserComment")
				if comment is not None and _trim(comment) != meta["title"]:
					meta["caption"] = _trim(comment)
			elif _trim(description) != meta.get("title", ""):
				meta["caption"] = _trim(description)
		elif tag("Comments") is not None and _trim(tag("Comments")) != meta.get("title", ""):
			meta["caption"] = _trim(tag("Comments"))

		if tag("Artist") is not None:
			meta["credit"] = _trim(tag("Artist"))
		elif tag("Author") is not None:
			meta["credit"] = _trim(tag("Author"))

		if tag("Copyright") is not None:
			meta["copyright"] = _trim(tag("Copyright"))
		if tag("FNumber") is not None:
			meta["aperture"] = round(frac_to_decimal(tag("FNumber")), 2)
		if tag("Model") is not None:
			meta["camera"] = _trim(tag("Model"))
		if tag("DateTimeDigitized") is not None:
			meta["created_timestamp"] = exif_date_to_timestamp(tag("DateTimeDigitized"))
		if tag("FocalLength") is not None:
			meta["focal_length"] = decimal_text(frac_to_decimal(tag("FocalLength")))
		if tag("ISOSpeedRatings") is not None:
			meta["iso"] = _trim(_first(tag("ISOSpeedRatings")))
		if tag("ExposureTime") is not None:
			meta["shutter_speed"] = decimal_text(frac_to_decimal(tag("ExposureTime")))


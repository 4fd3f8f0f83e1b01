from __future__ import annotations

import json
import logging
import mimetypes
import os
import re
import tempfile
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from media_api.config import settings
from media_api.services.models import MetadataRecord

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _slugify(text: str) -> str:
	return "".join(ch if (ch.isalnum() or ch in ("-", "_")) else "-" for ch in text).strip("-_").lower()


class AssetStore:
	"""
	Attachments kept as JSON documents, one per attachment:
	{"file": <path relative to storage_root>, "mime_type": ..., "metadata": {...}}
	"""

	def __init__(self, metadata_dir: Optional[Path] = None, storage_root: Optional[Path] = None) -> None:
		self.metadata_dir = Path(metadata_dir or settings.metadata_dir)
		self.storage_root = Path(storage_root or settings.storage_root)
		self.metadata_dir.mkdir(parents=True, exist_ok=True)
		self.storage_root.mkdir(parents=True, exist_ok=True)

	def _doc_path(self, attachment_id: str) -> Optional[Path]:
		if not attachment_id or not _ID_RE.match(attachment_id):
			return None
		return self.metadata_dir / f"{attachment_id}.json"

	def _read_doc(self, attachment_id: str) -> Optional[Dict[str, Any]]:
		p = self._doc_path(attachment_id)
		if p is None or not p.exists():
			return None
		try:
			with p.open("r", encoding="utf-8") as f:
				return json.load(f)
		except json.JSONDecodeError as e:
			logger.debug("Unreadable attachment document %s: %s", p, e)
			return None

	def _write_doc(self, attachment_id: str, doc: Dict[str, Any]) -> None:
		p = self._doc_path(attachment_id)
		if p is None:
			raise ValueError(f"Invalid attachment id: {attachment_id!r}")
		fd, tmp = tempfile.mkstemp(dir=str(self.metadata_dir), suffix=".tmp")
		try:
			with os.fdopen(fd, "w", encoding="utf-8") as f:
				json.dump(doc, f, indent=2)
			os.replace(tmp, p)
		except BaseException:
			if os.path.exists(tmp):
				os.unlink(tmp)
			raise

	def add_attachment(self, filename: str, data: bytes, mime_type: Optional[str] = None) -> str:
		name = Path(filename).name or "image"
		stem = _slugify(Path(name).stem) or "image"
		attachment_id = f"{stem}_{uuid.uuid4().hex[:8]}"
		rel = Path(attachment_id) / f"{stem}{Path(name).suffix.lower()}"
		dest = self.storage_root / rel
		dest.parent.mkdir(parents=True, exist_ok=True)
		with dest.open("wb") as f:
			f.write(data)
		mime = mime_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
		self._write_doc(attachment_id, {"file": rel.as_posix(), "mime_type": mime, "metadata": {}})
		logger.info("Stored attachment %s (%s)", attachment_id, mime)
		return attachment_id

	def attachment_ids(self) -> List[str]:
		return sorted(p.stem for p in self.metadata_dir.glob("*.json"))

	def resolve_attachment(self, attachment_id: str) -> Optional[Path]:
		doc = self._read_doc(attachment_id)
		if not doc or not doc.get("file"):
			return None
		p = Path(doc["file"])
		if not p.is_absolute():
			p = (self.storage_root / p).resolve()
		return p if p.exists() else None

	def is_image(self, attachment_id: str) -> bool:
		doc = self._read_doc(attachment_id)
		return bool(doc) and str(doc.get("mime_type", "")).startswith("image/")

	def load_metadata(self, attachment_id: str) -> MetadataRecord:
		doc = self._read_doc(attachment_id)
		return MetadataRecord.from_dict((doc or {}).get("metadata"))

	def save_metadata(self, attachment_id: str, record: MetadataRecord) -> bool:
		doc = self._read_doc(attachment_id)
		if doc is None:
			logger.warning("Cannot save metadata for unknown attachment %s", attachment_id)
			return False
		doc["metadata"] = record.to_dict()
		try:
			self._write_doc(attachment_id, doc)
		except OSError as e:
			logger.warning("Saving metadata for %s failed: %s", attachment_id, e)
			return False
		return True


class SizeRegistry:
	"""Process-wide named size definitions (name -> max width, max height, crop)."""

	def __init__(self, sizes: Optional[Dict[str, Iterable[Any]]] = None) -> None:
		self._sizes: Dict[str, Tuple[int, int, bool]] = {}
		for name, spec in (sizes or {}).items():
			w, h, *rest = list(spec)
			self.register(name, int(w), int(h), bool(rest[0]) if rest else False)

	def register(self, name: str, width: int, height: int, crop: bool = False) -> None:
		self._sizes[name] = (width, height, crop)

	def unregister(self, name: str) -> bool:
		return self._sizes.pop(name, None) is not None

	def has(self, name: str) -> bool:
		return name in self._sizes

	def get(self, name: str) -> Optional[Tuple[int, int, bool]]:
		return self._sizes.get(name)

	def names(self) -> Set[str]:
		return set(self._sizes)


size_registry = SizeRegistry(settings.image_sizes)

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AttachmentRef:
	attachment_id: str
	file_path: Path


@dataclass
class SizeDescriptor:
	"""
	Result of an editor save. `path` is the absolute location of the written
	file; it is only meaningful on the machine that wrote it and is never persisted.
	"""
	file: str
	width: int
	height: int
	mime_type: str
	path: Optional[str] = None

	def stripped(self) -> "SizeDescriptor":
		return replace(self, path=None)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"file": self.file,
			"width": self.width,
			"height": self.height,
			"mime-type": self.mime_type,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "SizeDescriptor":
		return cls(
			file=str(data.get("file", "")),
			width=int(data.get("width", 0)),
			height=int(data.get("height", 0)),
			mime_type=str(data.get("mime-type", data.get("mime_type", ""))),
		)


@dataclass
class MetadataRecord:
	width: int = 0
	height: int = 0
	file: str = ""
	sizes: Dict[str, SizeDescriptor] = field(default_factory=dict)
	image_meta: Dict[str, Any] = field(default_factory=dict)
	# keys this service does not interpret, kept so a save does not drop them
	extra: Dict[str, Any] = field(default_factory=dict)

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = dict(self.extra)
		out.update({
			"width": self.width,
			"height": self.height,
			"file": self.file,
			"sizes": {name: d.to_dict() for name, d in self.sizes.items()},
			"image_meta": dict(self.image_meta),
		})
		return out

	@classmethod
	def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MetadataRecord":
		if not data:
			return cls()
		known = {"width", "height", "file", "sizes", "image_meta"}
		sizes = data.get("sizes") or {}
		return cls(
			width=int(data.get("width") or 0),
			height=int(data.get("height") or 0),
			file=str(data.get("file") or ""),
			sizes={name: SizeDescriptor.from_dict(d) for name, d in sizes.items()},
			image_meta=dict(data.get("image_meta") or {}),
			extra={k: v for k, v in data.items() if k not in known},
		)


@dataclass
class ImageMetadataFields:
	aperture: float = 0
	credit: str = ""
	camera: str = ""
	caption: str = ""
	created_timestamp: int = 0
	copyright: str = ""
	focal_length: str = "0"
	iso: str = "0"
	shutter_speed: str = "0"
	title: str = ""

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)

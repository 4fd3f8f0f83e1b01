from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
	storage_root: Path = Field(Path("media_api/uploads"), alias="MEDIA_STORAGE_ROOT")
	metadata_dir: Path = Field(Path("media_api/attachments"), alias="MEDIA_METADATA_DIR")

	# Process-wide size definitions: name -> [max_w, max_h, crop]
	image_sizes: Dict[str, List] = Field(
		default_factory=lambda: {
			"thumbnail": [150, 150, True],
			"medium": [300, 300, False],
			"large": [1024, 1024, False],
		},
		alias="MEDIA_IMAGE_SIZES",
	)
	jpeg_quality: int = Field(82, alias="MEDIA_JPEG_QUALITY")

	class Config:
		env_file = ".env"
		case_sensitive = True
		extra = "ignore"


settings = Settings()

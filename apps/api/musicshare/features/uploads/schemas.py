from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field


class UploadPolicy(BaseModel):
    field: str = Field(..., description="Multipart form field name")
    kind: Literal["audio", "image"]
    prefix: str = Field(..., description="Prefix of generated filenames")
    allowed_mime_types: frozenset[str]
    max_bytes: int = Field(..., gt=0)
    label: str = Field(..., description="Human readable list of accepted formats")


@dataclass
class StoredUploads:
    audio_file: str | None = None
    background_image: str | None = None

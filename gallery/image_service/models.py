from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, model_serializer
from pydantic.alias_generators import to_camel
from uuid import uuid4

SortKey = Literal["uploadedAt", "name"]
SortOrder = Literal["asc", "desc"]

def new_image_id() -> str:
    """Generates a new unique image ID."""
    return str(uuid4())

class CamelModel(BaseModel):
    # camelCase on disk and on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class ImageRecord(CamelModel):
    # keys written by other tools survive a rewrite of the document
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_image_id)
    filename: str
    name: str
    original_name: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    width: Optional[int] = None
    height: Optional[int] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None

    @model_serializer(mode="wrap")
    def _drop_missing(self, handler) -> Dict[str, Any]:
        # Optional fields that were never supplied are left out of the document
        return {k: v for k, v in handler(self).items() if v is not None}

class MetadataDocument(CamelModel):
    images: List[ImageRecord] = []

class ListImagesResponse(CamelModel):
    images: List[ImageRecord]
    total: int
    search: Optional[str] = None

class UpdateImageRequest(CamelModel):
    # Only the display name is mutable; anything else in the body is ignored.
    name: Optional[str] = Field(None, min_length=1)

class DeleteImageResponse(BaseModel):
    message: str
    id: str

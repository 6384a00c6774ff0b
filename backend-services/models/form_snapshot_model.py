from pydantic import BaseModel, Field


class UploadedFileInfo(BaseModel):
    field_name: str = Field(..., min_length=1)
    filename: str | None = Field(None)
    size: int | None = Field(None, ge=0)
    content_type: str | None = Field(None)


class FormSnapshot(BaseModel):
    """Decoded form as seen by the app: string fields plus file metadata, never bytes."""

    fields: dict[str, list[str]] = Field(default_factory=dict)
    files: list[UploadedFileInfo] = Field(default_factory=list)

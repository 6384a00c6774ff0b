from pydantic import BaseModel, Field


class ProblemResponseModel(BaseModel):
    status: int = Field(500, ge=400, le=599)

    title: str = Field('Server error', min_length=1, max_length=255)

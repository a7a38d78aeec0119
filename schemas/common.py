from pydantic import BaseModel, Field


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class MessageResponse(BaseModel):
    """Plain acknowledgement for operations without a resource to return"""

    message: str = Field(..., description="Human readable outcome")

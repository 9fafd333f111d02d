"""Tag API schemas."""

from typing import Dict, Union

from pydantic import BaseModel, Field


class TagUpdateRequest(BaseModel):
    """Request schema for merging tags into an identity."""

    fingerprint_id: str = Field(..., description="Identity to tag")
    tags: Dict[str, Union[bool, int, float]] = Field(..., description="Tags to merge")


class TagUpdateResponse(BaseModel):
    """Response schema for a tag update."""

    fingerprint_id: str
    tags: Dict[str, Union[bool, int, float]]

"""Shared API models for mock backend"""

from typing import Any, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Model exchanged with camelCase field names"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ApiResponse(ApiModel):
    """Response envelope used by every endpoint"""
    status_code: int = 200
    message: str = "OK"
    data: Optional[Any] = None


def envelope(data: Any = None, message: str = "OK", status_code: int = 200) -> dict:
    """Build a serialized response envelope"""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    return {"statusCode": status_code, "message": message, "data": data}

"""
Shared schema plumbing: camelCase wire names and the response envelope
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorDetail(BaseModel):
    type: str
    message: str
    details: Dict[str, Any] = {}


class Envelope(BaseModel, Generic[T]):
    """Every endpoint answers {success, data, error}"""
    success: bool = True
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None

"""Shared response envelope and base model.

Every endpoint answers ``{"message": ..., "data": ...}``; errors use the
same shape with ``data: null``. JSON keys are camelCase on the wire.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[DataT]):
    message: str
    data: Optional[DataT] = None


def error_body(message: str) -> dict:
    return {"message": message, "data": None}

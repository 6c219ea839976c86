"""Frozen value objects stored by value on orders."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Address(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_name: str = ""
    last_name: str = ""
    company: str = ""
    line1: str = Field(min_length=1)
    line2: str = ""
    city: str = Field(min_length=1)
    state: str = ""
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=2, max_length=2)
    phone: str = ""

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> Optional[Address]:
        return cls.model_validate(data) if data else None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump()

# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and serialization settings.
"""

from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


class BaseEntity(BaseModel):
    """
    Immutable record shared by all stored entities.

    Records carry data only; reads and writes go through the repositories in
    ``services.repositories``. Field names are snake_case in Python and
    camelCase in MongoDB documents and JSON bodies.
    """
    
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        frozen=True
    )
    
    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")

    def to_json(self) -> dict:
        """Serialize for API responses (camelCase keys, ISO-8601 dates)."""
        return self.model_dump(by_alias=True, mode="json")


class BaseRequest(BaseModel):
    """Base model for request bodies (camelCase on the wire)."""
    
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True
    )

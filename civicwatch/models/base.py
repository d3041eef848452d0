"""
base.py — Shared pydantic base for all API models.

Python attributes are snake_case; the JSON wire format is camelCase
(`isReal`, `createdAt`, `riskIndex`, …) because the citizen app and the
admin dashboard already consume those field names. Both spellings are
accepted on input.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

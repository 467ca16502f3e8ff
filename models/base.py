"""Base model with camelCase serialization.

The evaluation service, the stores and the HTTP API all speak camelCase
JSON (``totalScore``, ``studentHandwritingTranscription``), while Python
code uses snake_case attributes.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every wire-facing model; dumps with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

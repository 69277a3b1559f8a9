"""Base model with camelCase serialization for API and store payloads."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every record that crosses the API or store boundary.

    Python code uses snake_case; JSON on the wire and in the store is camelCase.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

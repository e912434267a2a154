from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class RequestModel(BaseModel):
    """Strict request body: camelCase on the wire, unknown fields rejected."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

class ResponseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

class MessageResponse(BaseModel):
    message: str

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ErrorItem(BaseModel):
    path: str
    message: str
    type: str


class ValidationErrorBody(BaseModel):
    message: str = "validation failed"
    errors: list[ErrorItem]

"""
Topic content as a tagged union keyed by content_format:
JSON carries a rich-text document object, HTML carries a markup string.
"""
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class JsonContent(BaseModel):
    format: Literal["JSON"] = "JSON"
    body: dict[str, Any]


class HtmlContent(BaseModel):
    format: Literal["HTML"] = "HTML"
    body: str


Content = Annotated[Union[JsonContent, HtmlContent], Field(discriminator="format")]

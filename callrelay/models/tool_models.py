"""
OpenAI Function Tool Models

Pydantic models for declaring the function tools exposed to the model in a
type-safe way. Each registered function carries one of these schemas; the
serialized form is what ``GET /tools`` returns and what an observer may place
into a ``session.update``.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ToolParameter(BaseModel):
    """A single JSON-schema property of a tool."""

    type: str
    description: Optional[str] = None
    enum: Optional[List[str]] = None
    items: Optional[Dict[str, Any]] = None

    def model_dump(self, **kwargs):
        data = super().model_dump(**kwargs)
        # Remove fields that are None
        return {k: v for k, v in data.items() if v is not None}


class ToolParameters(BaseModel):
    """Model for tool parameters schema."""

    type: str = "object"
    properties: Dict[str, ToolParameter]
    required: List[str] = []

    def model_dump(self, **kwargs):
        data = super().model_dump(**kwargs)
        data["properties"] = {
            key: param.model_dump() for key, param in self.properties.items()
        }
        return data


class OpenAITool(BaseModel):
    """Model for OpenAI function tool definition."""

    type: str = "function"
    name: str
    description: str
    parameters: ToolParameters

    def model_dump(self, **kwargs):
        data = super().model_dump(**kwargs)
        data["parameters"] = self.parameters.model_dump()
        return data

"""
Prompt API Schemas

Request models for the prompt API. Field names are snake_case in Python
and camelCase on the wire.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class OptimizationLevel(str, Enum):
    BASIC = "basic"
    ADVANCED = "advanced"
    EXPERT = "expert"


class ApiModel(BaseModel):
    """Base schema serialized with camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CreatePromptRequest(ApiModel):
    """Schema for creating prompts."""

    original_text: str = Field(
        ..., min_length=1, alias="originalText", description="Prompt text"
    )
    target_model: str = Field(..., min_length=1, alias="targetModel")
    message_role: MessageRole = Field(MessageRole.USER, alias="messageRole")
    system_prompt: Optional[str] = Field(None, alias="systemPrompt")
    optimization_level: OptimizationLevel = Field(
        OptimizationLevel.BASIC, alias="optimizationLevel"
    )


class UpdatePromptRequest(ApiModel):
    """Schema for updating prompts."""

    original_text: Optional[str] = Field(None, min_length=1, alias="originalText")
    optimized_text: Optional[str] = Field(None, alias="optimizedText")
    target_model: Optional[str] = Field(None, alias="targetModel")
    message_role: Optional[MessageRole] = Field(None, alias="messageRole")
    system_prompt: Optional[str] = Field(None, alias="systemPrompt")


class PromptQueryParams(ApiModel):
    """Listing filters; unset filters are not sent."""

    page: Optional[int] = Field(None, ge=1)
    limit: Optional[int] = Field(None, ge=1, le=100)
    search: Optional[str] = None
    target_model: Optional[str] = Field(None, alias="targetModel")
    sort_by: Optional[str] = Field(None, alias="sortBy")
    sort_order: Optional[str] = Field(None, alias="sortOrder", pattern="^(asc|desc)$")


class OptimizationRequest(ApiModel):
    """Schema for a synchronous optimization call."""

    prompt: str = Field(..., min_length=1)
    target_model: str = Field(..., min_length=1, alias="targetModel")
    message_role: MessageRole = Field(MessageRole.USER, alias="messageRole")
    system_prompt: Optional[str] = Field(None, alias="systemPrompt")
    optimization_level: OptimizationLevel = Field(
        OptimizationLevel.BASIC, alias="optimizationLevel"
    )
    custom_rules: List[Dict[str, Any]] = Field(
        default_factory=list, alias="customRules"
    )

# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_ai_gateway

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class ChatCompletionRequest(BaseModel):
    """
    Pydantic model for the inbound OpenAI-style Chat Completion request body.
    Only the fields the proxy forwards are declared; anything else is dropped.
    """

    model: Optional[str] = Field(None, description="Caller-facing model id, remapped before forwarding.")
    messages: List[Any] = Field(
        ..., description="A list of messages comprising the conversation so far. Forwarded verbatim."
    )
    # Sampling fields are forwarded as sent; upstream owns their validation
    temperature: Optional[Any] = Field(None, description="Sampling temperature. Defaults to the runtime config.")
    max_tokens: Optional[Any] = Field(None, description="Maximum tokens to generate. Defaults to the runtime config.")
    stream: Optional[bool] = Field(None, description="Stream partial deltas as SSE. Defaults to the runtime config.")
    top_p: Optional[Any] = Field(None, description="Nucleus sampling; forwarded only when present.")
    frequency_penalty: Optional[Any] = Field(None, description="Forwarded only when present.")
    presence_penalty: Optional[Any] = Field(None, description="Forwarded only when present.")


class ChoiceMessage(BaseModel):
    role: str = "assistant"
    content: str = ""


class Choice(BaseModel):
    index: int = 0
    message: ChoiceMessage
    finish_reason: Optional[str] = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    """
    Non-streaming chat completion as returned to the caller.
    """

    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    model: str
    choices: List[Choice]
    usage: dict[str, Any] = Field(default_factory=lambda: Usage().model_dump())


class ModelCard(BaseModel):
    id: str
    object: Literal["model"] = "model"
    created: int
    owned_by: str = "nvidia-nim"
    permission: List[Any] = Field(default_factory=list)
    root: str
    parent: Optional[str] = None


class ModelList(BaseModel):
    object: Literal["list"] = "list"
    data: List[ModelCard]


class ErrorDetail(BaseModel):
    message: str
    type: str
    code: int


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


class ConfigUpdateResponse(BaseModel):
    success: bool = True
    config: dict[str, Any]

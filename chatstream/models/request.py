from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Literal, Union


class TextContent(BaseModel):
    """Text content part of a message"""
    type: Literal["text"] = "text"
    text: str


class Message(BaseModel):
    """Message with either plain string or text-part array content"""
    role: str = Field(..., min_length=1)  # normalized to user/assistant before sending
    content: Union[str, List[TextContent]]

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "role": "user",
                    "content": "Recommend three books about distributed systems."
                }
            ]
        }
    )


class ChatRequest(BaseModel):
    messages: List[Message] = Field(..., min_length=1)
    system_prompt: Optional[str] = None
    model: Optional[str] = None  # If None, use DEFAULT_CHAT_MODEL
    include_reasoning: bool = True

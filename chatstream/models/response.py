from pydantic import BaseModel
from typing import List


class ChatModelInfo(BaseModel):
    """Model selector entry"""

    id: str
    name: str
    description: str


class ModelsResponse(BaseModel):
    models: List[ChatModelInfo]
    default_model: str

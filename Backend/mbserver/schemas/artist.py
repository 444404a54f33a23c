from pydantic import BaseModel, ConfigDict
from typing import Optional
import uuid

class ArtistResponse(BaseModel):
    id: int
    gid: uuid.UUID
    name: str
    sort_name: Optional[str] = None
    comment: str = ""

    model_config = ConfigDict(from_attributes=True)

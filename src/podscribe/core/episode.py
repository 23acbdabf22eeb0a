from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Episode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    podcast_name: str
    url: str = ""
    stream_url: str = ""
    description: str = ""
    artwork_url: Optional[str] = None
    episode_date: Optional[datetime] = None

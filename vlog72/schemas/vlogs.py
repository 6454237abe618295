from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Optional

from .users import UserOut

class UploadIn(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=5000)
    youtube_url: str = Field(min_length=1, description='YouTube URL or bare video id')
    tags: list[str] = Field(default_factory=list, max_length=10)
    thumbnail_url: Optional[str] = None
    duration: Optional[str] = Field(default=None, max_length=16)

    @field_validator('tags')
    @classmethod
    def clean_tags(cls, tags):
        seen = []
        for tag in tags:
            tag = tag.strip()
            if not tag:
                continue
            if len(tag) > 50:
                raise ValueError('tags must be at most 50 characters')
            if tag not in seen:
                seen.append(tag)
        return seen

class CommentIn(BaseModel):
    content: str = Field(min_length=1, max_length=1000)

class CommentOut(BaseModel):
    id: int
    vlog_id: int
    content: str
    created_at: datetime
    user: UserOut

    class Config:
        from_attributes = True

class VlogOut(BaseModel):
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    youtube_id: str
    thumbnail_url: str
    duration: str
    created_at: datetime
    expires_at: datetime
    is_active: bool
    seconds_left: int
    likes: int
    has_liked: bool = False
    tags: list[str] = []
    comments: list[CommentOut] = []
    user: UserOut

class VlogEnvelope(BaseModel):
    vlog: VlogOut

class VlogListOut(BaseModel):
    vlogs: list[VlogOut]

class CommentEnvelope(BaseModel):
    comment: CommentOut

class MediaDetailsOut(BaseModel):
    youtube_id: str
    thumbnail_url: str
    duration: str

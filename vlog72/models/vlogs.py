from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from . import Base
from .tags import vlog_tags_table

class Vlog(Base):
    __tablename__ = 'vlogs'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    youtube_id = Column(String(64), unique=True, nullable=False)
    thumbnail_url = Column(String, nullable=False)
    duration = Column(String(16), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    # compared against the request clock, see lifecycle.is_active
    expires_at = Column(DateTime, nullable=False, index=True)
    likes_count = Column(Integer, nullable=False, default=0, server_default='0')

    user = relationship('User', lazy='selectin')
    tags = relationship('Tag', secondary=vlog_tags_table, lazy='selectin', order_by='Tag.name')
    comments = relationship('Comment', lazy='selectin', order_by='Comment.created_at.desc()')

    __table_args__ = (
        CheckConstraint('likes_count >= 0', name='ck_vlog_likes_non_negative'),
        CheckConstraint('expires_at >= created_at', name='ck_vlog_expiry_after_creation'),
    )

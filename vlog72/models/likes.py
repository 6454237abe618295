from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, func
from . import Base

class VlogLike(Base):
    __tablename__ = 'vlog_likes'
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    vlog_id = Column(Integer, ForeignKey('vlogs.id', ondelete='CASCADE'), index=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    __table_args__ = (
        UniqueConstraint('user_id', 'vlog_id', name='uix_user_vlog_like'),
    )

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, func
from . import Base

class Follow(Base):
    __tablename__ = 'follows'
    id = Column(Integer, primary_key=True)
    follower_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    following_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    __table_args__ = (
        UniqueConstraint('follower_id', 'following_id', name='uix_follow_pair'),
    )

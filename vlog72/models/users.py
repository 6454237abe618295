from sqlalchemy import Column, Integer, String, Text, DateTime, func
from . import Base

class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(150), unique=True, index=True, nullable=False)
    display_name = Column(String(150), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)
    avatar_url = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    followers_count = Column(Integer, nullable=False, default=0, server_default='0')
    following_count = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

from sqlalchemy import Table, Column, Integer, String, ForeignKey, UniqueConstraint
from . import Base

class Tag(Base):
    __tablename__ = 'tags'
    id = Column(Integer, primary_key=True)
    name = Column(String(50), unique=True, index=True, nullable=False)

vlog_tags_table = Table(
    'vlog_tags', Base.metadata,
    Column('vlog_id', Integer, ForeignKey('vlogs.id', ondelete='CASCADE'), nullable=False),
    Column('tag_id', Integer, ForeignKey('tags.id', ondelete='CASCADE'), nullable=False),
    UniqueConstraint('vlog_id', 'tag_id', name='uix_vlog_tag'),
)

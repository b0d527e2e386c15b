"""ORM models for the feedback database."""

from datetime import datetime, timezone

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

EMBEDDING_DIMENSIONS = 1536


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    platform = Column(String(32), nullable=False, default="reddit")
    external_id = Column(String(64), nullable=False)
    product_id = Column(String(64), nullable=True)
    title = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    cleaned_content = Column(Text, nullable=True)
    author = Column(String(128), nullable=True)
    subreddit = Column(String(128), nullable=True)
    url = Column(Text, nullable=True)
    score = Column(Integer, default=0)
    comment_count = Column(Integer, default=0)
    search_term = Column(String(256), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("platform", "external_id", name="uq_posts_platform_external_id"),
    )


class SentimentAnalysis(Base):
    __tablename__ = "sentiment_analysis"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, unique=True)
    sentiment_score = Column(Float, nullable=False, default=0.0)
    sentiment_label = Column(String(16), nullable=False, default="neutral")
    confidence = Column(Float, nullable=False, default=0.5)
    emotions = Column(JSON, default=list)
    keywords = Column(JSON, default=list)
    analyzed_at = Column(DateTime(timezone=True), default=_utcnow)


class Embedding(Base):
    __tablename__ = "embeddings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content_id = Column(String(64), nullable=False)
    content_type = Column(String(32), nullable=False, default="post")
    content_text = Column(Text, nullable=True)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=False)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("content_id", "content_type", name="uq_embeddings_content"),
    )


class Insight(Base):
    __tablename__ = "insights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String(64), nullable=False)
    insight_type = Column(String(32), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    sentiment_summary = Column(JSON, default=dict)
    content_count = Column(Integer, default=0)
    confidence_score = Column(Float, default=0.0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("product_id", "insight_type", "title", name="uq_insights_product_type_title"),
    )

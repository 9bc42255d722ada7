# models.py - Database models for Handoff
# Ownership chain: Freelancer -> Portal -> Client -> Project -> Task / Update / File
# - Short opaque string ids
# - ON DELETE CASCADE down the chain, so no row outlives its owner
# - Append-only tracking logs (file downloads, client views)

import secrets
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, Date, BigInteger, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

ID_LENGTH = 12
ACCESS_TOKEN_LENGTH = 64


def utcnow():
    return datetime.now(timezone.utc)


def new_id():
    # 9 random bytes -> 12 url-safe characters
    return secrets.token_urlsafe(9)


def new_access_token():
    return secrets.token_urlsafe(48)


# ============================================================
# ENUMS
# ============================================================

class TaskStage(str, PyEnum):
    BACKLOG = "backlog"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class AuthorType(str, PyEnum):
    FREELANCER = "freelancer"
    CLIENT = "client"


class ViewPage(str, PyEnum):
    PROJECTS = "projects"
    PROJECT = "project"


# ============================================================
# FREELANCERS
# ============================================================

class Freelancer(Base):
    __tablename__ = "freelancers"

    id = Column(String(ID_LENGTH), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow)

    portals = relationship("Portal", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)


# ============================================================
# PORTALS
# ============================================================

class Portal(Base):
    """A freelancer's branded client space, addressed by subdomain"""
    __tablename__ = "portals"

    id = Column(String(ID_LENGTH), primary_key=True, default=new_id)
    owner_id = Column(String(ID_LENGTH), ForeignKey("freelancers.id", ondelete="CASCADE"), nullable=False, index=True)
    subdomain = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    logo_url = Column(Text, nullable=True)
    accent_color = Column(String(7), nullable=False, default="#6366f1")
    created_at = Column(DateTime(timezone=True), default=utcnow)

    owner = relationship("Freelancer", back_populates="portals")
    clients = relationship("Client", back_populates="portal", cascade="all, delete-orphan", passive_deletes=True)


# ============================================================
# CLIENTS
# ============================================================

class Client(Base):
    """A freelancer's client; the access token is its magic-link credential"""
    __tablename__ = "clients"

    id = Column(String(ID_LENGTH), primary_key=True, default=new_id)
    portal_id = Column(String(ID_LENGTH), ForeignKey("portals.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    access_token = Column(String(ACCESS_TOKEN_LENGTH), unique=True, nullable=False, index=True, default=new_access_token)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    portal = relationship("Portal", back_populates="clients")
    projects = relationship("Project", back_populates="client", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("portal_id", "email", name="uq_client_portal_email"),
    )


# ============================================================
# PROJECTS
# ============================================================

class Project(Base):
    __tablename__ = "projects"

    id = Column(String(ID_LENGTH), primary_key=True, default=new_id)
    client_id = Column(String(ID_LENGTH), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=utcnow)

    client = relationship("Client", back_populates="projects")
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan", passive_deletes=True)
    updates = relationship("Update", back_populates="project", cascade="all, delete-orphan", passive_deletes=True)
    files = relationship("File", back_populates="project", cascade="all, delete-orphan", passive_deletes=True)


# ============================================================
# TASKS
# ============================================================

class Task(Base):
    """Kanban card; position orders tasks within a stage only"""
    __tablename__ = "tasks"

    id = Column(String(ID_LENGTH), primary_key=True, default=new_id)
    project_id = Column(String(ID_LENGTH), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    stage = Column(SQLEnum(TaskStage, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
                   nullable=False, default=TaskStage.BACKLOG)
    position = Column(Integer, nullable=False, default=0)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project", back_populates="tasks")

    __table_args__ = (
        Index("idx_task_project_stage_pos", "project_id", "stage", "position"),
    )


# ============================================================
# UPDATES (project feed)
# ============================================================

class Update(Base):
    """Feed entry. author_id points at freelancers or clients depending on author_type"""
    __tablename__ = "updates"

    id = Column(String(ID_LENGTH), primary_key=True, default=new_id)
    project_id = Column(String(ID_LENGTH), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    author_type = Column(SQLEnum(AuthorType, values_callable=lambda e: [m.value for m in e], native_enum=False, length=10),
                         nullable=False)
    author_id = Column(String(ID_LENGTH), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    project = relationship("Project", back_populates="updates")


# ============================================================
# FILES
# ============================================================

class File(Base):
    __tablename__ = "files"

    id = Column(String(ID_LENGTH), primary_key=True, default=new_id)
    project_id = Column(String(ID_LENGTH), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    update_id = Column(String(ID_LENGTH), ForeignKey("updates.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(BigInteger, nullable=True)
    mime_type = Column(String(100), nullable=True)
    uploaded_by = Column(String(ID_LENGTH), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project", back_populates="files")
    downloads = relationship("FileDownload", back_populates="file", cascade="all, delete-orphan", passive_deletes=True)


# ============================================================
# TRACKING (append-only)
# ============================================================

class FileDownload(Base):
    __tablename__ = "file_downloads"

    id = Column(String(ID_LENGTH), primary_key=True, default=new_id)
    file_id = Column(String(ID_LENGTH), ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String(ID_LENGTH), ForeignKey("clients.id", ondelete="CASCADE"), nullable=True, index=True)
    ip_address = Column(String(45), nullable=True)
    downloaded_at = Column(DateTime(timezone=True), default=utcnow)

    file = relationship("File", back_populates="downloads")


class ClientView(Base):
    __tablename__ = "client_views"

    id = Column(String(ID_LENGTH), primary_key=True, default=new_id)
    client_id = Column(String(ID_LENGTH), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String(ID_LENGTH), ForeignKey("projects.id", ondelete="CASCADE"), nullable=True)
    page = Column(String(50), nullable=False)
    viewed_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_view_client_time", "client_id", "viewed_at"),
    )

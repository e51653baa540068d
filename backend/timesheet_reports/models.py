from __future__ import annotations

import datetime as dt

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

TASK_NUMBER_FIELD_ID = 2


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class User(Base):
    __tablename__ = "tt_users"

    id = Column(Integer, primary_key=True, index=True)
    login = Column(String(80), nullable=False, unique=True)
    password = Column(String(50), nullable=True)  # md5 hex digest
    name = Column(String(100), nullable=True)
    group_id = Column(Integer, nullable=False, default=1, index=True)
    role_id = Column(Integer, nullable=True)
    rate = Column(Float, nullable=False, default=0.0)
    email = Column(String(100), nullable=True)
    status = Column(Integer, nullable=False, default=1)


class Client(Base):
    __tablename__ = "tt_clients"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, nullable=False, default=1)
    name = Column(String(80), nullable=False)
    address = Column(String(255), nullable=True)
    tax = Column(Float, nullable=False, default=0.0)
    status = Column(Integer, nullable=False, default=1)


class Project(Base):
    __tablename__ = "tt_projects"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, nullable=False, default=1)
    name = Column(String(80), nullable=False)
    description = Column(String(255), nullable=True)
    status = Column(Integer, nullable=False, default=1)


class Task(Base):
    __tablename__ = "tt_tasks"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, nullable=False, default=1)
    name = Column(String(80), nullable=False)
    description = Column(String(255), nullable=True)
    status = Column(Integer, nullable=False, default=1)


class ClientProjectBind(Base):
    __tablename__ = "tt_client_project_binds"

    client_id = Column(Integer, ForeignKey("tt_clients.id"), primary_key=True)
    project_id = Column(Integer, ForeignKey("tt_projects.id"), primary_key=True)


class TimeLog(Base):
    __tablename__ = "tt_log"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("tt_users.id"), nullable=False, index=True)
    group_id = Column(Integer, nullable=False, default=1)
    date = Column(Date, nullable=False, index=True)
    start = Column(String(8), nullable=True)
    duration = Column(String(8), nullable=True)  # HH:MM[:SS]
    client_id = Column(Integer, ForeignKey("tt_clients.id"), nullable=True, index=True)
    project_id = Column(Integer, ForeignKey("tt_projects.id"), nullable=True, index=True)
    task_id = Column(Integer, ForeignKey("tt_tasks.id"), nullable=True)
    comment = Column(Text, nullable=True)
    billable = Column(Integer, nullable=False, default=0)
    approved = Column(Integer, nullable=False, default=0)
    paid = Column(Integer, nullable=False, default=0)
    created = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    modified = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=True)
    status = Column(Integer, nullable=False, default=1, index=True)

    user = relationship("User")
    client = relationship("Client")
    project = relationship("Project")
    task = relationship("Task")


class CustomFieldLog(Base):
    __tablename__ = "tt_custom_field_log"

    id = Column(Integer, primary_key=True)
    log_id = Column(Integer, ForeignKey("tt_log.id"), nullable=False, index=True)
    field_id = Column(Integer, nullable=False)
    value = Column(Text, nullable=True)
    status = Column(Integer, nullable=False, default=1)

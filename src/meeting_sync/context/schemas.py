"""Reference data the AI collaborator needs to match people and projects."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Contact(BaseModel):
    name: str
    category: str
    email: str | None = None
    company: str | None = None
    role: str | None = None
    file_path: str


class Project(BaseModel):
    name: str
    client: str | None = None
    status: str | None = None
    file_path: str


class Coach(BaseModel):
    name: str
    specialty: str | None = None
    file_path: str


class Partner(BaseModel):
    """Equity partner from the fixed roster."""

    name: str
    role: str
    email_patterns: list[str] = Field(default_factory=list)


class ContextSnapshot(BaseModel):
    """Point-in-time view of the document tree's reference data."""

    contacts: list[Contact] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    coaches: list[Coach] = Field(default_factory=list)
    partners: list[Partner] = Field(default_factory=list)
    timestamp: datetime


PARTNERS: tuple[Partner, ...] = (
    Partner(
        name="Matthew",
        role=(
            "Architect: software development, dev systems, company OS development, "
            "agency building, prototyping, validation and testing"
        ),
        email_patterns=["matthew@", "matt@"],
    ),
    Partner(
        name="Mekaiel",
        role="Systems, onboarding, sales, content systems and video editing",
        email_patterns=["mekaiel@", "mikael@"],
    ),
    Partner(
        name="Chris",
        role="Systems, onboarding, sales, lead list management",
        email_patterns=["chris@"],
    ),
    Partner(
        name="Trent",
        role=(
            "Architect: software development, robotics and physical automation, "
            "developer hiring and onboarding, prototyping, validation and testing"
        ),
        email_patterns=["trent@"],
    ),
)

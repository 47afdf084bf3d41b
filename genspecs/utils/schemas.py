"""Pydantic schemas for API requests and responses."""
from typing import Dict, List, Optional

from pydantic import Field

from genspecs.core.generation_state import (
    CamelModel,
    DocumentState,
    DocumentStatus,
    GenerationState,
    ProjectDetails,
    StepIconState,
)


class ValidationResult(CamelModel):
    """Outcome of an API key check."""
    is_valid: bool
    error: Optional[str] = None


class CredentialStatus(CamelModel):
    """Whether a key is stored and currently trusted. Never carries the key."""
    has_key: bool
    is_valid: bool


class ApiKeyPayload(CamelModel):
    api_key: str = ""


class GenerateRequest(CamelModel):
    """Stateless per-document generation request."""
    project_details: ProjectDetails
    api_key: Optional[str] = None
    existing_content: Optional[str] = None
    readme_state: Optional[DocumentState] = None
    bom_state: Optional[DocumentState] = None
    roadmap_state: Optional[DocumentState] = None


class ProjectDetailsUpdate(CamelModel):
    """Partial project details; unset fields keep their value."""
    name: Optional[str] = None
    description: Optional[str] = None
    user_stories: Optional[List[str]] = None


class DocumentUpdate(CamelModel):
    """Partial document update, e.g. after the user edits a draft."""
    content: Optional[str] = None
    status: Optional[DocumentStatus] = None
    error: Optional[str] = None


class GenerationSnapshot(GenerationState):
    """State plus the derived per-step icon, keyed by step id."""
    step_icons: Dict[str, StepIconState] = Field(default_factory=dict)
    can_download: bool = False

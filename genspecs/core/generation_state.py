from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from genspecs.core.errors import PersistenceError


class DocumentType(str, Enum):
    README = "readme"
    BOM = "bom"
    ROADMAP = "roadmap"
    IMPLEMENTATION = "implementation"


# Dependency order: each document is generated from the one before it.
DOCUMENT_ORDER: List[DocumentType] = [
    DocumentType.README,
    DocumentType.BOM,
    DocumentType.ROADMAP,
    DocumentType.IMPLEMENTATION,
]

DocumentStatus = Literal["idle", "generating", "draft", "accepted", "error"]
StepIconState = Literal["idle", "loading", "done", "error"]

PROJECT_DETAILS_STEP = "project-details"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectDetails(CamelModel):
    name: str = ""
    description: str = ""
    user_stories: List[str] = Field(default_factory=list)


class DocumentState(CamelModel):
    type: DocumentType
    content: str = ""
    status: DocumentStatus = "idle"
    error: Optional[str] = None
    last_updated: Optional[datetime] = None


class StepState(CamelModel):
    id: str
    title: str
    description: str
    is_completed: bool = False
    is_active: bool = False
    document_type: Optional[DocumentType] = None


class GenerationState(CamelModel):
    current_step: str
    project_details: ProjectDetails
    documents: Dict[DocumentType, DocumentState]
    steps: List[StepState]

    def step_for(self, doc_type: DocumentType) -> Optional[StepState]:
        return next((s for s in self.steps if s.document_type == doc_type), None)

    def step_index(self, step_id: str) -> int:
        for idx, step in enumerate(self.steps):
            if step.id == step_id:
                return idx
        raise KeyError(step_id)


def next_document(doc_type: DocumentType) -> Optional[DocumentType]:
    idx = DOCUMENT_ORDER.index(doc_type)
    return DOCUMENT_ORDER[idx + 1] if idx + 1 < len(DOCUMENT_ORDER) else None


def step_icon(status: DocumentStatus) -> StepIconState:
    if status == "generating":
        return "loading"
    if status in ("accepted", "draft"):
        return "done"
    if status == "error":
        return "error"
    return "idle"


_STEP_DEFINITIONS = [
    (PROJECT_DETAILS_STEP, "Project Details", "Enter project information", None),
    ("readme", "README", "Generate and review README", DocumentType.README),
    ("bom", "Bill of Materials", "Generate and review BOM", DocumentType.BOM),
    ("roadmap", "Roadmap", "Generate and review roadmap", DocumentType.ROADMAP),
    (
        "implementation",
        "Implementation Plan",
        "Generate and review implementation plan",
        DocumentType.IMPLEMENTATION,
    ),
]


def create_initial_state() -> GenerationState:
    return GenerationState(
        current_step=PROJECT_DETAILS_STEP,
        project_details=ProjectDetails(),
        documents={t: DocumentState(type=t) for t in DOCUMENT_ORDER},
        steps=[
            StepState(
                id=step_id,
                title=title,
                description=description,
                is_active=step_id == PROJECT_DETAILS_STEP,
                document_type=doc_type,
            )
            for step_id, title, description, doc_type in _STEP_DEFINITIONS
        ],
    )


def merge_with_initial(saved: Dict[str, Any]) -> GenerationState:
    """Overlay a persisted state onto the canonical initial shape.

    Document types and steps missing from ``saved`` (written by an older
    version) come back at their initial values; keys the current schema does
    not know are dropped. Everything else is preserved as saved.
    """
    if not isinstance(saved, dict):
        raise PersistenceError("Persisted generation state is not an object")

    base = create_initial_state().model_dump(by_alias=True)

    saved_details = saved.get("projectDetails")
    if isinstance(saved_details, dict):
        base["projectDetails"].update(
            {k: v for k, v in saved_details.items() if k in base["projectDetails"]}
        )

    saved_docs = saved.get("documents")
    if isinstance(saved_docs, dict):
        for key, doc in base["documents"].items():
            stored = saved_docs.get(key.value)
            if isinstance(stored, dict):
                doc.update(stored)
                doc["type"] = key

    saved_steps = saved.get("steps")
    if isinstance(saved_steps, list):
        by_id = {s.get("id"): s for s in saved_steps if isinstance(s, dict)}
        for step in base["steps"]:
            stored = by_id.get(step["id"])
            if stored:
                step.update({k: v for k, v in stored.items() if k in step})

    current = saved.get("currentStep")
    if isinstance(current, str) and any(s["id"] == current for s in base["steps"]):
        base["currentStep"] = current

    try:
        return GenerationState.model_validate(base)
    except ValidationError as exc:
        raise PersistenceError(f"Persisted generation state is invalid: {exc}") from exc


def dump_state(state: GenerationState) -> str:
    return state.model_dump_json(by_alias=True)


def load_state(raw: str) -> GenerationState:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Persisted generation state is not JSON: {exc}") from exc
    return merge_with_initial(payload)

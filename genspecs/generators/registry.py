from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from genspecs.core.errors import ConfigurationError, DocumentValidationError
from genspecs.core.generation_state import (
    DocumentState,
    DocumentStatus,
    DocumentType,
    ProjectDetails,
)
from genspecs.llm.adapter import BaseCompletionClient
from genspecs.llm.retry import RetryPolicy, complete_with_retry
from genspecs.utils.logging import get_logger

from .prompts import PromptBuilder

LOGGER = get_logger(__name__)

MISSING_API_KEY = "API key is required"


@dataclass(frozen=True)
class Dependency:
    type: DocumentType
    # Request field carrying the upstream state on POST /api/generate/{type}
    state_field: str
    failure_message: str
    required_status: DocumentStatus = "accepted"


@dataclass(frozen=True)
class GeneratorDescriptor:
    document_type: DocumentType
    title: str
    build_system_prompt: Callable[[], str]
    build_user_prompt: Callable[[ProjectDetails, str], str]
    validate: Callable[[ProjectDetails], None]
    dependency: Optional[Dependency] = None


def require_name_and_description(details: ProjectDetails) -> None:
    if not details.name:
        raise DocumentValidationError("Project name is required")
    if not details.description:
        raise DocumentValidationError("Project description is required")


def require_user_stories(details: ProjectDetails) -> None:
    require_name_and_description(details)
    if not details.user_stories:
        raise DocumentValidationError("At least one user story is required")


GENERATORS: Dict[DocumentType, GeneratorDescriptor] = {
    DocumentType.README: GeneratorDescriptor(
        document_type=DocumentType.README,
        title="README",
        build_system_prompt=PromptBuilder.readme_system_prompt,
        build_user_prompt=PromptBuilder.readme_user_prompt,
        validate=require_name_and_description,
    ),
    DocumentType.BOM: GeneratorDescriptor(
        document_type=DocumentType.BOM,
        title="BOM",
        build_system_prompt=PromptBuilder.bom_system_prompt,
        build_user_prompt=PromptBuilder.bom_user_prompt,
        validate=require_name_and_description,
        dependency=Dependency(
            type=DocumentType.README,
            state_field="readme_state",
            failure_message="Cannot generate BOM: README generation has not completed successfully",
        ),
    ),
    DocumentType.ROADMAP: GeneratorDescriptor(
        document_type=DocumentType.ROADMAP,
        title="Roadmap",
        build_system_prompt=PromptBuilder.roadmap_system_prompt,
        build_user_prompt=PromptBuilder.roadmap_user_prompt,
        validate=require_user_stories,
        dependency=Dependency(
            type=DocumentType.BOM,
            state_field="bom_state",
            failure_message="Cannot generate Roadmap: BOM generation has not completed successfully",
        ),
    ),
    DocumentType.IMPLEMENTATION: GeneratorDescriptor(
        document_type=DocumentType.IMPLEMENTATION,
        title="Implementation Plan",
        build_system_prompt=PromptBuilder.implementation_system_prompt,
        build_user_prompt=PromptBuilder.implementation_user_prompt,
        validate=require_name_and_description,
        dependency=Dependency(
            type=DocumentType.ROADMAP,
            state_field="roadmap_state",
            failure_message=(
                "Cannot generate Implementation Plan: Roadmap generation has not completed successfully"
            ),
        ),
    ),
}


def get_descriptor(doc_type: DocumentType | str) -> GeneratorDescriptor:
    return GENERATORS[DocumentType(doc_type)]


def check_preconditions(
    descriptor: GeneratorDescriptor,
    details: ProjectDetails,
    dependency_state: Optional[DocumentState],
    api_key: Optional[str],
) -> None:
    """Raise on the first unmet precondition, in a fixed order: key, details, dependency."""
    if not api_key:
        raise ConfigurationError(MISSING_API_KEY)
    descriptor.validate(details)
    dep = descriptor.dependency
    if dep is not None and (dependency_state is None or dependency_state.status != dep.required_status):
        raise DocumentValidationError(dep.failure_message)


async def generate_document(
    descriptor: GeneratorDescriptor,
    details: ProjectDetails,
    dependency_state: Optional[DocumentState],
    *,
    api_key: Optional[str],
    client: BaseCompletionClient,
    policy: Optional[RetryPolicy] = None,
) -> DocumentState:
    """Generate one document or raise a typed error."""
    doc_type = descriptor.document_type
    LOGGER.info(
        "Starting %s generation (stories=%d, dependency=%s)",
        descriptor.title,
        len(details.user_stories),
        dependency_state.status if dependency_state else None,
    )
    check_preconditions(descriptor, details, dependency_state, api_key)

    dependency_content = dependency_state.content if dependency_state else ""
    content = await complete_with_retry(
        client,
        descriptor.build_system_prompt(),
        descriptor.build_user_prompt(details, dependency_content),
        policy,
    )
    LOGGER.info("Generated %s (%d chars)", descriptor.title, len(content))
    return DocumentState(
        type=doc_type,
        content=content,
        status="accepted",
        last_updated=datetime.now(timezone.utc),
    )


async def run_generator(
    descriptor: GeneratorDescriptor,
    details: ProjectDetails,
    dependency_state: Optional[DocumentState],
    *,
    api_key: Optional[str],
    client_factory: Callable[[str], BaseCompletionClient],
    existing_content: Optional[str] = None,
    policy: Optional[RetryPolicy] = None,
) -> DocumentState:
    """Like :func:`generate_document`, but every failure comes back as an
    ``error`` state that keeps ``existing_content``.

    No client is built, and so no request is made, until all preconditions
    pass.
    """
    client: Optional[BaseCompletionClient] = None
    try:
        check_preconditions(descriptor, details, dependency_state, api_key)
        client = client_factory(api_key or "")
        return await generate_document(
            descriptor,
            details,
            dependency_state,
            api_key=api_key,
            client=client,
            policy=policy,
        )
    except (ConfigurationError, DocumentValidationError) as exc:
        LOGGER.warning("%s generation failed: %s", descriptor.title, exc)
        message = str(exc)
    except Exception as exc:
        LOGGER.exception("Failed to generate %s", descriptor.title)
        message = str(exc) or "Unknown error occurred"
    finally:
        if client is not None:
            await client.aclose()

    return DocumentState(
        type=descriptor.document_type,
        content=existing_content or "",
        status="error",
        error=message,
        last_updated=datetime.now(timezone.utc),
    )

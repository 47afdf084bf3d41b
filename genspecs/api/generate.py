"""Stateless per-document generation: ``POST /api/generate/{type}``.

The caller sends everything the generator needs (project details, the
upstream document state and the API key); nothing is read from or written to
the pipeline.
"""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from genspecs.core.errors import ConfigurationError, DocumentValidationError
from genspecs.generators.registry import check_preconditions, generate_document, get_descriptor
from genspecs.llm.adapter import create_completion_client
from genspecs.llm.retry import RetryPolicy
from genspecs.utils.logging import get_logger
from genspecs.utils.schemas import GenerateRequest

LOGGER = get_logger(__name__)
router = APIRouter(prefix="/api/generate", tags=["generate"])


@router.post("/{doc_type}")
async def generate(doc_type: str, payload: GenerateRequest) -> JSONResponse:
    try:
        descriptor = get_descriptor(doc_type)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown document type: {doc_type}") from exc

    dependency_state = None
    if descriptor.dependency is not None:
        dependency_state = getattr(payload, descriptor.dependency.state_field)

    LOGGER.info(
        "%s generation request (stories=%d, has_key=%s)",
        descriptor.title,
        len(payload.project_details.user_stories),
        bool(payload.api_key),
    )

    try:
        check_preconditions(descriptor, payload.project_details, dependency_state, payload.api_key)
    except (ConfigurationError, DocumentValidationError) as exc:
        LOGGER.warning("%s generation rejected: %s", descriptor.title, exc)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    client = create_completion_client(payload.api_key or "")
    try:
        result = await generate_document(
            descriptor,
            payload.project_details,
            dependency_state,
            api_key=payload.api_key,
            client=client,
            policy=RetryPolicy.from_settings(),
        )
    except Exception as exc:
        LOGGER.exception("Failed to generate %s", descriptor.title)
        message = str(exc) or f"Failed to generate {descriptor.title}"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": message, "content": payload.existing_content or ""},
        )
    finally:
        await client.aclose()

    return JSONResponse(
        content=result.model_dump(mode="json", by_alias=True, include={"type", "content", "status", "last_updated"})
    )

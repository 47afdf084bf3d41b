from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from genspecs.api.deps import get_pipeline
from genspecs.core.generation_state import DocumentType, ProjectDetails
from genspecs.core.pipeline import GenerationPipeline
from genspecs.utils import download
from genspecs.utils.logging import get_logger
from genspecs.utils.schemas import DocumentUpdate, GenerationSnapshot, ProjectDetailsUpdate

LOGGER = get_logger(__name__)
router = APIRouter(prefix="/api/generation", tags=["generation"])


def _document_type(doc_type: str) -> DocumentType:
    try:
        return DocumentType(doc_type)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown document type: {doc_type}") from exc


@router.get("", response_model=GenerationSnapshot, response_model_by_alias=True)
async def get_state(pipeline: GenerationPipeline = Depends(get_pipeline)) -> GenerationSnapshot:
    return pipeline.snapshot()


@router.put("/project", response_model=GenerationSnapshot, response_model_by_alias=True)
async def update_project(
    payload: ProjectDetailsUpdate, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> GenerationSnapshot:
    await pipeline.update_project_details(**payload.model_dump(exclude_unset=True))
    return pipeline.snapshot()


@router.post("/project/submit", response_model=GenerationSnapshot, response_model_by_alias=True)
async def submit_project(
    payload: ProjectDetails, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> GenerationSnapshot:
    LOGGER.info("Project '%s' submitted (%d user stories)", payload.name, len(payload.user_stories))
    await pipeline.submit_project_details(payload)
    return pipeline.snapshot()


@router.patch("/documents/{doc_type}", response_model=GenerationSnapshot, response_model_by_alias=True)
async def update_document(
    doc_type: str, payload: DocumentUpdate, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> GenerationSnapshot:
    await pipeline.update_document(_document_type(doc_type), **payload.model_dump(exclude_unset=True))
    return pipeline.snapshot()


@router.post("/documents/{doc_type}/accept", response_model=GenerationSnapshot, response_model_by_alias=True)
async def accept_document(
    doc_type: str, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> GenerationSnapshot:
    await pipeline.accept_document(_document_type(doc_type))
    return pipeline.snapshot()


@router.post("/documents/{doc_type}/regenerate", response_model=GenerationSnapshot, response_model_by_alias=True)
async def regenerate_document(
    doc_type: str, pipeline: GenerationPipeline = Depends(get_pipeline)
) -> GenerationSnapshot:
    await pipeline.regenerate_document(_document_type(doc_type))
    return pipeline.snapshot()


@router.post("/steps/{step_id}", response_model=GenerationSnapshot, response_model_by_alias=True)
async def change_step(step_id: str, pipeline: GenerationPipeline = Depends(get_pipeline)) -> GenerationSnapshot:
    try:
        await pipeline.handle_step_change(step_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown step: {step_id}") from exc
    return pipeline.snapshot()


@router.post("/reset", response_model=GenerationSnapshot, response_model_by_alias=True)
async def reset(pipeline: GenerationPipeline = Depends(get_pipeline)) -> GenerationSnapshot:
    await pipeline.reset()
    return pipeline.snapshot()


@router.get("/download")
async def download_documents(pipeline: GenerationPipeline = Depends(get_pipeline)) -> Response:
    state = pipeline.state
    if not download.is_ready(state):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Documents are still generating or not ready for download",
        )
    files = download.downloadable_documents(state)
    filename = download.archive_filename(state.project_details.name)
    LOGGER.info("Preparing download of %d documents as %s", len(files), filename)
    return Response(
        content=download.build_archive(files),
        media_type="application/zip",
        headers={"Content-Disposition": download.content_disposition(filename)},
    )

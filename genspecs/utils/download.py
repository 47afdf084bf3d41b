"""Bundle generated documents into a single ZIP archive."""
import io
import zipfile
from typing import List, Tuple
from urllib.parse import quote

from genspecs.core.generation_state import DOCUMENT_ORDER, GenerationState

DOWNLOADABLE_STATUSES = ("accepted", "draft")


def downloadable_documents(state: GenerationState) -> List[Tuple[str, str]]:
    """``(file name, content)`` for every accepted or draft document, in pipeline order."""
    files = []
    for doc_type in DOCUMENT_ORDER:
        doc = state.documents[doc_type]
        if doc.status in DOWNLOADABLE_STATUSES:
            files.append((f"{doc_type.value}.md", doc.content))
    return files


def is_ready(state: GenerationState) -> bool:
    """All documents are accepted or drafted and none is still generating."""
    docs = list(state.documents.values())
    if any(doc.status == "generating" for doc in docs):
        return False
    return all(doc.status in DOWNLOADABLE_STATUSES for doc in docs)


def build_archive(files: List[Tuple[str, str]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files:
            zf.writestr(name, content)
    return buffer.getvalue()


def archive_filename(project_name: str) -> str:
    name = project_name.strip() or "project"
    return f"{name}_docs.zip"


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII ``filename`` and an RFC 5987 ``filename*``."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    fallback = fallback.replace('"', "_").replace("\\", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"

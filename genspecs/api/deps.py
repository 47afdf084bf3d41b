from __future__ import annotations

from fastapi import Request

from genspecs.core.credentials import CredentialStore
from genspecs.core.pipeline import GenerationPipeline


def get_pipeline(request: Request) -> GenerationPipeline:
    return request.app.state.pipeline


def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials
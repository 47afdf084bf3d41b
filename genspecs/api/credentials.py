from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from genspecs.api.deps import get_credentials
from genspecs.core.credentials import CredentialStore
from genspecs.utils.schemas import ApiKeyPayload, CredentialStatus, ValidationResult

router = APIRouter(prefix="/api/credentials", tags=["credentials"])


@router.get("", response_model=CredentialStatus, response_model_by_alias=True)
async def get_status(store: CredentialStore = Depends(get_credentials)) -> CredentialStatus:
    return store.status()


@router.post("")
async def set_key(payload: ApiKeyPayload, store: CredentialStore = Depends(get_credentials)) -> JSONResponse:
    result = await store.set_key(payload.api_key)
    code = status.HTTP_200_OK if result.is_valid else status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=code, content=result.model_dump(by_alias=True))


@router.post("/validate", response_model=ValidationResult, response_model_by_alias=True)
async def validate_key(store: CredentialStore = Depends(get_credentials)) -> ValidationResult:
    return await store.validate_key()


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_key(store: CredentialStore = Depends(get_credentials)) -> None:
    await store.clear_key()

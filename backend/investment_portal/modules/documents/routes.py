from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.orm import Session

from investment_portal.core.context import RequestContext
from investment_portal.core.db.session import get_db
from investment_portal.core.security.dependencies import get_context
from investment_portal.modules.documents import service
from investment_portal.modules.documents.schemas import DocumentOut, UploadResponse
from investment_portal.shared.enums import RequestType

router = APIRouter(prefix="/documents", tags=["documents"])


def _content_disposition(kind: str, filename: str) -> str:
    return f"{kind}; filename*=UTF-8''{quote(filename)}"


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_documents(
    request_type: RequestType = Form(...),
    request_id: int = Form(...),
    documents: list[UploadFile] = File(...),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> UploadResponse:
    incoming = [
        service.IncomingFile(filename=f.filename or "", content_type=f.content_type, data=await f.read())
        for f in documents
    ]
    summary = service.upload_documents(
        db, ctx=ctx, request_type=request_type, request_id=request_id, files=incoming
    )
    return UploadResponse(
        documents=[DocumentOut.model_validate(d) for d in summary.documents],
        successful=len(summary.documents),
        total=summary.total,
        errors=summary.errors,
    )


@router.get("/{request_type}/{request_id:int}", response_model=list[DocumentOut])
def list_documents(
    request_type: RequestType,
    request_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> list[DocumentOut]:
    return service.list_documents(db, request_type=request_type, request_id=request_id)


@router.get("/{document_id}/download")
def download_document(
    document_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> Response:
    doc, data = service.read_document_bytes(db, document_id=document_id)
    return Response(
        content=data,
        media_type=doc.mime_type,
        headers={"Content-Disposition": _content_disposition("attachment", doc.original_name)},
    )


@router.get("/{document_id}/preview")
def preview_document(
    document_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> Response:
    doc, data = service.read_document_bytes(db, document_id=document_id)
    return Response(
        content=data,
        media_type=doc.mime_type,
        headers={"Content-Disposition": _content_disposition("inline", doc.original_name)},
    )


@router.delete("/{document_id}")
def delete_document(
    document_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
) -> dict[str, str]:
    service.delete_document(db, ctx=ctx, document_id=document_id)
    return {"message": "Document deleted successfully"}

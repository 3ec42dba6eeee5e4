"""
hackathon_api/routes/certificates.py
Certificate routes

Issuing, updating and deleting require the organizer role and ownership of
the event. Bulk issuance is the one partial-failure endpoint: it always
answers 200 with per-user outcomes and a summary.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.database import get_db
from hackathon_api.document_store import DocumentStore, get_document_store
from hackathon_api.orm.user import User, UserRole
from hackathon_api.rbac import get_current_user, require_roles
from hackathon_api.schemas.common import success_response
from hackathon_api.schemas.documents import BulkCertificateIssue, CertificateIssue, CertificateUpdate
from hackathon_api.services.certificate_service import CertificateService

router = APIRouter(prefix="/certificates", tags=["Certificates"])


def get_certificate_service(
    db: AsyncSession = Depends(get_db),
    documents: DocumentStore = Depends(get_document_store),
) -> CertificateService:
    return CertificateService(db, documents)


@router.post("", status_code=status.HTTP_201_CREATED)
async def issue_certificate(
    data: CertificateIssue,
    service: CertificateService = Depends(get_certificate_service),
    current_user: User = Depends(require_roles(UserRole.organizer)),
):
    certificate = await service.issue(current_user, data)
    return success_response("Certificate issued successfully", certificate)


@router.post("/bulk-issue")
async def bulk_issue_certificates(
    data: BulkCertificateIssue,
    service: CertificateService = Depends(get_certificate_service),
    current_user: User = Depends(require_roles(UserRole.organizer)),
):
    outcome = await service.bulk_issue(current_user, data)
    summary = outcome["summary"]
    return success_response(
        f"Bulk issuance complete: {summary['issued']} issued, "
        f"{summary['skipped']} skipped, {summary['errors']} failed",
        outcome["results"],
        summary=summary,
    )


@router.get("/me")
async def my_certificates(
    service: CertificateService = Depends(get_certificate_service),
    current_user: User = Depends(get_current_user),
):
    certificates = await service.list_mine(current_user)
    return success_response("Your certificates", certificates, count=len(certificates))


@router.get("/event/{event_id}")
async def list_event_certificates(
    event_id: int,
    service: CertificateService = Depends(get_certificate_service),
    current_user: User = Depends(get_current_user),
):
    certificates = await service.list_by_event(event_id, current_user)
    return success_response("Certificates retrieved", certificates, count=len(certificates))


@router.get("/{certificate_id}")
async def get_certificate(
    certificate_id: str,
    service: CertificateService = Depends(get_certificate_service),
    current_user: User = Depends(get_current_user),
):
    return success_response("Certificate retrieved", await service.get(certificate_id, current_user))


@router.patch("/{certificate_id}")
async def update_certificate(
    certificate_id: str,
    data: CertificateUpdate,
    service: CertificateService = Depends(get_certificate_service),
    current_user: User = Depends(require_roles(UserRole.organizer)),
):
    certificate = await service.update(certificate_id, current_user, data)
    return success_response("Certificate updated successfully", certificate)


@router.delete("/{certificate_id}")
async def delete_certificate(
    certificate_id: str,
    service: CertificateService = Depends(get_certificate_service),
    current_user: User = Depends(require_roles(UserRole.organizer)),
):
    await service.delete(certificate_id, current_user)
    return success_response("Certificate deleted successfully")

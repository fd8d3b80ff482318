from fastapi import APIRouter, Depends
from datetime import datetime

from eduable.progress.analytics import check_and_issue_certificate
from eduable.progress.database import MongoRecordStore
from eduable.progress.dependencies import get_store, get_current_user_id
from eduable.progress.models import CertificateCheckResponse

router = APIRouter(tags=["Certificates"])


@router.post("/courses/{course_id}/certificate/check", response_model=CertificateCheckResponse)
async def check_certificate(
    course_id: str,
    store: MongoRecordStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id)
):
    check = await check_and_issue_certificate(store, user_id, course_id)
    return CertificateCheckResponse(
        course_id=course_id,
        status=check.status,
        certificate_issued=check.issued,
        lessons_completed=check.lessons_completed,
        lessons_required=check.lessons_required,
        quizzes_passed=check.quizzes_passed,
        quizzes_required=check.quizzes_required,
        certificate=check.certificate
    )


@router.get("/certificates/mine")
async def get_my_certificates(
    store: MongoRecordStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id)
):
    certificates = await store.find_user_certificates(user_id)
    return {"certificates": certificates, "total": len(certificates)}


@router.get("/certificates/verify/{certificate_id}")
async def verify_certificate(certificate_id: str, store: MongoRecordStore = Depends(get_store)):
    certificate = await store.get_certificate(certificate_id)
    if not certificate:
        return {"valid": False, "message": "Certificate not found"}
    issued_at = certificate["issued_at"]
    return {
        "valid": True,
        "certificate_id": certificate_id,
        "issued_to": certificate["user_id"],
        "course_id": certificate["course_id"],
        "issued_at": issued_at.isoformat() if isinstance(issued_at, datetime) else issued_at,
        "certificate_url": certificate["certificate_url"],
        "message": "Certificate is valid"
    }

"""
Report Routes — AI analysis of HR documents, behind the subscription paywall.
"""
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.report import Report
from app.schemas.schemas import ReportCreateRequest, ReportResponse
from app.services.analysis_service import AnalysisService
from app.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/api/reports", tags=["Reports"])


def require_subscription(
    user_id: str = Header(..., alias="user-id"),
    db: Session = Depends(get_db),
) -> str:
    """Dependency: 402 unless the caller has an active subscription."""
    if not SubscriptionService.has_access(db, user_id):
        raise HTTPException(status_code=402, detail="An active subscription is required")
    return user_id


@router.post("", response_model=ReportResponse)
def create_report(
    payload: ReportCreateRequest,
    user_id: str = Depends(require_subscription),
    db: Session = Depends(get_db),
):
    """Generate and store an analysis report for extracted document text."""
    report = Report(user_id=user_id, title=payload.title, source_text=payload.content)
    try:
        report.analysis = AnalysisService.generate_report(payload.content)
        report.status = "completed"
    except ValueError as e:
        report.status = "failed"
        report.error = str(e)[:512]

    db.add(report)
    db.commit()
    db.refresh(report)

    if report.status == "failed":
        raise HTTPException(status_code=502, detail=report.error)
    return report


@router.get("", response_model=list[ReportResponse])
def list_reports(
    user_id: str = Depends(require_subscription),
    db: Session = Depends(get_db),
):
    return (
        db.query(Report)
        .filter(Report.user_id == user_id)
        .order_by(Report.created_at.desc())
        .all()
    )


@router.get("/{report_id}", response_model=ReportResponse)
def get_report(
    report_id: int,
    user_id: str = Depends(require_subscription),
    db: Session = Depends(get_db),
):
    report = db.query(Report).filter(Report.id == report_id, Report.user_id == user_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report

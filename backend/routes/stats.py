# backend/routes/stats.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import get_current_user
from models.users import User
from services.report_service import dashboard
from schemas.reports import StatsSummary

router = APIRouter(
    prefix="/stats",
    tags=["Stats"]
)


# === Dashboard Summary ===

@router.get("/summary", response_model=StatsSummary)
def get_stats_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return StatsSummary(**dashboard(db))

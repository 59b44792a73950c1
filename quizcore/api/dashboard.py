"""
Dashboard API Routes
User statistics, attempt history and leaderboard endpoints
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from quizcore.api.deps import get_current_user_id, get_dashboard_service
from quizcore.core.config import settings
from quizcore.models.attempt import AttemptStatus
from quizcore.models.dashboard import (
    AllAttemptsResponse,
    AttemptListFilters,
    DashboardStats,
    LeaderboardEntry,
    LeaderboardFilters,
    RecentActivity,
    StatsFilters,
    SubjectPerformance,
    Timeframe,
    UserStats,
    WeeklyProgress,
)
from quizcore.models.quiz import AcademicLevel, Difficulty
from quizcore.services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/dashboard", response_model=DashboardStats, summary="Dashboard overview")
async def get_dashboard(
    user_id: str = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service)
) -> DashboardStats:
    return await service.get_dashboard_stats(user_id)


@router.get("/dashboard/stats", response_model=UserStats, summary="User statistics")
async def get_user_stats(
    timeframe: Optional[Timeframe] = None,
    subject: Optional[str] = None,
    academicLevel: Optional[AcademicLevel] = None,
    difficulty: Optional[Difficulty] = None,
    fromDate: Optional[datetime] = None,
    toDate: Optional[datetime] = None,
    user_id: str = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service)
) -> UserStats:
    filters = StatsFilters(
        timeframe=timeframe,
        subject=subject,
        academicLevel=academicLevel,
        difficulty=difficulty,
        fromDate=fromDate,
        toDate=toDate
    )
    return await service.get_user_stats(user_id, filters)


@router.get("/dashboard/attempts", response_model=AllAttemptsResponse, summary="Attempt history")
async def get_all_attempts(
    fromDate: Optional[datetime] = None,
    toDate: Optional[datetime] = None,
    subject: Optional[str] = None,
    difficulty: Optional[Difficulty] = None,
    status: Optional[AttemptStatus] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service)
) -> AllAttemptsResponse:
    filters = AttemptListFilters(
        fromDate=fromDate,
        toDate=toDate,
        subject=subject,
        difficulty=difficulty,
        status=status,
        page=page,
        limit=limit
    )
    return await service.get_all_attempts(user_id, filters)


@router.get("/dashboard/recent-activity", response_model=List[RecentActivity], summary="Recent activity")
async def get_recent_activity(
    limit: int = Query(default=10, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service)
) -> List[RecentActivity]:
    return await service.get_recent_activity(user_id, limit)


@router.get("/dashboard/weekly-progress", response_model=List[WeeklyProgress], summary="Weekly progress")
async def get_weekly_progress(
    weeks: int = Query(default=8, ge=1, le=52),
    user_id: str = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service)
) -> List[WeeklyProgress]:
    return await service.get_weekly_progress(user_id, weeks)


@router.get(
    "/dashboard/subject-performance",
    response_model=List[SubjectPerformance],
    summary="Per-subject performance"
)
async def get_subject_performance(
    user_id: str = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service)
) -> List[SubjectPerformance]:
    return await service.get_subject_performance(user_id)


@router.get("/leaderboard", response_model=List[LeaderboardEntry], summary="Leaderboard")
async def get_leaderboard(
    quizId: Optional[str] = None,
    limit: int = Query(default=settings.default_leaderboard_limit, ge=1, le=settings.max_leaderboard_limit),
    timeframe: Optional[Timeframe] = None,
    subject: Optional[str] = None,
    academicLevel: Optional[AcademicLevel] = None,
    service: DashboardService = Depends(get_dashboard_service)
) -> List[LeaderboardEntry]:
    filters = LeaderboardFilters(timeframe=timeframe, subject=subject, academicLevel=academicLevel)
    return await service.get_leaderboard(quizId, limit, filters)

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app import models
from app.core.database import get_db, unit_of_work
from app.core.deps import get_current_user
from app.schemas import BudgetCreate, BudgetOut, BudgetStatusOut, BudgetUpdate
from app.services import BudgetService


router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.post("", response_model=BudgetOut, status_code=201)
def create_budget(
    payload: BudgetCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        budget = BudgetService(db).create(current_user.id, payload)
    return budget


@router.get("", response_model=list[BudgetOut])
def list_budgets(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return BudgetService(db).list(current_user.id)


@router.get("/status", response_model=list[BudgetStatusOut])
def budget_status(
    month: Optional[int] = Query(default=None, ge=1, le=12),
    year: Optional[int] = Query(default=None, ge=1900, le=9999),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    statuses = BudgetService(db).status(current_user.id, month, year)
    return [BudgetStatusOut.model_validate(s) for s in statuses]


@router.get("/{budget_id}", response_model=BudgetOut)
def get_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return BudgetService(db).get(current_user.id, budget_id)


@router.patch("/{budget_id}", response_model=BudgetOut)
def update_budget(
    budget_id: int,
    payload: BudgetUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        budget = BudgetService(db).update(current_user.id, budget_id, payload)
    return budget


@router.delete("/{budget_id}", status_code=204)
def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        BudgetService(db).delete(current_user.id, budget_id)
    return Response(status_code=204)

# clinic/routers/expenses.py
from fastapi import APIRouter, Depends, Response, status
from typing import List

from .. import schemas, security
from ..dependencies import get_repositories, unwrap
from ..storage.base import Repositories

router = APIRouter(
    tags=["Finance"],
    dependencies=[Depends(security.require_session)],
    responses={404: {"description": "Not found"}},
)

@router.get("/expenses", response_model=List[schemas.Expense])
async def read_expenses(repos: Repositories = Depends(get_repositories)):
    return await repos.expenses.list()

@router.post("/expenses", response_model=schemas.Expense, status_code=status.HTTP_201_CREATED)
async def add_expense(expense: schemas.ExpenseCreate, repos: Repositories = Depends(get_repositories)):
    return unwrap(await repos.expenses.create(expense))

@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(expense_id: str, repos: Repositories = Depends(get_repositories)):
    unwrap(await repos.expenses.delete(expense_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

from fastapi import APIRouter

from leave_engine.api.accruals import accruals_router
from leave_engine.api.adjustments import adjustments_router
from leave_engine.api.applications import applications_router
from leave_engine.api.balances import balances_router
from leave_engine.api.employees import employees_router
from leave_engine.api.leave_types import leave_types_router
from leave_engine.api.withdrawals import withdrawals_router

api_router = APIRouter()
api_router.include_router(leave_types_router)
api_router.include_router(employees_router)
api_router.include_router(balances_router)
api_router.include_router(adjustments_router)
api_router.include_router(applications_router)
api_router.include_router(withdrawals_router)
api_router.include_router(accruals_router)

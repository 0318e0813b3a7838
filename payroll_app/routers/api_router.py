from fastapi import APIRouter
from payroll_app.routers import employees, features, payroll, payslips, profile

# Centralized API router hub: routers are aggregated here,
# and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(payroll.router, tags=["Payroll"])
api_router.include_router(payslips.router, tags=["Payslips"])
api_router.include_router(employees.router, tags=["Employees"])
api_router.include_router(profile.router, tags=["Profile"])
api_router.include_router(features.router, tags=["Features"])

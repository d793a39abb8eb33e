"""API routes."""

from hr_payroll_engine.api.routes.attendance import router as attendance_router
from hr_payroll_engine.api.routes.health import router as health_router
from hr_payroll_engine.api.routes.leaves import router as leaves_router
from hr_payroll_engine.api.routes.payroll import router as payroll_router

__all__ = ["attendance_router", "health_router", "leaves_router", "payroll_router"]

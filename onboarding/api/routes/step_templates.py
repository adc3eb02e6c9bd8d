from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.api import deps
from onboarding.core.auth import require_roles
from onboarding.core.roles import Role
from onboarding.schemas.step_template import StepTemplateOut
from onboarding.schemas.user import UserContext
from onboarding.services.steps import seed_default_steps
from onboarding.services.templates import list_step_templates

router = APIRouter(prefix="/onboarding/step-templates", tags=["onboarding-step-templates"])


@router.get("/{department}", response_model=list[StepTemplateOut])
async def list_department_steps(
    department: str,
    session: AsyncSession = Depends(deps.get_db_session),
    _user: UserContext = Depends(require_roles([Role.HR_ADMIN, Role.HR_EXEC, Role.VIEWER])),
):
    templates = await list_step_templates(session, department)
    return [StepTemplateOut.model_validate(t) for t in templates]


@router.post("/{department}/init-defaults", response_model=list[StepTemplateOut])
async def init_department_defaults(
    department: str,
    session: AsyncSession = Depends(deps.get_db_session),
    _user: UserContext = Depends(require_roles([Role.HR_ADMIN])),
):
    created = await seed_default_steps(session, department)
    await session.commit()
    return [StepTemplateOut.model_validate(t) for t in created]

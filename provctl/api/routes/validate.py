from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from provctl.config import Config
from provctl.errors import ProvisionError
from provctl.modules.plan import FilePlanner
from provctl.modules.reporter import Reporter
from provctl.modules.validate import Validator

router = APIRouter()


class ValidateRequest(BaseModel):
    plan_file: str = Config.PLAN_FILE
    skip_preflight: bool = False


@router.post("/validate")
def run_validate(req: ValidateRequest):
    try:
        plan = FilePlanner(req.plan_file).read()
        report = Validator(reporter=Reporter()).validate(plan, skip_preflight=req.skip_preflight)
    except ProvisionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "status": "success",
        "warnings": report.warnings,
        "preflight": report.preflight_ran,
    }

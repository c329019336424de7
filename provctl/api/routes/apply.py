from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from provctl.commands.apply import ApplyCommand
from provctl.config import Config
from provctl.errors import ProvisionError
from provctl.modules.engine.executor import Executor, new_executor
from provctl.modules.engine.models import ExecutorOptions
from provctl.modules.plan import FilePlanner
from provctl.modules.reporter import Reporter
from provctl.modules.validate import Validator

router = APIRouter()


class ApplyRequest(BaseModel):
    plan_file: str = Config.PLAN_FILE
    generated_assets_dir: str = Config.GENERATED_ASSETS_DIR
    restart_services: bool = False
    verbose: bool = False
    skip_preflight: bool = False


def get_executor_factory():
    """Dependency returning how executors are built; overridden in tests."""
    def factory(options: ExecutorOptions, reporter: Reporter) -> Executor:
        return new_executor(options, Config.PLAYBOOK_DIR, reporter=reporter)
    return factory


@router.post("/apply")
def run_apply(req: ApplyRequest, executor_factory=Depends(get_executor_factory)):
    options = ExecutorOptions(
        generated_assets_dir=req.generated_assets_dir,
        restart_services=req.restart_services,
        verbose=req.verbose,
        skip_preflight=req.skip_preflight,
    )
    reporter = Reporter()
    command = ApplyCommand(
        planner=FilePlanner(req.plan_file),
        validator=Validator(reporter=reporter),
        executor=executor_factory(options, reporter),
        reporter=reporter,
        options=options,
    )
    try:
        command.run()
    except ProvisionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "status": "success",
        "kubeconfig": f"{req.generated_assets_dir}/kubeconfig",
        "phases": [
            {"phase": r.phase, "state": r.state.value, "failed_hosts": r.failed_hosts}
            for r in command.executor.executed()
        ],
    }

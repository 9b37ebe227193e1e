import os
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException

from elasticctl.config import Settings, load_ambient_config
from elasticctl.errors import CommandError, DeployError
from elasticctl.modules.runtime import DockerRuntime
from elasticctl.modules.status import ClusterStatusReporter

router = APIRouter()


def get_reporter() -> ClusterStatusReporter:
    env_file = Path(os.getenv("ELASTICCTL_ENV_FILE", ".env"))
    try:
        settings = Settings.from_env(env_file)
        config = load_ambient_config(env_file)
    except DeployError as e:
        raise HTTPException(status_code=500, detail=str(e))
    runtime = DockerRuntime(
        settings.project_dir,
        helper_image=settings.helper_image,
        timeout=settings.http_timeout,
    )
    return ClusterStatusReporter(runtime, settings, config)


@router.get("/status")
def cluster_status(reporter: ClusterStatusReporter = Depends(get_reporter)):
    try:
        snapshot = reporter.status()
    except (DeployError, CommandError) as e:
        raise HTTPException(status_code=503, detail=str(e))
    return snapshot.to_dict()


@router.get("/healthz")
def healthz():
    return {"status": "ok"}

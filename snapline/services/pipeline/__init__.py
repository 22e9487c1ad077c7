"""
Deployment pipelines: the stage chain and the deploy orchestrator.
"""

from .deploy import (
    DeployMeta,
    DeployOutcome,
    DeployTargets,
    InstanceDeployJob,
    PipelineDeployService,
    execute_instance_deploy_job,
    parse_action,
)
from .stage_graph import StageGraph
from .stages import PipelineStageService

__all__ = [
    "DeployMeta",
    "DeployOutcome",
    "DeployTargets",
    "InstanceDeployJob",
    "PipelineDeployService",
    "PipelineStageService",
    "StageGraph",
    "execute_instance_deploy_job",
    "parse_action",
]

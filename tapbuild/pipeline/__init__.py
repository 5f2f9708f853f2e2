"""安装流水线

拆分说明：
- models.py: InstallPlan / InstallReport
- steps.py: 6 个步骤实现
- orchestrator.py: 协调器
"""

from tapbuild.pipeline.models import InstallPlan, InstallReport
from tapbuild.pipeline.orchestrator import Orchestrator
from tapbuild.pipeline.steps import PipelineSteps

__all__ = [
    "InstallPlan",
    "InstallReport",
    "Orchestrator",
    "PipelineSteps",
]

"""
Structural validation of assembled job metadata.

Issues are advisory: a JobMetadata is always usable downstream whatever
the validation outcome.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from dsxmeta.contexts.extraction.dsx_patterns import UNKNOWN_LABEL
from dsxmeta.contexts.extraction.job_data_structure import JobMetadata
from dsxmeta.contexts.extraction.logger import log_validation_issues


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    issues: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "issues": list(self.issues)}


def validate_job_metadata(job: JobMetadata) -> ValidationResult:
    """
    Check structural invariants of a job.

    Checks, in order:
    - the job has a name
    - the job type resolved (neither empty nor the code-less Unknown() label)
    - at least one source or target was found
    - every extracted stage is an endpoint of some flow edge (only checked
      when the flow is non-empty)
    - every flow endpoint names an extracted stage

    Args:
        job: Assembled job

    Returns:
        ValidationResult; valid is True only when there are no issues
    """
    issues: List[str] = []

    if not job.name:
        issues.append("Missing job name")

    if not job.type or job.type == UNKNOWN_LABEL.format(code=""):
        issues.append("Missing job type")

    if not job.sources and not job.targets:
        issues.append("No sources or targets found - possible parsing issue")

    if job.flow:
        endpoints = set()
        for edge in job.flow:
            endpoints.add(edge.from_stage)
            endpoints.add(edge.to_stage)

        stage_names = job.stage_names()
        for name in stage_names:
            if name not in endpoints:
                issues.append(f'Stage "{name}" appears disconnected from the flow')

        known = set(stage_names)
        unresolved = []
        for edge in job.flow:
            for endpoint in (edge.from_stage, edge.to_stage):
                if endpoint not in known and endpoint not in unresolved:
                    unresolved.append(endpoint)
        for endpoint in unresolved:
            issues.append(f'Flow endpoint "{endpoint}" does not match any extracted stage')

    log_validation_issues(job.name or "<unnamed>", issues)
    return ValidationResult(valid=not issues, issues=tuple(issues))

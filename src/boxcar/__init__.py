from .config import StagingOptions, resolve
from .model import BuildState, Options, ProjectMetadata
from .runner import ConfigurationError, ExternalCommandFailure, MissingArtifactError, PipelineError
from .tasks import PackageTasks

__all__ = [
    "PackageTasks",
    "StagingOptions",
    "resolve",
    "BuildState",
    "Options",
    "ProjectMetadata",
    "PipelineError",
    "ConfigurationError",
    "ExternalCommandFailure",
    "MissingArtifactError",
]

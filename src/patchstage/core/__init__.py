from .errors import (
    PatchStageError, HunkFailure, PatchFailure, PatchTargetNotFound,
    MalformedTargetPath, PipelineIOError, PipelineFailed, ConfigError,
)
from .models import (
    Hunk, FilePatch, PatchSet, PatchStatus, HunkReport, PatchReport,
    StageResult, PipelineState, PipelineResult,
)
from .tree import SourceTree, is_text_path
from .context import ContextAccessor, strip_target
from .normalizer import PatchInputNormalizer
from .parser import UnifiedDiffParser
from .engine import PatchEngine, ContextualPatchEngine
from .records import PatchRecord, read_patches
from .stage import StageProcessor
from .pipeline import Stage, PipelineDriver, run_configured
from .config import PipelineConfig, StageConfig, load_pipeline_config
from .selftests import PatchStageSelfTests

__all__ = [
    "PatchStageError","HunkFailure","PatchFailure","PatchTargetNotFound",
    "MalformedTargetPath","PipelineIOError","PipelineFailed","ConfigError",
    "Hunk","FilePatch","PatchSet","PatchStatus","HunkReport","PatchReport",
    "StageResult","PipelineState","PipelineResult",
    "SourceTree","is_text_path","ContextAccessor","strip_target",
    "PatchInputNormalizer","UnifiedDiffParser","PatchEngine","ContextualPatchEngine",
    "PatchRecord","read_patches","StageProcessor","Stage","PipelineDriver","run_configured",
    "PipelineConfig","StageConfig","load_pipeline_config","PatchStageSelfTests",
]

from __future__ import annotations


class LayoutPipelineError(Exception):
    """Base class for every error raised by the layout core."""


class PipelineInputError(LayoutPipelineError):
    """Genealogy input failed structural validation; no stage was run."""


class UnknownStageError(LayoutPipelineError):
    def __init__(self, stage_id: str) -> None:
        super().__init__(f"Unknown stage type: {stage_id}")
        self.stage_id = stage_id


class StageExecutionError(LayoutPipelineError):
    """Recoverable failure local to one stage invocation."""


class StageParameterError(StageExecutionError):
    pass


class StageOutputError(StageExecutionError):
    pass


class ForestStructureError(LayoutPipelineError):
    pass

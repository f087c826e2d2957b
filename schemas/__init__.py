from .sequence import (
    EMAIL_STEP_TYPES,
    TASK_STEP_TYPES,
    ContactRecord,
    Membership,
    SequenceDefinition,
    SequenceStep,
    StepData,
)
from .results import (
    ActivationReport,
    AdvanceResult,
    BackfillReport,
    DedupPreviewGroup,
    DedupPreviewItem,
    DedupReport,
    DelayAnchor,
    DiagnosticReport,
    SkipEntry,
    StepPlan,
    TaskPreview,
    WalkOutcome,
)

__all__ = [
    "TASK_STEP_TYPES", "EMAIL_STEP_TYPES",
    "StepData", "SequenceStep", "SequenceDefinition", "Membership", "ContactRecord",
    "WalkOutcome", "DelayAnchor", "StepPlan", "AdvanceResult", "SkipEntry",
    "BackfillReport", "DedupPreviewItem", "DedupPreviewGroup", "DedupReport",
    "TaskPreview", "DiagnosticReport", "ActivationReport",
]

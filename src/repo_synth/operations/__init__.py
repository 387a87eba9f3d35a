from repo_synth.operations.config import SynthConfig, SynthConfigManager

from .conflicts import ConflictStateTracker
from .executor import GitExecutor
from .history import CommitGraphBuilder
from .merge import MergeOperations
from .models import (
    BranchLabel,
    Commit,
    ConflictRecord,
    MergeOutcome,
    OutcomeKind,
    RemoteBranchRef,
    RemoteKind,
    RepositoryState,
    StashEntry,
    StateKind,
    TempStashHandle,
)
from .repository import RepositoryHandle
from .stash import StashMergeEngine, StashPhase

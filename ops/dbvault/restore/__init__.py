"""
Restore module for dbvault.

Rebuilds the live database from a remote backup artifact, keeping a
local safety copy of whatever it replaces.

Invariants:
    - The live database is untouched unless the artifact fully validates
    - Restores are operator-triggered and errors propagate to the caller
"""

from .orchestrator import RestoreOrchestrator, RestoreResult, RestoreState

__all__ = ["RestoreOrchestrator", "RestoreResult", "RestoreState"]

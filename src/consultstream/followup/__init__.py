from .orchestrator import FollowUpOrchestrator

__all__ = ["FollowUpOrchestrator"]

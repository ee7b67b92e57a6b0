from .acquisition import AcquisitionOrchestrator
from .organize_queue import OrganizeQueue
from .preferences import PreferencesService

__all__ = ["AcquisitionOrchestrator", "OrganizeQueue", "PreferencesService"]

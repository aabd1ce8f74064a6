from .diagnosis_client import HttpDiagnosisClient
from .documents import MemoryDocumentSource

__all__ = ["HttpDiagnosisClient", "MemoryDocumentSource"]

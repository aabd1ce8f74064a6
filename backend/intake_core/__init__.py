from .diagnosis import (
    DiagnosisAdapter,
    DiagnosisError,
    DiagnosisResult,
    DocumentFetchError,
    DocumentRecord,
    DocumentSource,
    Evidence,
)
from .dialogue import DialogueManager, TurnOutcome
from .extractor import detect_symptom_keywords, extract
from .intent import classify_intent
from .models import (
    AnalysisMetadata,
    Author,
    ConditionScore,
    ConversationState,
    ExtractionResult,
    Intent,
    Message,
    Severity,
    Stage,
    Urgency,
    UserProfile,
)
from .responses import ResponseGenerator
from .session import ConversationSession, SessionClosedError

__all__ = [
    "AnalysisMetadata",
    "Author",
    "ConditionScore",
    "ConversationSession",
    "ConversationState",
    "DiagnosisAdapter",
    "DiagnosisError",
    "DiagnosisResult",
    "DialogueManager",
    "DocumentFetchError",
    "DocumentRecord",
    "DocumentSource",
    "Evidence",
    "ExtractionResult",
    "Intent",
    "Message",
    "ResponseGenerator",
    "SessionClosedError",
    "Severity",
    "Stage",
    "TurnOutcome",
    "Urgency",
    "UserProfile",
    "classify_intent",
    "detect_symptom_keywords",
    "extract",
]

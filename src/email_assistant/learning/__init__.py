"""Learning from user corrections: predictions, profile, detection, rewrites."""

from email_assistant.learning.applier import CorrectionApplier, describe_correction
from email_assistant.learning.detector import Correction, CorrectionDetector, LearningResult
from email_assistant.learning.extraction import extract_profile_update
from email_assistant.learning.predictions import Prediction, PredictionStore
from email_assistant.learning.profile import DEFAULT_PROFILE, Profile

__all__ = [
    "DEFAULT_PROFILE",
    "Correction",
    "CorrectionApplier",
    "CorrectionDetector",
    "LearningResult",
    "Prediction",
    "PredictionStore",
    "Profile",
    "describe_correction",
    "extract_profile_update",
]

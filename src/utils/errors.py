"""Error taxonomy surfaced by the relevance-analysis pipeline."""

from typing import Dict


class AnalysisError(Exception):
    """Base class for failures reported to callers as ``{errorKind, message}``."""

    error_kind = "AnalysisError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"errorKind": self.error_kind, "message": self.message}


# Validation: rejected before any I/O, never retryable

class InvalidVideoReference(AnalysisError):
    """Raised when a URL matches none of the accepted YouTube URL shapes."""

    error_kind = "InvalidVideoReference"


class LearningIntentionTooShort(AnalysisError):
    error_kind = "LearningIntentionTooShort"


class LearningIntentionTooLong(AnalysisError):
    error_kind = "LearningIntentionTooLong"


# Acquisition

class TranscriptUnavailable(AnalysisError):
    """Raised when no usable transcript could be produced for a video."""

    error_kind = "TranscriptUnavailable"


class VideoUnavailable(TranscriptUnavailable):
    """The video is private, removed or otherwise unplayable."""


class NoCaptionsAndNoAudioPath(TranscriptUnavailable):
    """Neither captions nor the download/speech-to-text path produced text."""


class TranscriptEmpty(TranscriptUnavailable):
    """A strategy succeeded technically but returned no usable content."""


# Engine

class ModelUnavailable(AnalysisError):
    """The language model service could not be reached or refused the call."""

    error_kind = "ModelUnavailable"


class AnalysisTimeout(AnalysisError):
    """The language model did not answer before the deadline."""

    error_kind = "AnalysisTimeout"


# Admission

class AnalysisInProgress(AnalysisError):
    """An identical (video, intention) analysis is already running."""

    error_kind = "AnalysisInProgress"

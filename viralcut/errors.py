"""Error kinds raised across the clip pipeline."""


class ViralCutError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class InvalidInput(ViralCutError):
    """Malformed or unrecognized source link, or an invalid edit payload."""


class JobNotFound(ViralCutError):
    pass


class NotReady(ViralCutError):
    """The job has no transcript/source yet, or a worker still owns it."""


class LimitReached(ViralCutError):
    pass


class NoNewCandidates(ViralCutError):
    pass


class ToolResolutionFailure(ViralCutError):
    """Neither the media tool nor the encoder could be located or executed."""


class ExternalToolFailure(ViralCutError):
    """An external tool exited non-zero or produced unusable output."""

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic


class DataInsufficiency(ViralCutError):
    """No transcript segments, no viable candidates or an unusable duration."""

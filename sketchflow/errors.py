"""Exception hierarchy shared by the Gemini adapter, the studio and the web API."""
from __future__ import annotations


class SketchFlowError(Exception):
    pass


# ---------------------------------------------------------------------------
# Provider (Gemini) failures
# ---------------------------------------------------------------------------

class ProviderError(SketchFlowError):
    """A Gemini call failed or returned a response without the expected field."""


class AuthExpiredError(ProviderError):
    """The API key was rejected or the selected key/session no longer exists."""


class ApiKeyMissingError(ProviderError):
    pass


class ScriptParseError(ProviderError):
    """Scene analysis returned text that is not valid JSON."""


class VideoTimeoutError(ProviderError):
    pass


class GenerationCancelled(SketchFlowError):
    pass


# ---------------------------------------------------------------------------
# Studio preconditions
# ---------------------------------------------------------------------------

class StudioError(SketchFlowError):
    pass


class StudioBusy(StudioError):
    pass


class ApiKeyRequired(StudioError):
    pass


class SceneNotFound(StudioError):
    pass

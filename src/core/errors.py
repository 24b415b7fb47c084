"""Error taxonomy for OAuth flows and authenticated actions."""

from __future__ import annotations

from typing import Optional


class OAuthFlowError(Exception):
    """Raised inside an OAuth callback; rendered into LastResult, never to the browser."""

    default_message = "OAuth flow failed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingCode(OAuthFlowError):
    default_message = "Missing code parameter."


class InvalidState(OAuthFlowError):
    default_message = "Invalid or missing state parameter."


class MissingVerifier(OAuthFlowError):
    default_message = "Missing PKCE code_verifier in session."


class TokenExchangeFailed(OAuthFlowError):
    default_message = "Failed to exchange code for token."


class DependentCallFailed(OAuthFlowError):
    """A post-authorization read failed.

    Per-item failures are recorded in place in the payload; this is only raised
    when the parent listing itself cannot be fetched.
    """

    default_message = "Dependent call failed."


class ActionError(Exception):
    """Raised by action endpoints; returned directly as a plain-text HTTP error."""

    status_code = 500
    default_message = "Action failed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticated(ActionError):
    status_code = 400
    default_message = "Login first."


class ResourceNotFound(ActionError):
    status_code = 404
    default_message = "Resource not found."


class UpstreamActionFailed(ActionError):
    status_code = 500
    default_message = "Upstream action failed."

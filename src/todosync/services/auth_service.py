"""Sign-in, sign-up and sign-out on top of the auth provider."""

from __future__ import annotations

from todosync.errors import AuthError
from todosync.models import Identity
from todosync.repositories import AuthProvider
from todosync.services.mode_controller import ModeController
from todosync.services.profile_service import ProfileService
from todosync.utils.logger import get_logger

logger = get_logger("auth_service")


class AuthService:
    """Service for account operations.

    Mode transitions are not performed here: the provider reports the new
    identity and the mode controller reacts to it.
    """

    def __init__(
        self,
        auth_provider: AuthProvider,
        mode_controller: ModeController,
        profile_service: ProfileService | None = None,
    ):
        self.auth_provider = auth_provider
        self.mode_controller = mode_controller
        self.profile_service = profile_service

    @property
    def identity(self) -> Identity | None:
        return self.mode_controller.identity

    async def sign_in(self, email: str, password: str) -> Identity:
        """Sign in; local tasks are migrated before this returns."""
        identity = await self.auth_provider.sign_in(email.strip(), password)
        logger.info("Signed in as %s", identity.uid)
        return identity

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> Identity:
        """Create an account and sign in.

        The profile is stored with *full_name* even when the provider did
        not report it as the display name.
        """
        identity = await self.auth_provider.sign_up(email.strip(), password, full_name)
        if self.profile_service is not None and full_name and full_name != identity.display_name:
            try:
                await self.profile_service.update_profile(identity.uid, name=full_name)
            except Exception as e:  # account exists; profile name is cosmetic
                logger.warning("Could not store profile name for %s: %s", identity.uid, e)
        logger.info("Signed up as %s", identity.uid)
        return identity

    async def sign_out(self) -> None:
        """Return to local mode, then end the provider session.

        Raises:
            AuthError: The provider failed; the app is already in local mode
        """
        await self.mode_controller.handle_auth_state(None)
        try:
            await self.auth_provider.sign_out()
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(f"Sign-out failed: {e}") from e
        logger.info("Signed out")

from dataclasses import dataclass, field
from typing import Optional

from flexkazi.core.security import Identity
from flexkazi.models.schemas import Dashboard, GuardDecision, UserProfile
from flexkazi.services.task_loader import TaskLoader

LOGIN_VIEW = "login"
HOME_VIEW = "profile"
PROTECTED_VIEWS = {"dashboard", "profile", "tasks", "workspace", "settings"}


class SessionGuard:
    """Keeps signed-out viewers off protected views and signed-in viewers off the login view."""

    def __init__(self, login_view: str = LOGIN_VIEW, home_view: str = HOME_VIEW):
        self.login_view = login_view
        self.home_view = home_view

    def decide(self, view: str, identity: Optional[Identity]) -> GuardDecision:
        if identity is None:
            if view in PROTECTED_VIEWS:
                return GuardDecision(allowed=False, redirect_to=self.login_view)
            return GuardDecision(allowed=True)
        if view == self.login_view:
            return GuardDecision(allowed=False, redirect_to=self.home_view)
        return GuardDecision(allowed=True)


@dataclass
class AppSession:
    """Everything one signed-in viewer's screens are rendered from."""

    identity: Identity
    profile: UserProfile = field(default_factory=UserProfile)
    dashboard: Optional[Dashboard] = None

    def refresh(self, loader: TaskLoader) -> Dashboard:
        self.dashboard = loader.load(self.identity.uid)
        return self.dashboard


"""
Profile bootstrap and profile/settings management.

A profile lives at users/{uid}; the matching task index at user_tasks/{uid}.
Counters under site_statistics and work_categories are advisory: failures there
are logged and never abort the primary write.
"""
import re
from typing import Any, Callable, Dict, Optional, Tuple

from flexkazi.core.errors import RemoteUnavailableError, ValidationError
from flexkazi.core.logging import get_logger
from flexkazi.core.security import Identity
from flexkazi.models.schemas import (
    AccountState,
    PersonalUpdate,
    ProfessionalUpdate,
    SettingsUpdate,
    SignUpRequest,
    TaskCategory,
    UserProfile,
)
from flexkazi.services.lifecycle import now_ms

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[\+]?[(]?[0-9]{3}[)]?[-\s\.]?[0-9]{3}[-\s\.]?[0-9]{4,6}$")
MIN_PASSWORD_LENGTH = 6


def validate_email(email: str) -> str:
    email = (email or "").strip()
    if not email:
        raise ValidationError("Please enter your Email")
    if not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address")
    return email


def validate_category(category: str) -> str:
    if category not in TaskCategory.ALL:
        raise ValidationError(f"Category must be one of: {', '.join(TaskCategory.ALL)}")
    return category


def validate_signup(signup: SignUpRequest) -> None:
    """Mirror of the sign-up form checks; runs before anything reaches the identity provider."""
    required = [
        (signup.full_name, "Full name"),
        (signup.email, "Email"),
        (signup.phone_number, "Phone number"),
        (signup.city_location, "Location"),
        (signup.main_category, "Category"),
        (signup.skill_set, "Skills"),
        (signup.experience_level, "Experience"),
        (signup.password, "Password"),
        (signup.confirm_password, "Confirm password"),
    ]
    for value, name in required:
        if not str(value or "").strip():
            raise ValidationError(f"Please enter your {name}")

    if not signup.accepted_terms:
        raise ValidationError("Please accept the Terms of Service")
    validate_email(signup.email)
    if not PHONE_RE.match(signup.phone_number.strip()):
        raise ValidationError("Please enter a valid phone number")
    if len(signup.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if signup.password != signup.confirm_password:
        raise ValidationError("Passwords do not match")
    if signup.rate_per_hour <= 0:
        raise ValidationError("Please enter a valid hourly rate")
    validate_category(signup.main_category)


def validate_login(email: str, password: str) -> str:
    if not (email or "").strip() or not password:
        raise ValidationError("Please enter both email and password")
    return validate_email(email)


def default_task_index() -> Dict[str, Any]:
    return {
        "assigned_tasks": {},
        "completed_tasks": {},
        "stats": {
            "tasks_in_progress": 0,
            "tasks_available": 0,
            "tasks_completed": 0,
            "total_earned": 0,
            "average_rating": 0,
        },
    }


def default_profile(identity: Identity, now: int, signup_source: str = "email") -> Dict[str, Any]:
    """Profile synthesized for an identity that signed in without one."""
    profile = UserProfile(account_state=AccountState.ACTIVE)
    profile.personal.full_name = identity.display_name or "New Freelancer"
    profile.personal.email_address = identity.email
    profile.personal.city_location = "Nairobi"
    profile.personal.joined_timestamp = now
    profile.professional.experience_level = "0-1 years"
    profile.professional.hours_per_week = "20-30 hours"
    profile.system_data = {"signup_source": signup_source, "last_login": now}
    return profile.model_dump()


def signup_profile(signup: SignUpRequest, now: int) -> Dict[str, Any]:
    profile = UserProfile(account_state=AccountState.PENDING_VERIFICATION)
    profile.personal.full_name = signup.full_name.strip()
    profile.personal.email_address = signup.email.strip()
    profile.personal.phone_number = signup.phone_number.strip()
    profile.personal.city_location = signup.city_location.strip()
    profile.personal.joined_timestamp = now
    profile.professional.main_category = signup.main_category
    profile.professional.skill_set = signup.skill_set.strip()
    profile.professional.experience_level = signup.experience_level
    profile.professional.rate_per_hour = signup.rate_per_hour
    profile.professional.hours_per_week = "20_to_30"
    profile.system_data = {"signup_source": "web_form", "last_login": now}
    return profile.model_dump()


class ProfileBootstrapper:
    def __init__(self, db_ops, clock: Callable[[], int] = now_ms):
        self.db_ops = db_ops
        self.clock = clock

    def register(self, identity: Identity, signup: SignUpRequest) -> Dict[str, Any]:
        now = self.clock()
        profile = signup_profile(signup, now)
        self.db_ops.set(f"users/{identity.uid}", profile)
        self.db_ops.set(f"user_tasks/{identity.uid}", default_task_index())
        logger.info(f"Created profile for {identity.uid} in category '{signup.main_category}'")

        self._join_category(identity.uid, signup.main_category)
        self._bump_site_statistics(awaiting_review=True)
        self._queue_verification(identity.uid, now)
        return profile

    def ensure_profile(self, identity: Identity, signup_source: str = "email") -> Tuple[Dict[str, Any], bool]:
        """Return (profile, created). Existing profiles get their last_login stamped."""
        now = self.clock()
        profile = self.db_ops.get(f"users/{identity.uid}")
        if profile:
            try:
                self.db_ops.set(f"users/{identity.uid}/system_data/last_login", now)
            except RemoteUnavailableError as e:
                logger.warning(f"Could not stamp last login for {identity.uid}: {e}")
            return profile, False

        logger.info(f"Creating default profile for {identity.uid}")
        profile = default_profile(identity, now, signup_source)
        self.db_ops.set(f"users/{identity.uid}", profile)
        if not self.db_ops.get(f"user_tasks/{identity.uid}"):
            self.db_ops.set(f"user_tasks/{identity.uid}", default_task_index())
        self._bump_site_statistics(awaiting_review=False)
        return profile, True

    def _join_category(self, uid: str, category: str) -> None:
        try:
            self.db_ops.set(f"work_categories/{category}/freelancer_list/{uid}", True)
            self.db_ops.increment(f"work_categories/{category}/member_count")
        except RemoteUnavailableError as e:
            logger.warning(f"Could not add {uid} to category '{category}': {e}")

    def _bump_site_statistics(self, awaiting_review: bool) -> None:
        try:
            self.db_ops.increment("site_statistics/total_members")
            if awaiting_review:
                self.db_ops.increment("site_statistics/awaiting_review")
            self.db_ops.set("site_statistics/last_update_time", self.clock())
        except RemoteUnavailableError as e:
            logger.warning(f"Error updating site statistics: {e}")

    def _queue_verification(self, uid: str, now: int) -> None:
        try:
            self.db_ops.set(f"verification_items/{uid}", {
                "request_time": now,
                "document_list": "pending",
                "current_status": "pending",
            })
        except RemoteUnavailableError as e:
            logger.warning(f"Could not queue verification for {uid}: {e}")


class ProfileService:
    def __init__(self, db_ops):
        self.db_ops = db_ops

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        data = self.db_ops.get(f"users/{uid}")
        return UserProfile.model_validate(data) if data else None

    def update_personal(self, uid: str, changes: PersonalUpdate) -> UserProfile:
        updates = changes.model_dump(exclude_none=True)
        if "full_name" in updates and not updates["full_name"].strip():
            raise ValidationError("Please enter your Full name")
        if updates.get("phone_number") and not PHONE_RE.match(updates["phone_number"].strip()):
            raise ValidationError("Please enter a valid phone number")
        return self._merge(uid, "personal", updates)

    def update_professional(self, uid: str, changes: ProfessionalUpdate) -> UserProfile:
        updates = changes.model_dump(exclude_none=True)
        if "rate_per_hour" in updates and updates["rate_per_hour"] < 0:
            raise ValidationError("Please enter a valid hourly rate")
        new_category = updates.get("main_category")
        if new_category is not None:
            validate_category(new_category)

        old_category = self.db_ops.get(f"users/{uid}/professional/main_category") if new_category else None
        profile = self._merge(uid, "professional", updates)
        if new_category and new_category != old_category:
            self._move_category(uid, old_category, new_category)
        return profile

    def update_settings(self, uid: str, changes: SettingsUpdate) -> UserProfile:
        return self._merge(uid, "settings", changes.model_dump(exclude_none=True))

    def _merge(self, uid: str, section: str, updates: Dict[str, Any]) -> UserProfile:
        if not updates:
            raise ValidationError("Nothing to update")
        self.db_ops.update(f"users/{uid}/{section}", updates)
        logger.info(f"Updated {section} for {uid}: {sorted(updates)}")
        return self.get_profile(uid) or UserProfile()

    def _move_category(self, uid: str, old: Optional[str], new: str) -> None:
        try:
            if old:
                self.db_ops.set(f"work_categories/{old}/freelancer_list/{uid}", None)
                self.db_ops.increment(f"work_categories/{old}/member_count", -1)
            self.db_ops.set(f"work_categories/{new}/freelancer_list/{uid}", True)
            self.db_ops.increment(f"work_categories/{new}/member_count")
        except RemoteUnavailableError as e:
            logger.warning(f"Could not move {uid} from category '{old}' to '{new}': {e}")

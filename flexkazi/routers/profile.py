from fastapi import APIRouter, Depends

from flexkazi.core.security import Identity
from flexkazi.db.firebase_ops import get_db_ops_instance
from flexkazi.models.schemas import PersonalUpdate, ProfessionalUpdate, SettingsUpdate, UserProfile
from flexkazi.routers.auth import get_current_identity
from flexkazi.services.profiles import ProfileBootstrapper, ProfileService

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("/me", response_model=UserProfile)
def read_my_profile(identity: Identity = Depends(get_current_identity)):
    profile, _ = ProfileBootstrapper(get_db_ops_instance()).ensure_profile(identity)
    return UserProfile.model_validate(profile)


@router.patch("/personal", response_model=UserProfile)
def update_personal(changes: PersonalUpdate, identity: Identity = Depends(get_current_identity)):
    return ProfileService(get_db_ops_instance()).update_personal(identity.uid, changes)


@router.patch("/professional", response_model=UserProfile)
def update_professional(changes: ProfessionalUpdate, identity: Identity = Depends(get_current_identity)):
    return ProfileService(get_db_ops_instance()).update_professional(identity.uid, changes)


@router.patch("/settings", response_model=UserProfile)
def update_settings(changes: SettingsUpdate, identity: Identity = Depends(get_current_identity)):
    return ProfileService(get_db_ops_instance()).update_settings(identity.uid, changes)

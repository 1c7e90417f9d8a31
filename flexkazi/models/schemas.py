from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, AliasChoices


class TaskCategory:
    ADVERT = "advert"
    SOCIAL = "social"
    DATA = "data"

    ALL = (ADVERT, SOCIAL, DATA)
    DISPLAY_NAMES = {
        ADVERT: "Advert Generation",
        SOCIAL: "Social Media Management",
        DATA: "Data Entry",
    }


class TaskPriority:
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    ALL = (HIGH, MEDIUM, LOW)


class AccountState:
    PENDING_VERIFICATION = "pending_verification"
    ACTIVE = "active"
    DISABLED = "disabled"


# --- Task records -----------------------------------------------------------

class TaskDetails(BaseModel):
    title: str = ""
    description: Optional[str] = None
    category: Optional[str] = None  # Enum: 'advert', 'social', 'data'
    priority: str = TaskPriority.MEDIUM  # Enum: 'high', 'medium', 'low'
    budget: float = Field(default=0, ge=0)  # KES
    estimated_hours: Optional[float] = None
    deadline: Optional[int] = None  # epoch ms
    created_at: Optional[int] = None  # epoch ms
    worksheet_url: Optional[str] = None


class Assignment(BaseModel):
    assigned_to: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[int] = None
    is_priority_match: bool = False


class TaskStatusBlock(BaseModel):
    current: str = "available"  # Enum: 'available', 'in_progress', 'submitted', 'completed'
    accepted_at: Optional[int] = None
    started_at: Optional[int] = None
    submitted_at: Optional[int] = None
    completed_at: Optional[int] = None


class Deliverables(BaseModel):
    files: List[str] = Field(default_factory=list)  # retrievable URLs
    submission_notes: Optional[str] = None
    feedback: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)


class Task(BaseModel):
    """A task as stored under tasks/{id}; older records keep their details under 'details'."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    details: TaskDetails = Field(
        default_factory=TaskDetails,
        validation_alias=AliasChoices("task_details", "details"),
        serialization_alias="task_details",
    )
    assignment: Optional[Assignment] = None
    status: TaskStatusBlock = Field(default_factory=TaskStatusBlock)
    deliverables: Deliverables = Field(default_factory=Deliverables)

    @property
    def assignee(self) -> Optional[str]:
        return self.assignment.assigned_to if self.assignment else None


# --- Profiles ---------------------------------------------------------------

class PersonalInfo(BaseModel):
    full_name: str = ""
    email_address: str = ""
    phone_number: str = ""
    city_location: str = ""
    joined_timestamp: Optional[int] = None


class ProfessionalInfo(BaseModel):
    main_category: str = ""
    skill_set: str = ""
    experience_level: str = ""
    rate_per_hour: float = Field(default=0, ge=0)
    hours_per_week: str = ""


class ProfileFiles(BaseModel):
    cv_file_url: str = ""
    id_file_url: str = ""
    certificates_urls: str = ""
    verification_status: bool = False


class NotificationSettings(BaseModel):
    email: bool = True
    sms: bool = False
    new_tasks: bool = True


class ProfileSettings(BaseModel):
    preferred_project_type: str = "project_based"
    work_mode: str = "remote"
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


class UserProfile(BaseModel):
    personal: PersonalInfo = Field(default_factory=PersonalInfo)
    professional: ProfessionalInfo = Field(default_factory=ProfessionalInfo)
    files: ProfileFiles = Field(default_factory=ProfileFiles)
    settings: ProfileSettings = Field(default_factory=ProfileSettings)
    account_state: str = AccountState.PENDING_VERIFICATION  # Enum: 'pending_verification', 'active', 'disabled'
    system_data: Dict[str, Any] = Field(default_factory=dict)


# --- Per-user index and aggregates -------------------------------------------

class IndexEntry(BaseModel):
    assigned_at: Optional[int] = None
    priority_match: bool = False
    current_status: str = "available"


class UserStats(BaseModel):
    tasks_in_progress: int = 0
    tasks_available: int = 0
    tasks_assigned: int = 0
    tasks_completed: int = 0
    tasks_awaiting_review: int = 0
    total_earned: float = 0
    average_rating: float = 0
    last_recomputed: Optional[int] = None


class Buckets(BaseModel):
    priority: List[Task] = Field(default_factory=list)
    assigned: List[Task] = Field(default_factory=list)
    in_progress: List[Task] = Field(default_factory=list)
    completed: List[Task] = Field(default_factory=list)  # 'submitted' and 'completed'
    available: List[Task] = Field(default_factory=list)


class Dashboard(BaseModel):
    buckets: Buckets
    stats: UserStats
    recent: List[Task] = Field(default_factory=list)
    unread_notifications: int = 0


# --- Requests and responses -------------------------------------------------

class SignUpRequest(BaseModel):
    full_name: str
    email: str
    phone_number: str
    city_location: str
    main_category: str
    skill_set: str
    experience_level: str
    rate_per_hour: float
    password: str
    confirm_password: str
    accepted_terms: bool = False


class LoginRequest(BaseModel):
    email: str
    password: str


class GoogleSignInRequest(BaseModel):
    id_token: str
    request_uri: str = "http://localhost"


class PasswordResetRequest(BaseModel):
    email: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    profile_created: bool = False


class PersonalUpdate(BaseModel):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    city_location: Optional[str] = None


class ProfessionalUpdate(BaseModel):
    main_category: Optional[str] = None
    skill_set: Optional[str] = None
    experience_level: Optional[str] = None
    rate_per_hour: Optional[float] = None
    hours_per_week: Optional[str] = None


class SettingsUpdate(BaseModel):
    preferred_project_type: Optional[str] = None
    work_mode: Optional[str] = None
    notifications: Optional[NotificationSettings] = None


class GuardDecision(BaseModel):
    allowed: bool
    redirect_to: Optional[str] = None


class TransitionResponse(BaseModel):
    task: Task
    changed: bool = True
    message: str

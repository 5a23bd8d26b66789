"""Fixed tables shared across the intake pipeline."""

SNAPSHOT_SCHEMA_VERSION = 1

# Versionless keys used by the browser build of the wizard.
LEGACY_FORM_DATA_KEY = "project_builder_form_data"
LEGACY_CURRENT_STEP_KEY = "project_builder_current_step"
LEGACY_VISITOR_ID_KEY = "project_builder_visitor_id"

REQUIRED_IDENTITY_FIELDS = ("full_name", "business_email")

REQUIRED_TECHNOLOGY_CATEGORIES = (
    ("Frontend Technologies", "FRONTEND"),
    ("Backend Technologies", "BACKEND"),
    ("Database Technologies", "DATABASE"),
)

DEFAULT_TIMELINE = "fast-track"

# option key -> (backend code, rush fee percent, estimated days)
TIMELINE_OPTIONS = {
    "standard": ("STANDARD", 0, 90),
    "priority": ("PRIORITY", 15, 60),
    "accelerated": ("ACCELERATED", 25, 45),
    "rapid": ("RAPID", 35, 30),
    "fast-track": ("FAST_TRACK", 50, 20),
}

TERMINAL_OPTIONS = ("secure", "quote", "consultation")

TERMINAL_OPTION_LABELS = {
    "secure": "Secure My Project",
    "quote": "Request Formal Quote",
    "consultation": "Schedule Consultation",
}

OTP_LENGTH = 6
MIN_PASSWORD_LENGTH = 6

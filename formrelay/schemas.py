"""
Form submission schemas

Each form kind maps to a pydantic model. Field rules are declared per field
and evaluated independently, so one request reports every bad field at once.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .shared.validators import validate_email, validate_length, validate_name, validate_phone


class FormKind(str, Enum):
    CONTACT = "contact"
    APPLICATION = "application"


# Anti-abuse inputs that never reach a notification template
INTERNAL_FIELDS = {"token", "honeypot"}

# Any content in the trap counts, whitespace included
UNTRIMMED_FIELDS = {"honeypot"}


class SubmissionModel(BaseModel):
    """Base for all form payloads: camelCase on the wire, extras ignored"""

    model_config = ConfigDict(alias_generator=to_camel, extra="ignore", frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def strip_strings(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, str) and info.field_name not in UNTRIMMED_FIELDS:
            return value.strip()
        return value

    def template_data(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude=INTERNAL_FIELDS)


class ContactSubmission(SubmissionModel):
    name: str
    email: str
    subject: str
    message: str
    timestamp: Optional[datetime] = None
    token: Optional[str] = None
    honeypot: Optional[Any] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return validate_name(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return validate_email(value)

    @field_validator("subject")
    @classmethod
    def check_subject(cls, value: str) -> str:
        return validate_length(value, "Subject", min_length=5, max_length=200)

    @field_validator("message")
    @classmethod
    def check_message(cls, value: str) -> str:
        return validate_length(value, "Message", min_length=10, max_length=1000)


ServicePackage = Literal["Business Strategy", "Market Research", "Digital Transformation"]
BusinessStage = Literal["Startup", "Growth", "Maturity", "Decline"]
AreaOfExpertise = Literal[
    "Marketing",
    "Operations",
    "Finance/Fintech",
    "Strategy",
    "Production Development",
    "Sales",
    "Other",
]
ProjectDuration = Literal["1-3 months", "4-6 months", "7-12 months"]

# Long-form answers and the message shown when they are too short
_DETAIL_FIELDS = {
    "consultation_goals": "Please provide detailed goals",
    "challenges": "Please describe your challenges",
    "business_objectives": "Please describe your business objectives",
    "success_metrics": "Please define your success metrics",
}


class ApplicationSubmission(SubmissionModel):
    first_name: str
    last_name: str
    email: str
    phone: str
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    service_package: ServicePackage
    consultation_goals: str
    business_stage: BusinessStage
    primary_area_of_expertise: AreaOfExpertise
    years_of_experience: float = Field(strict=True, allow_inf_nan=False)
    challenges: str
    business_objectives: str
    success_metrics: str
    budget: str
    additional_details: Optional[str] = None
    project_duration: ProjectDuration
    preferred_timeline: Optional[str] = None
    honeypot: Optional[Any] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def check_names(cls, value: str, info: ValidationInfo) -> str:
        label = "First name" if info.field_name == "first_name" else "Last name"
        return validate_length(value, label, min_length=2)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return validate_email(value)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: str) -> str:
        return validate_phone(value)

    @field_validator(*_DETAIL_FIELDS)
    @classmethod
    def check_details(cls, value: str, info: ValidationInfo) -> str:
        return validate_length(value, info.field_name, min_length=10, min_message=_DETAIL_FIELDS[info.field_name])

    @field_validator("years_of_experience")
    @classmethod
    def check_years(cls, value: float) -> float:
        if value < 1:
            raise ValueError("Please enter a valid number of years")
        return value


Submission = Union[ContactSubmission, ApplicationSubmission]

SCHEMAS: dict[FormKind, type[SubmissionModel]] = {
    FormKind.CONTACT: ContactSubmission,
    FormKind.APPLICATION: ApplicationSubmission,
}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    """Either a fully validated submission or the list of field errors"""

    submission: Optional[Submission] = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.submission is not None


def _error_message(error: dict) -> str:
    if error["type"] == "missing":
        return "Required"
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    return error["msg"]


def errors_from_pydantic(exc: ValidationError) -> list[FieldError]:
    """Flatten pydantic errors into dot-joined field paths"""
    return [
        FieldError(field=".".join(str(part) for part in error["loc"]), message=_error_message(error))
        for error in exc.errors()
    ]


def validate_submission(kind: FormKind, raw: Any) -> ValidationResult:
    """
    Validate a raw payload against the schema for a form kind.

    Args:
        kind: Which form the payload belongs to
        raw: Decoded JSON body (anything; non-objects are rejected)

    Returns:
        ValidationResult with a normalized submission, or the field errors
    """
    schema = SCHEMAS[kind]
    if not isinstance(raw, dict):
        return ValidationResult(errors=[FieldError(field="", message="Expected a JSON object")])

    try:
        return ValidationResult(submission=schema.model_validate(raw))
    except ValidationError as e:
        return ValidationResult(errors=errors_from_pydantic(e))

"""
Database Schemas for the School Administration API (MongoDB via Pydantic models)
Each Pydantic model represents a collection; collection name is the lowercase of class name.
Every document is validated against its model before it is written.
"""

from pydantic import BaseModel, Field, EmailStr, field_validator
from typing import Optional, List, Literal
from datetime import datetime

Role = Literal["admin", "staff", "student", "parent"]
AttendanceStatus = Literal["present", "absent", "late"]
PaymentStatus = Literal["pending", "completed", "failed"]

CLASS_CODES = (
    [f"form{year}{section}" for year in range(1, 5) for section in "abcdefghij"]
    + ["l6", "u6"]
)


def check_class_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    code = value.strip().lower()
    if code not in CLASS_CODES:
        raise ValueError(f"Unrecognized class '{value}'")
    return code


# Identity
class User(BaseModel):
    username: str = Field(..., min_length=1)
    password_hash: str = Field(..., description="bcrypt hash")
    role: Role
    name: str = Field(..., min_length=1, description="Display name")
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    student_id: Optional[str] = None  # role == student
    class_code: Optional[str] = None  # role == student
    children: List[str] = Field(default_factory=list)  # role == parent, user ids

    @field_validator("class_code")
    @classmethod
    def validate_class_code(cls, v):
        return check_class_code(v)


class Student(BaseModel):
    user: Optional[str] = None  # owning user id; None for seed data
    name: str = Field(..., min_length=1)
    class_code: str
    attendance: float = Field(100, ge=0, le=100)
    performance: float = Field(75, ge=0, le=100)
    status: AttendanceStatus = "present"

    @field_validator("class_code")
    @classmethod
    def validate_class_code(cls, v):
        return check_class_code(v)


class Notice(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    author: Optional[str] = None
    timestamp: datetime


class Payment(BaseModel):
    student: str  # payer user id
    student_name: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    payment_type: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    phone: str = Field(..., min_length=1)
    status: PaymentStatus = "pending"
    transaction_id: Optional[str] = None
    timestamp: datetime


class Sms(BaseModel):
    recipient: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    status: Literal["sent", "failed"] = "sent"
    timestamp: datetime


class Resource(BaseModel):
    title: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)  # "Past Paper" | "Study Notes" | ...
    category: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    year: int
    file_url: Optional[str] = None
    uploaded_by: Optional[str] = None
    timestamp: datetime


class Event(BaseModel):
    title: str = Field(..., min_length=1)
    date: str  # ISO date, sorts chronologically
    type: str = Field(..., min_length=1)
    description: Optional[str] = None
    created_by: Optional[str] = None
    timestamp: datetime


class Portfolio(BaseModel):
    author: str
    author_type: Literal["student", "teacher"]
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    file_url: Optional[str] = None
    timestamp: datetime

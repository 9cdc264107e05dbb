from enum import Enum
from pydantic import BaseModel, EmailStr
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime

from typing import TYPE_CHECKING

from ..utils.utils import new_id, utc_now
from .base import ApiModel

if TYPE_CHECKING:
    from .rating import JobRecommendationRating


class UserRole(str, Enum):
    USER = "USER"
    EMPLOYER = "EMPLOYER"
    ADMIN = "ADMIN"


class ProfileStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class UserSummary(ApiModel):
    id: str
    name: Optional[str] = None
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class UserLoginInput(BaseModel):
    username: EmailStr
    password: str


class User(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(unique=True, index=True)
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    hashed_password: str
    role: UserRole = Field(default=UserRole.USER)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    profile: Optional["UserProfile"] = Relationship(
        back_populates="user", sa_relationship_kwargs={"uselist": False}
    )
    recommendation_ratings: List["JobRecommendationRating"] = Relationship(back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserProfile(SQLModel, table=True):
    __tablename__ = "user_profile"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="user.id", unique=True, index=True)
    status: ProfileStatus = Field(default=ProfileStatus.DRAFT)
    full_name: Optional[str] = None
    email: Optional[str] = None
    location: Optional[str] = None
    disability_types: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    support_needs: Optional[str] = None
    assistive_tech: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    accommodations: Optional[str] = None
    soft_skills: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    hard_skills: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    industries: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    work_arrangement: Optional[str] = None
    custom_summary: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    user: "User" = Relationship(back_populates="profile")

    @property
    def is_completed(self) -> bool:
        return self.status == ProfileStatus.COMPLETED

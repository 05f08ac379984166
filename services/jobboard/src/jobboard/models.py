from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from jobboard.sql import SQL_INTEGER_MAX


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RequestModel(ApiModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class CompanyCreateRequest(RequestModel):
    handle: str = Field(..., min_length=1, max_length=25, pattern=r"^[a-z0-9-]+$")
    name: str = Field(..., min_length=1)
    description: str = ""
    num_employees: int | None = Field(default=None, alias="numEmployees", ge=0, le=SQL_INTEGER_MAX)
    logo_url: str | None = Field(default=None, alias="logoUrl")


class CompanyUpdateRequest(RequestModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    num_employees: int | None = Field(default=None, alias="numEmployees", ge=0, le=SQL_INTEGER_MAX)
    logo_url: str | None = Field(default=None, alias="logoUrl")


class JobSummary(ApiModel):
    id: int
    title: str
    salary: int | None = None
    equity: float | None = None


class Company(ApiModel):
    handle: str
    name: str
    description: str
    num_employees: int | None = Field(default=None, alias="numEmployees")
    logo_url: str | None = Field(default=None, alias="logoUrl")


class CompanyDetail(Company):
    jobs: list[JobSummary] = Field(default_factory=list)


class JobCreateRequest(RequestModel):
    title: str = Field(..., min_length=1)
    salary: int | None = Field(default=None, ge=0, le=SQL_INTEGER_MAX)
    equity: float | None = Field(default=None, ge=0, le=1)
    company_handle: str = Field(..., alias="companyHandle", min_length=1)


class JobUpdateRequest(RequestModel):
    title: str | None = Field(default=None, min_length=1)
    salary: int | None = Field(default=None, ge=0, le=SQL_INTEGER_MAX)
    equity: float | None = Field(default=None, ge=0, le=1)


class Job(ApiModel):
    id: int
    title: str
    salary: int | None = None
    equity: float | None = None
    company_handle: str = Field(..., alias="companyHandle")


class UserRegisterRequest(RequestModel):
    username: str = Field(..., min_length=1, max_length=25)
    password: str = Field(..., min_length=5, max_length=20)
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=30)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=30)
    email: EmailStr


class UserCreateRequest(UserRegisterRequest):
    is_admin: bool = Field(default=False, alias="isAdmin")


class UserUpdateRequest(RequestModel):
    password: str | None = Field(default=None, min_length=5, max_length=20)
    first_name: str | None = Field(default=None, alias="firstName", min_length=1, max_length=30)
    last_name: str | None = Field(default=None, alias="lastName", min_length=1, max_length=30)
    email: EmailStr | None = None


class User(ApiModel):
    username: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: str
    is_admin: bool = Field(..., alias="isAdmin")


class AppliedJob(ApiModel):
    job_id: int = Field(..., alias="jobId")
    title: str
    salary: int | None = None
    equity: float | None = None
    company_handle: str = Field(..., alias="companyHandle")
    applied_at: str = Field(..., alias="appliedAt")


class UserDetail(User):
    jobs: list[AppliedJob] = Field(default_factory=list)


class TokenRequest(RequestModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenResponse(ApiModel):
    token: str


class UserTokenResponse(ApiModel):
    user: User
    token: str

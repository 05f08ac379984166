from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from jobboard.config import Settings, load_settings
from jobboard.errors import InvalidInputError
from jobboard.guards import (
    ADMIN_ONLY,
    ANONYMOUS,
    OWNER_OR_ADMIN,
    Actor,
    Decision,
    GuardChain,
)
from jobboard.models import (
    Company,
    CompanyCreateRequest,
    CompanyDetail,
    CompanyUpdateRequest,
    Job,
    JobCreateRequest,
    JobUpdateRequest,
    TokenRequest,
    TokenResponse,
    User,
    UserCreateRequest,
    UserDetail,
    UserRegisterRequest,
    UserTokenResponse,
    UserUpdateRequest,
)
from jobboard.repository import JobboardRepository
from jobboard.security import create_token, decode_actor
from jobboard.sql import SQL_INTEGER_MAX, SQL_INTEGER_MIN, CompanyFilters, JobFilters

LOGGER = logging.getLogger("jobboard.api")

JobId = Annotated[int, Path(ge=SQL_INTEGER_MIN, le=SQL_INTEGER_MAX)]

DENIAL_STATUS = {
    Decision.UNAUTHENTICATED: (401, "Unauthorized"),
    Decision.FORBIDDEN: (403, "Forbidden"),
}


def current_actor(request: Request) -> Actor:
    return getattr(request.state, "actor", ANONYMOUS)


def authorize(chain: GuardChain) -> Callable[[Request], Awaitable[Actor]]:
    """Build a route dependency that runs ``chain`` against the request actor.

    The owner reference is the ``username`` path parameter, when the route has one.
    """

    async def dependency(request: Request) -> Actor:
        actor = current_actor(request)
        owner = request.path_params.get("username")
        decision = chain.evaluate(actor, owner)
        if decision is Decision.ALLOW:
            return actor
        status_code, detail = DENIAL_STATUS[decision]
        LOGGER.info(
            json.dumps(
                {
                    "event": "authorization_denied",
                    "request_id": getattr(request.state, "request_id", None),
                    "method": request.method,
                    "path": request.url.path,
                    "decision": decision.value,
                    "actor": actor.username,
                }
            )
        )
        raise HTTPException(status_code=status_code, detail=detail)

    return dependency


def create_app(
    *,
    database_path: str | None = None,
    secret_key: str | None = None,
    bcrypt_work_factor: int | None = None,
) -> FastAPI:
    settings = load_settings(
        database_path=database_path,
        secret_key=secret_key,
        bcrypt_work_factor=bcrypt_work_factor,
    )
    repository = JobboardRepository(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(repository.connect)
        app.state.repository = repository
        app.state.settings = settings
        try:
            yield
        finally:
            await run_in_threadpool(repository.close)

    app = FastAPI(title="Jobboard API", version="0.1.0", lifespan=lifespan)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        actor = decode_actor(request.headers.get("authorization"), settings)
        request.state.actor = actor
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            LOGGER.exception(
                json.dumps(
                    {
                        "event": "request_complete",
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": 500,
                        "duration_ms": round(duration_ms, 3),
                        "actor": actor.username,
                        "error": str(exc),
                    }
                )
            )
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "request_id": request_id},
                headers={"x-request-id": request_id},
            )

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["x-request-id"] = request_id
        LOGGER.info(
            json.dumps(
                {
                    "event": "request_complete",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 3),
                    "actor": actor.username,
                }
            )
        )
        return response

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    def settings_of(request: Request) -> Settings:
        return request.app.state.settings

    def repository_of(request: Request) -> JobboardRepository:
        return request.app.state.repository

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "jobboard"}

    # Auth

    @app.post("/auth/token", response_model=TokenResponse)
    async def issue_token(payload: TokenRequest, request: Request) -> TokenResponse:
        user = await run_in_threadpool(
            repository_of(request).authenticate,
            payload.username,
            payload.password,
        )
        if user is None:
            raise HTTPException(status_code=401, detail="Invalid username/password")
        return TokenResponse(token=create_token(user.username, user.is_admin, settings_of(request)))

    @app.post("/auth/register", response_model=TokenResponse, status_code=201)
    async def register(payload: UserRegisterRequest, request: Request) -> TokenResponse:
        user = await run_in_threadpool(repository_of(request).register, payload)
        return TokenResponse(token=create_token(user.username, user.is_admin, settings_of(request)))

    # Companies

    @app.post(
        "/companies",
        response_model=dict[str, Company],
        status_code=201,
        dependencies=[Depends(authorize(ADMIN_ONLY))],
    )
    async def create_company(payload: CompanyCreateRequest, request: Request) -> dict[str, Company]:
        company = await run_in_threadpool(repository_of(request).create_company, payload)
        return {"company": company}

    @app.get("/companies", response_model=dict[str, list[Company]])
    async def list_companies(
        request: Request,
        name_like: str | None = Query(default=None, alias="nameLike"),
        min_employees: int | None = Query(
            default=None, alias="minEmployees", ge=0, le=SQL_INTEGER_MAX
        ),
        max_employees: int | None = Query(
            default=None, alias="maxEmployees", ge=0, le=SQL_INTEGER_MAX
        ),
    ) -> dict[str, list[Company]]:
        filters = CompanyFilters(
            name_like=name_like,
            min_employees=min_employees,
            max_employees=max_employees,
        )
        companies = await run_in_threadpool(repository_of(request).list_companies, filters)
        return {"companies": companies}

    @app.get("/companies/{handle}", response_model=dict[str, CompanyDetail])
    async def get_company(handle: str, request: Request) -> dict[str, CompanyDetail]:
        company = await run_in_threadpool(repository_of(request).get_company, handle)
        if company is None:
            raise HTTPException(status_code=404, detail=f"No company: {handle}")
        return {"company": company}

    @app.patch(
        "/companies/{handle}",
        response_model=dict[str, Company],
        dependencies=[Depends(authorize(ADMIN_ONLY))],
    )
    async def update_company(
        handle: str,
        payload: CompanyUpdateRequest,
        request: Request,
    ) -> dict[str, Company]:
        company = await run_in_threadpool(
            repository_of(request).update_company,
            handle,
            payload.model_dump(exclude_unset=True, by_alias=True),
        )
        if company is None:
            raise HTTPException(status_code=404, detail=f"No company: {handle}")
        return {"company": company}

    @app.delete("/companies/{handle}", dependencies=[Depends(authorize(ADMIN_ONLY))])
    async def delete_company(handle: str, request: Request) -> dict[str, str]:
        deleted = await run_in_threadpool(repository_of(request).delete_company, handle)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"No company: {handle}")
        return {"deleted": handle}

    # Jobs

    @app.post(
        "/jobs",
        response_model=dict[str, Job],
        status_code=201,
        dependencies=[Depends(authorize(ADMIN_ONLY))],
    )
    async def create_job(payload: JobCreateRequest, request: Request) -> dict[str, Job]:
        job = await run_in_threadpool(repository_of(request).create_job, payload)
        return {"job": job}

    @app.get("/jobs", response_model=dict[str, list[Job]])
    async def list_jobs(
        request: Request,
        title: str | None = Query(default=None),
        min_salary: str | None = Query(default=None, alias="minSalary"),
        has_equity: str | None = Query(default=None, alias="hasEquity"),
    ) -> dict[str, list[Job]]:
        # Raw strings on purpose: unparseable filters are ignored, not rejected.
        filters = JobFilters.from_mapping(
            {"title": title, "minSalary": min_salary, "hasEquity": has_equity}
        )
        jobs = await run_in_threadpool(repository_of(request).list_jobs, filters)
        return {"jobs": jobs}

    @app.get("/jobs/{job_id}", response_model=dict[str, Job])
    async def get_job(request: Request, job_id: JobId) -> dict[str, Job]:
        job = await run_in_threadpool(repository_of(request).get_job, job_id)
        if job is None:
            raise HTTPException(status_code=404, detail=f"No job with id: {job_id}")
        return {"job": job}

    @app.patch(
        "/jobs/{job_id}",
        response_model=dict[str, Job],
        dependencies=[Depends(authorize(ADMIN_ONLY))],
    )
    async def update_job(
        payload: JobUpdateRequest,
        request: Request,
        job_id: JobId,
    ) -> dict[str, Job]:
        job = await run_in_threadpool(
            repository_of(request).update_job,
            job_id,
            payload.model_dump(exclude_unset=True, by_alias=True),
        )
        if job is None:
            raise HTTPException(status_code=404, detail=f"No job with id: {job_id}")
        return {"job": job}

    @app.delete("/jobs/{job_id}", dependencies=[Depends(authorize(ADMIN_ONLY))])
    async def delete_job(request: Request, job_id: JobId) -> dict[str, int]:
        deleted = await run_in_threadpool(repository_of(request).delete_job, job_id)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"No job with id: {job_id}")
        return {"deleted": job_id}

    # Users

    @app.post(
        "/users",
        response_model=UserTokenResponse,
        status_code=201,
        dependencies=[Depends(authorize(ADMIN_ONLY))],
    )
    async def create_user(payload: UserCreateRequest, request: Request) -> UserTokenResponse:
        user = await run_in_threadpool(repository_of(request).register, payload)
        token = create_token(user.username, user.is_admin, settings_of(request))
        return UserTokenResponse(user=user, token=token)

    @app.get(
        "/users",
        response_model=dict[str, list[User]],
        dependencies=[Depends(authorize(ADMIN_ONLY))],
    )
    async def list_users(request: Request) -> dict[str, list[User]]:
        users = await run_in_threadpool(repository_of(request).list_users)
        return {"users": users}

    @app.get(
        "/users/{username}",
        response_model=dict[str, UserDetail],
        dependencies=[Depends(authorize(OWNER_OR_ADMIN))],
    )
    async def get_user(username: str, request: Request) -> dict[str, UserDetail]:
        user = await run_in_threadpool(repository_of(request).get_user, username)
        if user is None:
            raise HTTPException(status_code=404, detail=f"No user: {username}")
        return {"user": user}

    @app.patch(
        "/users/{username}",
        response_model=dict[str, User],
        dependencies=[Depends(authorize(OWNER_OR_ADMIN))],
    )
    async def update_user(
        username: str,
        payload: UserUpdateRequest,
        request: Request,
    ) -> dict[str, User]:
        user = await run_in_threadpool(
            repository_of(request).update_user,
            username,
            payload.model_dump(exclude_unset=True, by_alias=True),
        )
        if user is None:
            raise HTTPException(status_code=404, detail=f"No user: {username}")
        return {"user": user}

    @app.delete("/users/{username}", dependencies=[Depends(authorize(OWNER_OR_ADMIN))])
    async def delete_user(username: str, request: Request) -> dict[str, str]:
        deleted = await run_in_threadpool(repository_of(request).delete_user, username)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"No user: {username}")
        return {"deleted": username}

    @app.post(
        "/users/{username}/jobs/{job_id}",
        status_code=201,
        dependencies=[Depends(authorize(OWNER_OR_ADMIN))],
    )
    async def apply_to_job(
        username: str,
        request: Request,
        job_id: JobId,
    ) -> dict[str, int]:
        applied = await run_in_threadpool(repository_of(request).apply_to_job, username, job_id)
        if applied is None:
            raise HTTPException(status_code=404, detail=f"No user: {username}")
        return {"applied": applied}

    return app


app = create_app()

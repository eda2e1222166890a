"""
authx.api.routers.users

User registration and CRUD proxy over the directory.

Responsibilities:
- Public registration (creates an inactive user plus activation token).
- Scope-protected list/get/modify/delete passthrough to SCIM `/Users`.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT

from authx.api.deps import directory_dep, registration_dep
from authx.api.schemas import Envelope, ModifyUserRequest, RegisterRequest, ok
from authx.auth.deps import require_admin, require_scope
from authx.directory.client import DirectoryClient
from authx.errors import failure_intent
from authx.services.registration import RegistrationService

router = APIRouter(prefix="/v1/users", tags=["users"])


def _params(**values: Any) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


@router.post("", status_code=HTTP_201_CREATED, response_model=Envelope)
async def register_user(
    body: RegisterRequest,
    registration: RegistrationService = Depends(registration_dep),
) -> Envelope:
    user = await registration.register(
        email=body.user.email,
        password=body.user.password,
        activation_url=body.activation_url,
    )
    return ok(user)


@router.get("", response_model=Envelope, dependencies=[Depends(require_admin)])
async def list_users(
    filter: str | None = None,
    start_index: int | None = Query(default=None, alias="startIndex", ge=1),
    count: int | None = Query(default=None, ge=0),
    attributes: str | None = None,
    excluded_attributes: str | None = Query(default=None, alias="excludedAttributes"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    directory: DirectoryClient = Depends(directory_dep),
) -> Envelope:
    # Filter grammar is RFC 7644 §3.4.2.2; passed through untouched for admins.
    with failure_intent("unable to list users"):
        listing = await directory.list_users(
            filter,
            **_params(
                startIndex=start_index,
                count=count,
                attributes=attributes,
                excludedAttributes=excluded_attributes,
                sortBy=sort_by,
                sortOrder=sort_order,
            ),
        )
    return ok(listing)


@router.get("/{user_id}", response_model=Envelope, dependencies=[Depends(require_scope())])
async def get_user(
    user_id: str,
    attributes: str | None = None,
    excluded_attributes: str | None = Query(default=None, alias="excludedAttributes"),
    directory: DirectoryClient = Depends(directory_dep),
) -> Envelope:
    with failure_intent("unable to get user"):
        user = await directory.get_user(
            user_id, **_params(attributes=attributes, excludedAttributes=excluded_attributes)
        )
    return ok(user)


@router.patch("/{user_id}", response_model=Envelope, dependencies=[Depends(require_scope())])
async def modify_user(
    user_id: str,
    body: ModifyUserRequest,
    attributes: str | None = None,
    excluded_attributes: str | None = Query(default=None, alias="excludedAttributes"),
    directory: DirectoryClient = Depends(directory_dep),
) -> Envelope:
    with failure_intent("unable to update the user"):
        user = await directory.modify_user(
            user_id,
            body.user.operations,
            **_params(attributes=attributes, excludedAttributes=excluded_attributes),
        )
    return ok(user)


@router.delete(
    "/{user_id}",
    status_code=HTTP_204_NO_CONTENT,
    response_class=Response,
    dependencies=[Depends(require_admin)],
)
async def delete_user(
    user_id: str,
    directory: DirectoryClient = Depends(directory_dep),
) -> Response:
    with failure_intent("unable to delete user"):
        await directory.delete_user(user_id)
    return Response(status_code=HTTP_204_NO_CONTENT)

"""
API v1 routes.

Defines REST endpoints for the dealer registration workflow and the
persisted profile. Rejected transitions (gate blocked, submission with
invalid fields) are normal 200 responses with `rejection` set; only
misuse of the workflow maps to 4xx.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.api.dependencies import get_profile_service, get_sessions, get_workflow
from src.api.models import (
    ErrorResponse,
    ProfileModel,
    ProfilePatchRequest,
    SnapshotResponse,
    StartRegistrationRequest,
    UpdateFieldRequest,
    VerifyRequest,
)
from src.api.sessions import WorkflowSessions
from src.domain.exceptions import (
    FieldNotEditable,
    InvalidProfilePatch,
    InvalidTransition,
    ProfileNotFound,
    ProfileStoreError,
    UnknownField,
)
from src.domain.profile import ProfileService
from src.domain.registration import RegistrationWorkflow

router = APIRouter(tags=["v1"])

_workflow_errors = {
    400: {"model": ErrorResponse, "description": "Unknown or read-only field"},
    404: {"model": ErrorResponse, "description": "Registration session not found"},
    409: {"model": ErrorResponse, "description": "Transition not allowed in current state"},
}


def _conflict(exc: InvalidTransition) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _store_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Profile storage unavailable",
    )


@router.post(
    "/registrations",
    response_model=SnapshotResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a registration session",
)
async def start_registration(
    request_data: StartRegistrationRequest,
    sessions: WorkflowSessions = Depends(get_sessions),
) -> SnapshotResponse:
    """Create a new workflow positioned on the first step."""
    session_id, workflow = sessions.create(request_data.account_type)
    return SnapshotResponse.from_snapshot(session_id, workflow.snapshot())


@router.get(
    "/registrations/{session_id}",
    response_model=SnapshotResponse,
    responses={404: _workflow_errors[404]},
    summary="Get registration state",
)
async def get_registration(
    session_id: str,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> SnapshotResponse:
    return SnapshotResponse.from_snapshot(session_id, workflow.snapshot())


@router.put(
    "/registrations/{session_id}/fields",
    response_model=SnapshotResponse,
    responses=_workflow_errors,
    summary="Edit one field",
    description="Set a field from raw input. Validation errors are returned per field; "
    "editing a verified business or license number resets its verification.",
)
async def update_field(
    session_id: str,
    request_data: UpdateFieldRequest,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> SnapshotResponse:
    try:
        snapshot = workflow.update_field(request_data.step, request_data.field, request_data.value)
    except (UnknownField, FieldNotEditable) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    except InvalidTransition as e:
        raise _conflict(e) from None
    return SnapshotResponse.from_snapshot(session_id, snapshot)


@router.post(
    "/registrations/{session_id}/verify",
    response_model=SnapshotResponse,
    responses=_workflow_errors,
    summary="Verify a step against the registry",
    description="Runs the business or license lookup for the step and returns "
    "the state once it resolved (verified, failed or timed out).",
)
async def verify(
    session_id: str,
    request_data: VerifyRequest,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> SnapshotResponse:
    try:
        snapshot = await workflow.request_verification(request_data.step)
    except InvalidTransition as e:
        raise _conflict(e) from None
    return SnapshotResponse.from_snapshot(session_id, snapshot)


@router.post(
    "/registrations/{session_id}/advance",
    response_model=SnapshotResponse,
    responses=_workflow_errors,
    summary="Go to the next step",
)
async def advance(
    session_id: str,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> SnapshotResponse:
    try:
        snapshot = workflow.advance()
    except InvalidTransition as e:
        raise _conflict(e) from None
    return SnapshotResponse.from_snapshot(session_id, snapshot)


@router.post(
    "/registrations/{session_id}/retreat",
    response_model=SnapshotResponse,
    responses=_workflow_errors,
    summary="Go back one step",
)
async def retreat(
    session_id: str,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> SnapshotResponse:
    try:
        snapshot = workflow.retreat()
    except InvalidTransition as e:
        raise _conflict(e) from None
    return SnapshotResponse.from_snapshot(session_id, snapshot)


@router.post(
    "/registrations/{session_id}/submit",
    response_model=SnapshotResponse,
    responses={**_workflow_errors, 503: {"model": ErrorResponse}},
    summary="Submit the registration",
    description="Validates every step. On success the profile is persisted and returned "
    "and the session is closed; otherwise all offending fields are listed in `errors`.",
)
async def submit(
    session_id: str,
    workflow: RegistrationWorkflow = Depends(get_workflow),
    sessions: WorkflowSessions = Depends(get_sessions),
) -> SnapshotResponse:
    try:
        snapshot = await workflow.submit()
    except InvalidTransition as e:
        raise _conflict(e) from None
    except ProfileStoreError:
        raise _store_unavailable() from None

    # The draft holds the raw password, card number and CVV; drop it once persisted.
    if snapshot.submitted:
        sessions.discard(session_id)
    return SnapshotResponse.from_snapshot(session_id, snapshot)


@router.get(
    "/profile",
    response_model=ProfileModel,
    responses={404: {"model": ErrorResponse, "description": "No profile stored"}},
    summary="Get the persisted profile",
)
def get_profile(service: ProfileService = Depends(get_profile_service)) -> ProfileModel:
    try:
        profile = service.load()
    except ProfileStoreError:
        raise _store_unavailable() from None
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No profile")
    return ProfileModel.from_profile(profile)


@router.patch(
    "/profile",
    response_model=ProfileModel,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid patch"},
        404: {"model": ErrorResponse, "description": "No profile stored"},
    },
    summary="Update the persisted profile",
    description="Merge-patch: only fields present in the body are changed.",
)
def update_profile(
    request_data: ProfilePatchRequest,
    service: ProfileService = Depends(get_profile_service),
) -> ProfileModel:
    try:
        profile = service.update_profile(request_data.model_dump(exclude_unset=True))
    except InvalidProfilePatch as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    except ProfileNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No profile") from None
    except ProfileStoreError:
        raise _store_unavailable() from None
    return ProfileModel.from_profile(profile)


@router.delete(
    "/profile",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Sign out and clear the persisted profile",
)
def sign_out(service: ProfileService = Depends(get_profile_service)) -> Response:
    try:
        service.sign_out()
    except ProfileStoreError:
        raise _store_unavailable() from None
    return Response(status_code=status.HTTP_204_NO_CONTENT)

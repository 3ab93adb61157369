from fastapi import APIRouter, Depends, status
from uuid import UUID

from app.core.dependencies import get_directory
from app.schemas.response import SuccessResponse
from app.schemas.staff import EnabledUpdate, StaffRequest, StaffResponse
from app.services.directory import StaffDirectory

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_staff_endpoint(payload: StaffRequest, directory: StaffDirectory = Depends(get_directory)):
    user = await directory.create_staff(payload.username, payload.full_name, payload.role, payload.enabled)
    return SuccessResponse(
        message=f"Staff user '{user.username}' created successfully.",
        data=StaffResponse.model_validate(user).model_dump(mode="json"),
    )


@router.patch("/{user_id}/enabled", response_model=SuccessResponse)
async def set_enabled_endpoint(user_id: UUID, payload: EnabledUpdate, directory: StaffDirectory = Depends(get_directory)):
    """Disabled drivers can no longer be assigned or reassigned."""
    user = await directory.set_enabled(user_id, payload.enabled)
    return SuccessResponse(data=StaffResponse.model_validate(user).model_dump(mode="json"))


@router.get("/drivers/available", response_model=SuccessResponse)
async def available_drivers_endpoint(directory: StaffDirectory = Depends(get_directory)):
    drivers = await directory.available_drivers()
    return SuccessResponse(data=[StaffResponse.model_validate(d).model_dump(mode="json") for d in drivers])

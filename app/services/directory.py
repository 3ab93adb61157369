from typing import Any, List, Optional
from uuid import UUID

from app.core.errors import AlreadyExists, InvalidDriver, NotFound
from app.models.staff import StaffRole, StaffUser


class StaffDirectory:
    """
    Staff lookup collaborator. Role and enabled checks for drivers live here
    so lifecycle code states them as explicit preconditions.
    """

    async def find_by_id(self, user_id: UUID, conn: Any = None) -> Optional[StaffUser]:
        return await StaffUser.get_or_none(id=user_id).using_db(conn)

    async def require_driver(self, driver_id: UUID, conn: Any = None) -> StaffUser:
        driver = await self.find_by_id(driver_id, conn)
        if not driver:
            raise NotFound("Driver", driver_id)

        if driver.role != StaffRole.DELIVERY_STAFF:
            raise InvalidDriver(driver_id, "User must have DELIVERY_STAFF role to be assigned as driver")

        if not driver.enabled:
            raise InvalidDriver(driver_id, "Driver account is disabled")

        return driver

    async def available_drivers(self) -> List[StaffUser]:
        return await StaffUser.filter(role=StaffRole.DELIVERY_STAFF, enabled=True).order_by("full_name")

    async def create_staff(self, username: str, full_name: str, role: StaffRole, enabled: bool = True) -> StaffUser:
        if await StaffUser.exists(username=username):
            raise AlreadyExists("User", "username", username)
        return await StaffUser.create(username=username, full_name=full_name, role=role, enabled=enabled)

    async def set_enabled(self, user_id: UUID, enabled: bool) -> StaffUser:
        user = await self.find_by_id(user_id)
        if not user:
            raise NotFound("User", user_id)
        user.enabled = enabled
        await user.save(update_fields=["enabled", "updated_at"])
        return user

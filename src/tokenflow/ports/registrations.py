from typing import Optional, Protocol

from ..domain.registration import PendingRegistration, RegistrationStatus


class RegistrationRepository(Protocol):
    async def get(self, registration_id: str) -> Optional[PendingRegistration]: ...

    async def transition(
        self,
        registration_id: str,
        expected: RegistrationStatus,
        new_status: RegistrationStatus,
        reason: Optional[str] = None,
    ) -> bool:
        """Conditionally move a registration; False when it was not in ``expected``."""
        ...

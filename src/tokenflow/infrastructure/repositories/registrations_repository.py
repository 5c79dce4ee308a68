from datetime import datetime
from typing import Any, Optional, cast

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.registration import PendingRegistration, RegistrationStatus
from ...logging_config import get_logger
from ..db import models

logger = get_logger(__name__)


def _to_domain(row: models.RegistrationModel) -> PendingRegistration:
    return PendingRegistration(
        id=str(row.id),
        email=cast(Any, row.email),
        first_name=cast(Any, row.first_name),
        last_name=cast(Any, row.last_name),
        organization_name=cast(Any, row.organization_name),
        status=RegistrationStatus(row.status),
        decision_reason=cast(Any, row.decision_reason),
        decided_at=cast(Any, row.decided_at),
        created_at=cast(Any, row.created_at),
    )


class SqlAlchemyRegistrationRepository:
    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def create(self, registration: PendingRegistration) -> PendingRegistration:
        m = models.RegistrationModel(
            email=registration.email,
            first_name=registration.first_name,
            last_name=registration.last_name,
            organization_name=registration.organization_name,
            status=registration.status.value,
        )
        if registration.id:
            m.id = registration.id
        self.db_session.add(m)
        try:
            await self.db_session.commit()
        except Exception as e:
            await self.db_session.rollback()
            logger.exception("registration_create_failed", email=registration.email, error=str(e))
            raise
        logger.info("registration_created", registration_id=m.id)
        return _to_domain(m)

    async def get(self, registration_id: str) -> Optional[PendingRegistration]:
        q = await self.db_session.execute(
            select(models.RegistrationModel).where(models.RegistrationModel.id == registration_id)
        )
        row = q.scalars().first()
        return _to_domain(row) if row else None

    async def transition(
        self,
        registration_id: str,
        expected: RegistrationStatus,
        new_status: RegistrationStatus,
        reason: Optional[str] = None,
    ) -> bool:
        """Compare-and-set on ``status``; a concurrent decision makes this return False."""
        now = datetime.utcnow()
        result = await self.db_session.execute(
            update(models.RegistrationModel)
            .where(
                models.RegistrationModel.id == registration_id,
                models.RegistrationModel.status == expected.value,
            )
            .values(
                status=new_status.value,
                decision_reason=reason,
                decided_at=now,
                updated_at=now,
            )
        )
        try:
            await self.db_session.commit()
        except Exception:
            await self.db_session.rollback()
            raise
        changed = bool(result.rowcount)
        logger.info(
            "registration_transition",
            registration_id=registration_id,
            expected=expected.value,
            new_status=new_status.value,
            changed=changed,
        )
        return changed

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.subjects import SubjectRecord
from ...logging_config import get_logger
from ..db import models

logger = get_logger(__name__)

# The general update path never touches credentials; see update_credential.
UPDATABLE_FIELDS = {"organization_name", "contact_name", "email"}


def _to_record(row: models.AffiliateModel) -> SubjectRecord:
    return SubjectRecord(
        id=str(row.id),
        email=str(row.email),
        organization_name=row.organization_name,
    )


class SqlAlchemyAffiliateRepository:
    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def create(
        self,
        email: str,
        organization_name: Optional[str] = None,
        hashed_password: Optional[str] = None,
        contact_name: Optional[str] = None,
    ) -> SubjectRecord:
        m = models.AffiliateModel(
            email=email.strip().lower(),
            organization_name=organization_name,
            contact_name=contact_name,
            hashed_password=hashed_password,
        )
        self.db_session.add(m)
        try:
            await self.db_session.commit()
        except Exception:
            await self.db_session.rollback()
            raise
        return _to_record(m)

    async def find_by_email(self, email: str) -> Optional[SubjectRecord]:
        q = await self.db_session.execute(
            select(models.AffiliateModel).where(
                func.lower(models.AffiliateModel.email) == email.strip().lower()
            )
        )
        row = q.scalars().first()
        return _to_record(row) if row else None

    async def get_hashed_password(self, affiliate_id: str) -> Optional[str]:
        q = await self.db_session.execute(
            select(models.AffiliateModel.hashed_password).where(
                models.AffiliateModel.id == affiliate_id
            )
        )
        return q.scalar_one_or_none()

    async def update(self, affiliate_id: str, fields: Dict[str, Any]) -> bool:
        rejected = set(fields) - UPDATABLE_FIELDS
        if rejected:
            raise ValueError(f"fields not updatable through the general path: {sorted(rejected)}")
        return await self._write(affiliate_id, dict(fields))

    async def update_credential(self, affiliate_id: str, hashed_password: str) -> bool:
        """Dedicated credential path keyed by the affiliate's internal id."""
        now = datetime.utcnow()
        changed = await self._write(
            affiliate_id, {"hashed_password": hashed_password, "password_changed_at": now}
        )
        logger.info("affiliate_credential_updated", affiliate_id=affiliate_id, changed=changed)
        return changed

    async def _write(self, affiliate_id: str, values: Dict[str, Any]) -> bool:
        values["updated_at"] = datetime.utcnow()
        result = await self.db_session.execute(
            update(models.AffiliateModel)
            .where(models.AffiliateModel.id == affiliate_id)
            .values(**values)
        )
        try:
            await self.db_session.commit()
        except Exception as e:
            await self.db_session.rollback()
            logger.exception("affiliate_update_failed", affiliate_id=affiliate_id, error=str(e))
            raise
        return bool(result.rowcount)

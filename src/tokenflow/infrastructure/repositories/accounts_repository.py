from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.subjects import SubjectRecord
from ...logging_config import get_logger
from ..db import models

logger = get_logger(__name__)

# Patchable fields -> column names
PATCHABLE_FIELDS = {
    "first_name": "first_name",
    "last_name": "last_name",
    "email": "email",
    "password": "hashed_password",
}


class SqlAlchemyAccountRepository:
    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def create(
        self,
        email: str,
        hashed_password: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> SubjectRecord:
        m = models.AccountModel(
            email=email.strip().lower(),
            hashed_password=hashed_password,
            first_name=first_name,
            last_name=last_name,
        )
        self.db_session.add(m)
        try:
            await self.db_session.commit()
        except Exception:
            await self.db_session.rollback()
            raise
        return SubjectRecord(id=str(m.id), email=str(m.email))

    async def find_by_email(self, email: str) -> Optional[SubjectRecord]:
        q = await self.db_session.execute(
            select(models.AccountModel).where(
                func.lower(models.AccountModel.email) == email.strip().lower()
            )
        )
        row = q.scalars().first()
        if not row:
            return None
        return SubjectRecord(id=str(row.id), email=str(row.email))

    async def get_hashed_password(self, email: str) -> Optional[str]:
        q = await self.db_session.execute(
            select(models.AccountModel.hashed_password).where(
                func.lower(models.AccountModel.email) == email.strip().lower()
            )
        )
        return q.scalar_one_or_none()

    async def patch(self, email: str, fields: Dict[str, Any]) -> bool:
        """General-purpose field patch keyed by email."""
        unknown = set(fields) - set(PATCHABLE_FIELDS)
        if unknown:
            raise ValueError(f"unsupported account fields: {sorted(unknown)}")
        values = {PATCHABLE_FIELDS[k]: v for k, v in fields.items()}
        values["updated_at"] = datetime.utcnow()
        result = await self.db_session.execute(
            update(models.AccountModel)
            .where(func.lower(models.AccountModel.email) == email.strip().lower())
            .values(**values)
        )
        try:
            await self.db_session.commit()
        except Exception as e:
            await self.db_session.rollback()
            logger.exception("account_patch_failed", fields=sorted(fields), error=str(e))
            raise
        return bool(result.rowcount)

"""
Account flags shared by the authentication service.

The vault never authenticates anyone; it records the accounts it sees on
verified tokens and reads the flags the auth service maintains, for the
population counters of the extended statistics.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from medvault.models.account import Account
from medvault.services.database_service import AccountRecord, DatabaseService
from medvault.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)


def _to_account(record: AccountRecord) -> Account:
    roles = [role for role in (record.roles or "").split(",") if role]
    return Account(
        id=record.id,
        roles=roles,
        active=record.active,
        banned=record.banned,
        has_profile=record.has_profile,
        created_at=as_utc(record.created_at),
    )


class AccountDirectory:
    """Read/write access to the `accounts` table."""

    def __init__(self, db: DatabaseService, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def record_seen(self, account_id: str, roles: Iterable[str]) -> Account:
        """
        Make sure an account row exists for a verified token subject.

        Existing rows keep their flags; only the role list is refreshed.
        Repeat calls with unchanged roles only read the row.
        """
        role_list = ",".join(sorted({str(role) for role in roles}))
        session = self.db.get_session()
        try:
            record = session.get(AccountRecord, account_id)
            if record is None:
                record = AccountRecord(id=account_id, roles=role_list, created_at=self.clock())
                session.add(record)
                logger.info(f"Recorded new account {account_id}")
            elif record.roles != role_list:
                record.roles = role_list
            session.commit()
            return _to_account(record)
        except IntegrityError:
            # Another request inserted the same account first
            session.rollback()
            record = session.get(AccountRecord, account_id)
            return _to_account(record)
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to record account {account_id}: {e}")
            raise
        finally:
            session.close()

    def upsert(
        self,
        account_id: str,
        roles: Iterable[str],
        active: bool = True,
        banned: bool = False,
        has_profile: bool = False,
        created_at: Optional[datetime] = None
    ) -> Account:
        """Write the full flag set, as pushed by the auth service."""
        session = self.db.get_session()
        try:
            record = session.get(AccountRecord, account_id)
            if record is None:
                record = AccountRecord(id=account_id, created_at=created_at or self.clock())
                session.add(record)
            elif created_at is not None:
                record.created_at = created_at

            record.roles = ",".join(sorted({str(role) for role in roles}))
            record.active = active
            # A banned account is never active
            record.banned = banned
            if banned:
                record.active = False
            record.has_profile = has_profile

            session.commit()
            return _to_account(record)
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to upsert account {account_id}: {e}")
            raise
        finally:
            session.close()

    def list_all(self) -> List[Account]:
        session = self.db.get_session()
        try:
            records = session.query(AccountRecord).order_by(AccountRecord.created_at).all()
            return [_to_account(record) for record in records]
        finally:
            session.close()

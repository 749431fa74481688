"""
Paste storage operations.
The only place that issues SQL against the pastes table.
"""
import logging
import uuid
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from wastebin.database import ConnectionManager
from wastebin.errors import InvalidID, NotFound, StorageFailure
from wastebin.records import NewPaste, Paste, PasteRow, as_utc, utcnow

logger = logging.getLogger(__name__)

PasteID = Union[str, uuid.UUID]


def parse_id(value: PasteID) -> uuid.UUID:
    """
    Parse a paste identifier.

    Raises:
        InvalidID: if ``value`` is not a UUID
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError, AttributeError) as e:
        raise InvalidID() from e


class PasteStore:
    """CRUD for pastes on top of a connected ConnectionManager."""

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    def create(self, new_paste: NewPaste) -> Paste:
        """
        Insert a new paste under a freshly generated id.

        Raises:
            StorageFailure: if the insert failed
        """
        paste_id = uuid.uuid4()
        now = utcnow()
        row = PasteRow(
            id=paste_id,
            content=new_paste.content,
            language=new_paste.language,
            burn=new_paste.burn,
            expiry_timestamp=as_utc(new_paste.expiry_timestamp),
            created_at=now,
            updated_at=now,
        )
        try:
            with self.connections.session() as session:
                session.add(row)
                session.commit()
                paste = row.to_record()
        except SQLAlchemyError as e:
            logger.error(f"Error saving paste {paste_id}: {e}")
            raise StorageFailure(f"create paste: {e}") from e

        logger.info(f"Paste {paste_id} saved successfully")
        return paste

    def fetch_by_id(self, paste_id: PasteID) -> Paste:
        """
        Raises:
            InvalidID: malformed id, storage is not consulted
            NotFound: no such paste
            StorageFailure: the lookup failed
        """
        key = parse_id(paste_id)
        try:
            with self.connections.session() as session:
                row = session.get(PasteRow, key)
                if row is None:
                    raise NotFound()
                return row.to_record()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching paste {key}: {e}")
            raise StorageFailure(f"fetch paste: {e}") from e

    def delete_by_id(self, paste_id: PasteID) -> None:
        """
        Raises:
            InvalidID: malformed id
            NotFound: nothing was deleted
            StorageFailure: the delete failed
        """
        key = parse_id(paste_id)
        try:
            with self.connections.session() as session:
                result = session.execute(delete(PasteRow).where(PasteRow.id == key))
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error deleting paste {key}: {e}")
            raise StorageFailure(f"delete paste: {e}") from e

        if result.rowcount == 0:
            raise NotFound()
        logger.info(f"Paste {key} deleted")

    def take_by_id(self, paste_id: PasteID, now: Optional[datetime] = None) -> Paste:
        """
        Delete a paste and return it, in one atomic step.

        Of several concurrent callers exactly one gets the paste back; the
        others see NotFound. With ``now`` given, a paste that has expired by
        then is left in place and reported as NotFound.

        Raises:
            InvalidID: malformed id
            NotFound: the paste was already gone
            StorageFailure: the delete failed
        """
        key = parse_id(paste_id)
        criteria = [PasteRow.id == key]
        if now is not None:
            criteria.append(PasteRow.expiry_timestamp >= as_utc(now))
        try:
            with self.connections.session() as session:
                if session.get_bind().dialect.delete_returning:
                    row = session.execute(
                        delete(PasteRow).where(*criteria).returning(PasteRow)
                    ).scalar_one_or_none()
                    paste = row.to_record() if row is not None else None
                else:
                    row = session.get(PasteRow, key)
                    paste = row.to_record() if row is not None else None
                    if paste is not None and now is not None and paste.is_expired(now):
                        paste = None
                    if paste is not None:
                        result = session.execute(
                            delete(PasteRow).where(*criteria).execution_options(synchronize_session=False)
                        )
                        if result.rowcount == 0:
                            paste = None
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error taking paste {key}: {e}")
            raise StorageFailure(f"take paste: {e}") from e

        if paste is None:
            raise NotFound()
        logger.info(f"Paste {key} taken and deleted")
        return paste

    def count(self) -> int:
        try:
            with self.connections.session() as session:
                return session.execute(select(func.count()).select_from(PasteRow)).scalar_one()
        except SQLAlchemyError as e:
            raise StorageFailure(f"count pastes: {e}") from e

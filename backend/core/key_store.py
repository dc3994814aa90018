# backend/core/key_store.py
"""
Key Custody Store
Durable mapping from router peer id to the private material the router never returns
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from database.models import PeerKey
from database.session import Database
from schemas.peer import KeyCustodyRecord
from .exceptions import UpstreamFailure

logger = logging.getLogger(__name__)


class KeyCustodyStore:
    """
    Stores private keys and preshared keys per router peer id

    Every method opens its own transaction. Database errors are raised as
    UpstreamFailure so callers can compensate.
    """

    def __init__(self, database: Database):
        self.database = database

    def save(self, record: KeyCustodyRecord) -> KeyCustodyRecord:
        """Insert or replace the record for record.router_id"""
        try:
            with self.database.session() as db:
                row = db.query(PeerKey).filter(PeerKey.router_id == record.router_id).first()
                if row is None:
                    row = PeerKey(router_id=record.router_id)
                    db.add(row)
                row.name = record.name
                row.private_key = record.private_key
                row.preshared_key = record.preshared_key
                row.allowed_address = record.allowed_address
                row.updated_at = datetime.utcnow()
                db.flush()
                saved = KeyCustodyRecord.model_validate(row)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save peer keys for {record.router_id}: {e}")
            raise UpstreamFailure(f"Failed to save peer keys: {e}") from e

        logger.info(f"Saved keys for peer: {saved.name} (ID: {saved.router_id})")
        return saved

    def get(self, router_id: str) -> Optional[KeyCustodyRecord]:
        try:
            with self.database.session() as db:
                row = db.query(PeerKey).filter(PeerKey.router_id == router_id).first()
                return KeyCustodyRecord.model_validate(row) if row else None
        except SQLAlchemyError as e:
            raise UpstreamFailure(f"Failed to get peer keys: {e}") from e

    def list_all(self) -> List[KeyCustodyRecord]:
        try:
            with self.database.session() as db:
                rows = db.query(PeerKey).order_by(PeerKey.id).all()
                return [KeyCustodyRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise UpstreamFailure(f"Failed to list peer keys: {e}") from e

    def delete(self, router_id: str) -> int:
        """Delete the record; returns number of rows removed (0 or 1)"""
        try:
            with self.database.session() as db:
                removed = db.query(PeerKey).filter(PeerKey.router_id == router_id).delete()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete peer keys for {router_id}: {e}")
            raise UpstreamFailure(f"Failed to delete peer keys: {e}") from e

        logger.info(f"Deleted keys for peer ID: {router_id} ({removed} row(s))")
        return removed

    def update_preshared_key(self, router_id: str, preshared_key: Optional[str]) -> int:
        """Replace only the preshared key; returns number of rows changed"""
        try:
            with self.database.session() as db:
                changed = db.query(PeerKey).filter(PeerKey.router_id == router_id).update(
                    {PeerKey.preshared_key: preshared_key, PeerKey.updated_at: datetime.utcnow()}
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to update preshared key for {router_id}: {e}")
            raise UpstreamFailure(f"Failed to update preshared key: {e}") from e

        logger.info(f"Updated preshared key for peer ID: {router_id}")
        return changed

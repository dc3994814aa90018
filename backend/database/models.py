# backend/database/models.py
"""
SQLAlchemy Database Models for key custody
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class PeerKey(Base):
    """
    Peer keys table - the only durable copy of each peer's private key
    One row per router peer, keyed by the router-assigned id
    """
    __tablename__ = "peer_keys"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    router_id = Column(String(64), unique=True, nullable=False, index=True,
                       comment="Router-assigned peer id (e.g. *1A)")
    name = Column(String(255), nullable=False,
                  comment="Peer display name at creation time")

    # Secrets
    private_key = Column(String(44), nullable=False,
                         comment="WireGuard private key (Base64)")
    preshared_key = Column(String(44), nullable=True,
                           comment="Optional PSK")

    allowed_address = Column(Text, nullable=False,
                             comment="Tunnel address with CIDR (e.g., 172.16.0.5/32)")

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<PeerKey(id={self.id}, router_id={self.router_id}, name={self.name})>"

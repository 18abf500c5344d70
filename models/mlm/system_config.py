"""
SystemConfig model - key/value rows holding the active network configuration.
"""
from sqlalchemy import Column, Integer, String
from models.base import Base, AuditMixin


class SystemConfig(Base, AuditMixin):
    __tablename__ = 'system_config'

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String, nullable=False, unique=True)
    value = Column(String, nullable=False)
    description = Column(String, nullable=True)

    def __repr__(self):
        return f"<SystemConfig({self.key}={self.value})>"

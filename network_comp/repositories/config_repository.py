"""
Configuration store - system_config key/value rows.
"""
from typing import Dict
import logging

from sqlalchemy.orm import Session

from models.mlm.system_config import SystemConfig
from network_comp.config.topology import TopologyConfig, CONFIG_DESCRIPTIONS

logger = logging.getLogger(__name__)


class ConfigRepository:

    def __init__(self, session: Session):
        self.session = session

    def getRaw(self) -> Dict[str, str]:
        return {row.key: row.value for row in self.session.query(SystemConfig).all()}

    def get(self) -> TopologyConfig:
        """Read the active configuration as an immutable snapshot."""
        return TopologyConfig.fromMapping(self.getRaw())

    def set(self, key: str, value: str) -> SystemConfig:
        """Insert or update one configuration value."""
        row = self.session.query(SystemConfig).filter_by(key=key).first()
        if row is None:
            row = SystemConfig(key=key, value=str(value), description=CONFIG_DESCRIPTIONS.get(key))
            self.session.add(row)
        else:
            row.value = str(value)
        self.session.flush()
        return row

    def ensureDefaults(self) -> int:
        """
        Seed missing keys from TopologyConfig.defaults().

        Returns:
            Number of rows created
        """
        existing = self.getRaw()
        created = 0
        for key, value in TopologyConfig.defaults().toMapping().items():
            if key not in existing:
                self.set(key, value)
                created += 1
        if created:
            logger.info(f"Seeded {created} system_config defaults")
        return created

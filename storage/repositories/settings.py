"""
Settings Repository.

Upsert-on-write, read-with-default key-value flags.
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage.models.settings import Setting
from storage.repositories.base import BaseRepository


class SettingsRepository(BaseRepository[Setting]):
    """Repository for Setting records."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Setting, "SettingsRepository")

    def get_value(self, key: str, default: Any = None) -> Any:
        """Stored value for key, or default when the key is absent."""
        setting = self._find(key)
        return default if setting is None else setting.value

    def set_value(self, key: str, value: Any, description: Optional[str] = None) -> Setting:
        """Insert or overwrite key. A None description keeps the old one."""
        setting = self._find(key)
        if setting is None:
            return self._add(Setting(key=key, value=value, description=description))

        setting.value = value
        if description is not None:
            setting.description = description
        self._flush("update", key)
        return setting

    def _find(self, key: str) -> Optional[Setting]:
        return self._execute_scalar(select(Setting).where(Setting.key == key))

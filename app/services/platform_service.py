from decimal import Decimal, InvalidOperation

from flask import current_app

from app.extensions import cache, db
from app.models import PlatformSetting
from app.models.platform_setting import PLATFORM_FEE_KEY


class PlatformService:
    @staticmethod
    @cache.memoize(timeout=300)
    def get_setting(key, default=None):
        setting = db.session.get(PlatformSetting, key)
        if not setting:
            return default
        return setting.value

    @staticmethod
    def get_decimal(key, default):
        raw = PlatformService.get_setting(key, str(default))
        try:
            return Decimal(str(raw))
        except (InvalidOperation, ValueError):
            current_app.logger.warning("Platform setting %s is not numeric: %r", key, raw)
            return Decimal(str(default))

    @staticmethod
    def fee_percentage():
        default = current_app.config.get("PLATFORM_FEE_PCT", "8")
        pct = PlatformService.get_decimal(PLATFORM_FEE_KEY, default)
        if pct < 0 or pct > 100:
            current_app.logger.warning("Platform fee %s out of range, using %s", pct, default)
            return Decimal(str(default))
        return pct

    @staticmethod
    def set_setting(key, value, description=None):
        setting = db.session.get(PlatformSetting, key)
        if setting:
            setting.value = str(value)
            if description is not None:
                setting.description = description
        else:
            setting = PlatformSetting(key=key, value=str(value), description=description)
            db.session.add(setting)
        db.session.commit()
        cache.delete_memoized(PlatformService.get_setting)
        return setting

import os
from dotenv import load_dotenv

# Загрузка .env
load_dotenv()

# База данных
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///ledger.db")
# Сколько секунд ждать блокировку записи SQLite
SQLITE_BUSY_TIMEOUT = float(os.getenv("SQLITE_BUSY_TIMEOUT", "15"))

# Локальное время маркетплейса (начало месяца, часы работы)
LOCAL_TIMEZONE = os.getenv("LOCAL_TIMEZONE", "Asia/Jakarta")

# Бесплатный лимит транзакций в календарный месяц для мерчантов без пакета
FREE_TIER_LIMIT = int(os.getenv("FREE_TIER_LIMIT", "100"))

# Порог предупреждения о квоте, % использования
QUOTA_WARNING_PERCENT = int(os.getenv("QUOTA_WARNING_PERCENT", "80"))

# Минимальная сумма вывода для верификатора
MIN_WITHDRAWAL = int(os.getenv("MIN_WITHDRAWAL", "10000"))

# Взнос kas по умолчанию для новых групп
DEFAULT_MONTHLY_FEE = int(os.getenv("DEFAULT_MONTHLY_FEE", "10000"))

# Логирование
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

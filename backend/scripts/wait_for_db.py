from __future__ import annotations

from sqlalchemy.exc import OperationalError

from invoicegen.core.logging import configure_logging
from invoicegen.core.settings import get_settings
from invoicegen.db.session import Database


def main() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level)
    database = Database.from_settings(settings)
    try:
        database.wait_until_ready(
            retries=settings.db_connect_retries,
            delay=settings.db_connect_retry_delay,
        )
    except OperationalError:
        raise SystemExit("Database not reachable")
    finally:
        database.dispose()


if __name__ == "__main__":
    main()

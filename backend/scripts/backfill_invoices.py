from __future__ import annotations

from invoicegen.core.settings import get_settings
from invoicegen.db.session import Database
from invoicegen.services.invoices import backfill_invoice_totals


def main() -> None:
    database = Database.from_settings(get_settings())
    try:
        with database.session() as db:
            updated = backfill_invoice_totals(db)
    finally:
        database.dispose()
    print(f"Backfilled {updated} invoice(s).")


if __name__ == "__main__":
    main()

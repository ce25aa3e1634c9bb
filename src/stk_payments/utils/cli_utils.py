from rich.console import Console
from rich.table import Table

from stk_payments.models import PaymentInDB
from stk_payments.utils.phone import format_phone_display


def get_rich_console() -> Console: return Console(stderr=True)


def payments_table(payments: list[PaymentInDB], title: str | None = None) -> Table:
    """Таблица платежей для вывода в консоль."""
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Phone")
    table.add_column("Amount", justify="right")
    table.add_column("Status")
    table.add_column("CheckoutRequestID")
    table.add_column("Created")
    for p in payments:
        table.add_row(
            str(p.id),
            format_phone_display(p.phone_number),
            f"{p.amount:,.2f}",
            p.status.value,
            p.checkout_request_id or "-",
            p.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    return table

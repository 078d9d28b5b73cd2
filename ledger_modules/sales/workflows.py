"""
Sales Workflows (``ledger_modules.sales.workflows``).

Order lifecycle.  Cancellation is allowed until the order is already
cancelled; a cancelled order is terminal.
"""

from ledger_kernel.domain.workflow import Transition, Workflow
from ledger_modules.sales.models import SalesOrderStatus

_CONFIRMED = SalesOrderStatus.CONFIRMED.value
_DELIVERED = SalesOrderStatus.DELIVERED.value
_CANCELLED = SalesOrderStatus.CANCELLED.value


SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order from confirmation to delivery or cancellation",
    initial_state=_CONFIRMED,
    states=(_CONFIRMED, _DELIVERED, _CANCELLED),
    terminal_states=(_CANCELLED,),
    transitions=(
        Transition(_CONFIRMED, _DELIVERED, action="deliver"),
        Transition(_CONFIRMED, _CANCELLED, action="cancel"),
        Transition(_DELIVERED, _CANCELLED, action="cancel"),
    ),
)

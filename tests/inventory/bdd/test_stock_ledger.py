"""BDD tests for stock ledger adjustments."""

from pytest_bdd import parsers, scenarios, when
from storeflow.inventory.ledger import record_adjustment, update_stock_level
from storeflow.inventory.stock import AdjustmentType

STORE = "store-bdd"
PRODUCT = "prod-001"

scenarios("features/stock_ledger.feature")


@when(parsers.cfparse('{quantity:d} units are removed with reference "{reference}"'))
def _(attempt, quantity, reference):
    attempt(
        record_adjustment,
        STORE,
        PRODUCT,
        AdjustmentType.DECREASE,
        quantity,
        reason="Sale",
        adjusted_by="pos",
        reference=reference,
    )


@when(parsers.cfparse("the stock level is set to {quantity:d}"))
def _(quantity):
    update_stock_level(STORE, PRODUCT, quantity, adjusted_by="clerk")

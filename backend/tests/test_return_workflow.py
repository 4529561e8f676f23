import pytest

from retailpos.schemas.return_schema import LineItem, ReturnProcessData
from retailpos.services.return_summary import calculate_summary
from retailpos.services.return_workflow import (
    ReturnWorkflow,
    WorkflowState,
    WorkflowStep,
    build_exchange_bill,
)
from retailpos.utils.result import ErrorCode, err

pytestmark = pytest.mark.anyio

SHIRT, JEANS, BELT, SNEAKERS = 1, 2, 3, 4


async def _on_exchange_step(wf, keep=0):
    """Select the sale and keep only return line ``keep`` (0 = shirt, 1 = sneakers)."""
    assert (await wf.select_bill(1)).ok
    for i in range(len(wf.return_lines)):
        if i != keep:
            wf.set_return_quantity(i, 0)
    if keep == 1:
        wf.set_return_quantity(1, 1)
    assert wf.advance().ok
    assert wf.step == WorkflowStep.SELECT_EXCHANGE_ITEMS


async def test_search_requires_two_characters(collab):
    wf = ReturnWorkflow(collab)
    res = await wf.search_bills("I")
    assert res.ok and res.value == []


async def test_search_hides_return_records(collab):
    wf = ReturnWorkflow(collab)
    res = await wf.search_bills("INV")
    assert [b.bill_number for b in res.value] == ["INV-0001"]


async def test_select_bill_prepopulates_lines(collab):
    wf = ReturnWorkflow(collab)
    res = await wf.select_bill(1)
    assert res.ok
    assert wf.step == WorkflowStep.SELECT_RETURN_ITEMS
    assert [(l.product_name, l.quantity, l.max_quantity) for l in wf.return_lines] == [
        ("Cotton Shirt", 1, 1),
        ("Sneakers", 2, 2),
    ]
    assert wf.customer_name == "Asha Rao"
    assert wf.summary().total_return_value == 500


async def test_return_bill_is_ineligible(collab):
    wf = ReturnWorkflow(collab)
    res = await wf.select_bill(2)
    assert not res.ok
    assert res.code == ErrorCode.INELIGIBLE_BILL
    assert wf.step == WorkflowStep.SEARCH_BILL
    assert not wf.can_advance()


async def test_unknown_bill(collab):
    res = await ReturnWorkflow(collab).select_bill(99)
    assert res.code == ErrorCode.NOT_FOUND


async def test_return_quantity_bounds(collab):
    wf = ReturnWorkflow(collab)
    await wf.select_bill(1)
    assert wf.set_return_quantity(1, 1).ok
    assert wf.return_lines[1].total_price == 200

    res = wf.set_return_quantity(1, 3)
    assert res.code == ErrorCode.INVALID_QUANTITY
    assert wf.return_lines[1].quantity == 1
    assert wf.set_return_quantity(0, -1).code == ErrorCode.INVALID_QUANTITY
    assert wf.set_return_quantity(5, 1).code == ErrorCode.NOT_FOUND


async def test_gate_blocks_all_zero_quantities(collab):
    wf = ReturnWorkflow(collab)
    await wf.select_bill(1)
    wf.set_return_quantity(0, 0)
    wf.set_return_quantity(1, 0)
    assert not wf.can_advance()
    res = wf.advance()
    assert not res.ok
    assert res.message == "Select at least one item to return"
    assert wf.step == WorkflowStep.SELECT_RETURN_ITEMS


async def test_gate_requires_an_exchange_line(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    res = wf.advance()
    assert res.message == "Add at least one item for exchange"
    assert wf.step == WorkflowStep.SELECT_EXCHANGE_ITEMS


async def test_advance_from_first_step_needs_a_bill(collab):
    wf = ReturnWorkflow(collab)
    assert wf.advance().message == "Please select a bill to return"


async def test_adding_same_product_increments_quantity(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(JEANS)
    await wf.handle_scan("222")
    assert len(wf.exchange_lines) == 1
    assert wf.exchange_lines[0].quantity == 2
    assert wf.exchange_lines[0].total_price == 300


async def test_scan_only_on_exchange_step(collab):
    wf = ReturnWorkflow(collab)
    await wf.select_bill(1)
    res = await wf.handle_scan("222")
    assert res.code == ErrorCode.INVALID_TRANSITION
    assert wf.exchange_lines == []


async def test_consume_scan_stream(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)

    async def scanner():
        for code in ("333", "999", "333"):
            yield code

    results = await wf.consume_scans(scanner())
    assert [r.ok for r in results] == [True, False, True]
    assert results[1].code == ErrorCode.NOT_FOUND
    assert wf.exchange_lines[0].product_name == "Leather Belt"
    assert wf.exchange_lines[0].quantity == 2


async def test_exchange_quantity_zero_removes_line(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(BELT)
    await wf.add_exchange_product(JEANS)
    assert wf.set_exchange_quantity(0, 0).ok
    assert [l.product_name for l in wf.exchange_lines] == ["Denim Jeans"]
    assert wf.remove_exchange_item(0).ok
    assert wf.exchange_lines == []


async def test_back_keeps_entered_data(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(JEANS)
    assert wf.back().ok
    assert wf.step == WorkflowStep.SELECT_RETURN_ITEMS
    assert wf.advance().ok
    assert [l.product_name for l in wf.exchange_lines] == ["Denim Jeans"]


async def test_customer_pays_end_to_end(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf, keep=0)
    await wf.add_exchange_product(JEANS)
    wf.update_details(return_reason="Wrong size")
    assert wf.advance().ok

    res = await wf.confirm()
    assert res.ok, res
    outcome = res.value
    assert outcome.summary.total_return_value == 100
    assert outcome.summary.total_exchange_value == 150
    assert outcome.summary.balance_amount == 50
    assert outcome.summary.is_balance_positive
    assert outcome.warnings == []
    assert wf.state == WorkflowState.SUBMITTED

    payload = collab.returns.created[0]
    assert payload.original_bill_id == 1
    assert [i.product_name for i in payload.return_items] == ["Cotton Shirt"]
    assert payload.customer_name == "Asha Rao"

    bill = collab.bill_store.created[0]
    assert bill.payment_mode == "EXCHANGE"
    assert bill.is_return is True
    assert bill.original_bill_id == 1
    assert bill.total_amount == 150
    assert bill.notes == "Return: Wrong size"
    assert outcome.exchange_bill_number == "INV-0001"


async def test_customer_gets_change_end_to_end(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf, keep=1)
    await wf.add_exchange_product(BELT)
    wf.advance()
    res = await wf.confirm()
    assert res.ok
    assert res.value.summary.total_return_value == 200
    assert res.value.summary.total_exchange_value == 80
    assert res.value.summary.balance_amount == -120
    assert not res.value.summary.is_balance_positive
    assert collab.bill_store.created[0].notes == "Return: No reason provided"


async def test_confirm_blocked_on_shortfall(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(BELT)
    wf.set_exchange_quantity(0, 5)
    wf.advance()

    res = await wf.confirm()
    assert not res.ok
    assert res.code == ErrorCode.INSUFFICIENT_STOCK
    assert res.message == "Insufficient stock: Leather Belt (Requested: 5, Available: 3)"
    assert collab.returns.created == []
    assert collab.bill_store.created == []
    assert wf.step == WorkflowStep.CONFIRM
    assert wf.state == WorkflowState.ACTIVE
    assert wf.exchange_lines[0].quantity == 5


async def test_zero_quantity_return_lines_are_not_submitted(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf, keep=0)
    assert wf.return_lines[1].quantity == 0
    await wf.add_exchange_product(JEANS)
    wf.advance()
    assert (await wf.confirm()).ok
    assert len(collab.returns.created[0].return_items) == 1


async def test_create_failure_keeps_state_for_retry(collab):
    collab.returns.fail = True
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(JEANS)
    wf.advance()

    res = await wf.confirm()
    assert res.code == ErrorCode.PERSISTENCE
    assert wf.step == WorkflowStep.CONFIRM
    assert wf.last_errors == ["database is locked"]
    assert collab.bill_store.created == []

    collab.returns.fail = False
    assert (await wf.confirm()).ok


async def test_exchange_bill_failure_is_a_warning(collab):
    collab.bill_store.fail = True
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(JEANS)
    wf.advance()

    res = await wf.confirm()
    assert res.ok
    assert res.value.exchange_bill_number is None
    assert len(res.value.warnings) == 1
    assert "exchange bill could not be recorded" in res.value.warnings[0]
    assert len(collab.returns.created) == 1
    assert wf.state == WorkflowState.SUBMITTED


async def test_exchange_bill_crash_does_not_allow_resubmit(collab):
    async def boom(data):
        raise RuntimeError("disk full")

    collab.bill_store.create = boom
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(JEANS)
    wf.advance()

    res = await wf.confirm()
    assert res.ok
    assert "disk full" in res.value.warnings[0]
    assert wf.state == WorkflowState.SUBMITTED
    assert not wf.submitting

    again = await wf.confirm()
    assert not again.ok
    assert len(collab.returns.created) == 1


async def test_cancel_during_failed_submit_is_refused(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(JEANS)
    wf.advance()
    seen = {}

    async def create(data):
        seen["cancel"] = wf.cancel()
        seen["back"] = wf.back()
        return err(ErrorCode.PERSISTENCE, "database is locked")

    collab.returns.create = create
    res = await wf.confirm()
    assert res.code == ErrorCode.PERSISTENCE
    assert seen["cancel"].code == ErrorCode.BUSY
    assert seen["back"].code == ErrorCode.BUSY
    assert wf.state == WorkflowState.ACTIVE
    assert wf.step == WorkflowStep.CONFIRM
    assert wf.bill is not None
    assert not wf.submitting


async def test_cancel_during_successful_submit_is_refused(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(JEANS)
    wf.advance()
    store_create = collab.returns.create
    seen = {}

    async def create(data):
        seen["cancel"] = wf.cancel()
        return await store_create(data)

    collab.returns.create = create
    res = await wf.confirm()
    assert res.ok
    assert seen["cancel"].code == ErrorCode.BUSY
    assert wf.state == WorkflowState.SUBMITTED
    assert len(collab.returns.created) == 1


async def test_confirm_rejected_while_submitting(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(JEANS)
    wf.advance()
    wf.submitting = True
    res = await wf.confirm()
    assert res.code == ErrorCode.BUSY
    assert collab.returns.created == []


async def test_confirm_only_on_last_step(collab):
    wf = ReturnWorkflow(collab)
    await wf.select_bill(1)
    res = await wf.confirm()
    assert res.code == ErrorCode.INVALID_TRANSITION


async def test_cancel_discards_everything(collab):
    wf = ReturnWorkflow(collab)
    await _on_exchange_step(wf)
    await wf.add_exchange_product(JEANS)
    assert wf.cancel().ok
    assert wf.state == WorkflowState.CANCELLED
    assert wf.bill is None
    assert wf.exchange_lines == []
    assert collab.returns.created == []
    res = await wf.add_exchange_product(JEANS)
    assert res.code == ErrorCode.INACTIVE


async def test_snapshot_shape(collab):
    wf = ReturnWorkflow(collab)
    await wf.select_bill(1)
    snap = wf.snapshot()
    assert snap["step"] == 2
    assert snap["step_name"] == "SELECT_RETURN_ITEMS"
    assert snap["can_advance"] is True
    assert snap["bill"]["bill_number"] == "INV-0001"
    assert snap["return_items"][1]["max_quantity"] == 2
    assert snap["summary"]["total_return_value"] == 500


async def test_build_exchange_bill_uses_exchange_lines():
    ret = LineItem(product_name="Cotton Shirt", quantity=1, unit_price=100, total_price=100)
    exc = LineItem(product_id=2, product_name="Denim Jeans", quantity=2, unit_price=150, total_price=300)
    payload = ReturnProcessData(original_bill_id=7, return_items=[ret], exchange_items=[exc])
    bill = build_exchange_bill(payload, calculate_summary([ret], [exc]))
    assert bill.total_amount == 300
    assert [i.product_name for i in bill.items] == ["Denim Jeans"]
    assert bill.original_bill_id == 7


@pytest.fixture
def two_shirt_bill(collab, catalog):
    shirt = catalog.products[SHIRT]
    sale = collab.bills.bills[1].model_copy(
        update={
            "id": 5,
            "bill_number": "INV-0005",
            "total_amount": 200.0,
            "items": [
                collab.bills.bills[1].items[0].model_copy(update={"quantity": 2, "total_price": 2 * shirt.selling_price})
            ],
        }
    )
    collab.bills.bills[5] = sale
    return sale


async def test_two_units_return_one_for_dearer_item(collab, two_shirt_bill):
    wf = ReturnWorkflow(collab)
    await wf.select_bill(5)
    assert wf.return_lines[0].max_quantity == 2
    wf.set_return_quantity(0, 1)
    wf.advance()
    await wf.add_exchange_product(JEANS)
    wf.advance()

    res = await wf.confirm()
    assert res.ok
    s = res.value.summary
    assert (s.total_return_value, s.total_exchange_value, s.balance_amount) == (100, 150, 50)
    assert s.is_balance_positive
    payload = collab.returns.created[0]
    assert [(i.quantity, i.total_price) for i in payload.return_items] == [(1, 100)]
    assert [(i.quantity, i.total_price) for i in payload.exchange_items] == [(1, 150)]


async def test_two_units_returned_for_cheaper_item(collab, two_shirt_bill):
    wf = ReturnWorkflow(collab)
    await wf.select_bill(5)
    wf.advance()
    await wf.add_exchange_product(BELT)
    wf.advance()

    res = await wf.confirm()
    assert res.ok
    assert res.value.summary.total_return_value == 200
    assert res.value.summary.balance_amount == -120
    assert not res.value.summary.is_balance_positive

import pytest

from procureflow.errors import InvalidState, PrerequisiteNotMet, Unauthorized, ValidationFailed
from procureflow.models.job_order import JobOrderStatus, TransferItemStatus
from procureflow.schemas.job_order import TransferComplete, TransferLine, TransferUpdate
from procureflow.services.job_orders import job_orders


def _items(jo):
    return {item.item: item for item in jo.transfer_items}


def _transfer_all(db_session, jo, actor):
    lines = [TransferLine(item_id=item.id, transferred_quantity=item.quantity) for item in jo.transfer_items]
    return job_orders.update_transfer(db_session, jo.id, TransferUpdate(items=lines), actor)


def test_transfer_not_available_before_receipt(db_session, draft_purchase_order, operations):
    with pytest.raises(PrerequisiteNotMet):
        job_orders.update_transfer(db_session, draft_purchase_order.job_order_id, TransferUpdate(), operations)


def test_partial_then_full_transfer_updates_item_status(db_session, received_purchase_order, operations):
    jo = received_purchase_order.job_order
    switch = _items(jo)["Network switch"]

    jo = job_orders.update_transfer(
        db_session,
        jo.id,
        TransferUpdate(items=[TransferLine(item_id=switch.id, transferred_quantity=1, notes="One unit on site")]),
        operations,
    )
    switch = _items(jo)["Network switch"]
    assert switch.status == TransferItemStatus.partial
    assert switch.transferred_by == operations.name
    assert switch.transfer_date is not None
    assert switch.notes == "One unit on site"
    assert _items(jo)["Patch cable"].status == TransferItemStatus.pending

    jo = _transfer_all(db_session, jo, operations)
    assert {item.status for item in jo.transfer_items} == {TransferItemStatus.completed}


def test_transfer_quantity_cannot_exceed_ordered(db_session, received_purchase_order, operations):
    jo = received_purchase_order.job_order
    cable = _items(jo)["Patch cable"]
    with pytest.raises(ValidationFailed):
        job_orders.update_transfer(
            db_session,
            jo.id,
            TransferUpdate(items=[TransferLine(item_id=cable.id, transferred_quantity=11)]),
            operations,
        )


def test_transfer_denied_for_unrelated_department(db_session, received_purchase_order, finance_approver):
    with pytest.raises(Unauthorized):
        job_orders.update_transfer(
            db_session, received_purchase_order.job_order_id, TransferUpdate(), finance_approver
        )


def test_complete_requires_every_item_transferred(db_session, received_purchase_order, operations):
    jo = received_purchase_order.job_order
    switch = _items(jo)["Network switch"]
    job_orders.update_transfer(
        db_session,
        jo.id,
        TransferUpdate(items=[TransferLine(item_id=switch.id, transferred_quantity=2)]),
        operations,
    )
    with pytest.raises(PrerequisiteNotMet) as exc_info:
        job_orders.complete_transfer(db_session, jo.id, TransferComplete(), operations)
    assert "Patch cable" in exc_info.value.detail


def test_completed_transfer_is_latched(db_session, received_purchase_order, operations):
    jo = _transfer_all(db_session, received_purchase_order.job_order, operations)
    jo = job_orders.complete_transfer(
        db_session, jo.id, TransferComplete(transfer_notes="All handed to IT"), operations
    )
    assert jo.transfer_completed
    assert jo.transfer_completed_by == operations.name
    assert jo.transfer_completed_at is not None
    assert jo.transfer_notes == "All handed to IT"

    with pytest.raises(InvalidState):
        job_orders.complete_transfer(db_session, jo.id, TransferComplete(transfer_completed=False), operations)
    with pytest.raises(InvalidState):
        _transfer_all(db_session, jo, operations)
    with pytest.raises(InvalidState):
        job_orders.complete_transfer(db_session, jo.id, TransferComplete(), operations)


def test_unchecking_before_completion_is_invalid(db_session, received_purchase_order, operations):
    with pytest.raises(ValidationFailed):
        job_orders.complete_transfer(
            db_session,
            received_purchase_order.job_order_id,
            TransferComplete(transfer_completed=False),
            operations,
        )


def test_work_starts_only_after_transfer(db_session, received_purchase_order, operations, it_head):
    jo = received_purchase_order.job_order
    with pytest.raises(PrerequisiteNotMet):
        job_orders.start(db_session, jo.id, it_head)

    _transfer_all(db_session, jo, operations)
    job_orders.complete_transfer(db_session, jo.id, TransferComplete(), operations)
    jo = job_orders.start(db_session, jo.id, it_head)
    assert jo.status == JobOrderStatus.in_progress


def test_transfer_progress_and_completion_notify(
    db_session, received_purchase_order, operations, directory, dispatcher
):
    jo = received_purchase_order.job_order
    dispatcher.calls.clear()

    _transfer_all(db_session, jo, operations)
    [updated] = dispatcher.of_type("job_order_transfer_updated")
    assert updated["related_entity_id"] == str(jo.id)
    assert jo.requester_id in updated["target_user_ids"]
    assert directory["it_head"] in updated["target_user_ids"]

    job_orders.complete_transfer(db_session, jo.id, TransferComplete(), operations)
    [completed] = dispatcher.of_type("job_order_transfer_completed")
    assert completed["title"] == "Material transfer completed"
    assert set(completed["target_user_ids"]) == set(updated["target_user_ids"])


def test_incomplete_transfer_sends_nothing(db_session, received_purchase_order, operations, dispatcher):
    dispatcher.calls.clear()
    with pytest.raises(PrerequisiteNotMet):
        job_orders.complete_transfer(
            db_session, received_purchase_order.job_order_id, TransferComplete(), operations
        )
    assert dispatcher.calls == []

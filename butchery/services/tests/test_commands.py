from decimal import Decimal

from butchery.domain.models import (
    AdjustWalletCommand,
    AdvanceDeliveryCommand,
    AssignDriverCommand,
    CancelOrderCommand,
    CompleteDeliveryCommand,
    ConfirmOrderCommand,
    RefundOrderCommand,
    TransitionOrderCommand,
    UpdateLocationCommand,
)


def test_commands_drive_an_order_to_refund(shop, place, admin, driver):
    order = place(method="cod")
    handle = shop.commands.handle

    assert handle(ConfirmOrderCommand(order_id=order.id, actor=admin)).ok
    assert handle(TransitionOrderCommand(order_id=order.id, status="processing", actor=admin, notes="On the block")).ok
    tracking = handle(AssignDriverCommand(order_id=order.id, driver=driver, actor=admin)).unwrap()
    assert handle(UpdateLocationCommand(tracking_id=tracking.id, latitude=25.1, longitude=55.2, actor=driver)).ok
    handle(AdvanceDeliveryCommand(tracking_id=tracking.id, actor=driver)).unwrap()
    handle(AdvanceDeliveryCommand(tracking_id=tracking.id, actor=driver, notes="Collected")).unwrap()
    done = handle(CompleteDeliveryCommand(tracking_id=tracking.id, actor=driver, signature="sig")).unwrap()
    assert done.status == "delivered"

    refunded = handle(RefundOrderCommand(order_id=order.id, actor=admin, amount=Decimal("20"), reason="Short weight"))
    assert refunded.unwrap().status == "refunded"
    assert shop.repos.orders.get(order.id).payment_status == "partially_refunded"


def test_cancel_command(shop, place, customer):
    order = place()
    result = shop.commands.handle(CancelOrderCommand(order_id=order.id, actor=customer, reason="Wrong cut"))
    assert result.unwrap().status == "cancelled"
    assert result.value.status_history[-1].notes == "Wrong cut"


def test_adjust_wallet_command(shop, admin, customer):
    result = shop.commands.handle(
        AdjustWalletCommand(customer_id=customer.id, amount=Decimal("25"), reason="Apology", actor=admin)
    )
    assert result.ok
    assert shop.ledger.get_account(customer.id).balance == Decimal("25.00")

    denied = shop.commands.handle(
        AdjustWalletCommand(customer_id=customer.id, amount=Decimal("25"), reason="Self", actor=customer)
    )
    assert denied.error.kind == "Unauthorized"


def test_failed_command_returns_error(shop, place, admin):
    order = place()
    result = shop.commands.handle(TransitionOrderCommand(order_id=order.id, status="delivered", actor=admin))
    assert result.error.kind == "IllegalTransition"

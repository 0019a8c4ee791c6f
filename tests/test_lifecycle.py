from datetime import date

import pytest

from database.models import NegotiationMessage, Quote
from services.exceptions import NotFoundError, StateTransitionError, ValidationError
from services.lifecycle import (
    Sender,
    can_transition_quote,
    can_transition_request,
    is_terminal_quote,
    is_terminal_request,
)
from services.order_service import OrderService
from services.procurement_service import ProcurementService
from services.quote_service import QuoteService, normalize_proposed_changes


def make_quote(db, settings, request, vendor, unit_price=3.00, total_price=3000.0, **extra):
    data = {
        'request_id': request.id,
        'vendor_id': vendor.id,
        'unit_price': unit_price,
        'total_price': total_price,
    }
    data.update(extra)
    return QuoteService(db, settings).create_quote(data)


# ========== STATE TABLES ==========


@pytest.mark.parametrize("current, target, allowed", [
    ("open", "negotiating", True),
    ("open", "cancelled", True),
    ("open", "completed", False),
    ("negotiating", "completed", True),
    ("negotiating", "awarded", True),
    ("awarded", "completed", True),
    ("completed", "cancelled", False),
    ("cancelled", "open", False),
])
def test_request_transitions(current, target, allowed):
    assert can_transition_request(current, target) is allowed


@pytest.mark.parametrize("current, target, allowed", [
    ("pending", "countered", True),
    ("pending", "accepted", True),
    ("countered", "countered", True),
    ("countered", "pending", True),
    ("accepted", "rejected", False),
    ("rejected", "countered", False),
])
def test_quote_transitions(current, target, allowed):
    assert can_transition_quote(current, target) is allowed


def test_terminal_statuses():
    assert is_terminal_request("completed")
    assert is_terminal_request("cancelled")
    assert not is_terminal_request("awarded")
    assert is_terminal_quote("accepted")
    assert not is_terminal_quote("countered")


def test_sender_display_names():
    assert Sender("ai-vendor").display_name == "AI (Vendor)"
    assert Sender.AI_BUYER.is_ai
    assert not Sender.BUYER.is_ai


# ========== REQUESTS ==========


def test_create_request_defaults(db, buyer):
    request = ProcurementService(db).create_request({
        'buyer_id': buyer.id,
        'product_name': 'Mustard',
        'quantity': 200,
        'unit': 'jars',
    })

    assert request.id.startswith("req_")
    assert request.status == "open"
    assert request.urgency == "medium"
    assert request.specifications == {}
    assert request.updated_at is not None


def test_create_request_reports_missing_fields(db, buyer):
    with pytest.raises(ValidationError) as exc:
        ProcurementService(db).create_request({'buyer_id': buyer.id, 'quantity': 5})

    assert "productName" in exc.value.message
    assert "unit" in exc.value.message
    assert exc.value.status_code == 400


@pytest.mark.parametrize("overrides", [
    {'quantity': 0},
    {'quantity': -3},
    {'quantity': 'lots'},
    {'urgency': 'yesterday'},
    {'delivery_date': 'next tuesday'},
])
def test_create_request_rejects_bad_values(db, buyer, overrides):
    data = {'buyer_id': buyer.id, 'product_name': 'Ketchup', 'quantity': 10, 'unit': 'bottles'}
    data.update(overrides)

    with pytest.raises(ValidationError):
        ProcurementService(db).create_request(data)


def test_create_request_for_unknown_buyer(db):
    with pytest.raises(NotFoundError):
        ProcurementService(db).create_request({
            'buyer_id': 'buyer_missing',
            'product_name': 'Ketchup',
            'quantity': 10,
            'unit': 'bottles',
        })


def test_list_requests_filters(db, buyer, procurement_request):
    service = ProcurementService(db)
    service.cancel_request(procurement_request.id)
    ProcurementService(db).create_request({
        'buyer_id': buyer.id, 'product_name': 'Mustard', 'quantity': 5, 'unit': 'jars',
    })

    assert len(service.list_requests()) == 2
    assert [r.product_name for r in service.list_requests(status="cancelled")] == ["Ketchup"]
    assert service.list_requests(buyer_id="buyer_other") == []


def test_cancelled_request_cannot_be_cancelled_again(db, procurement_request):
    service = ProcurementService(db)
    assert service.cancel_request(procurement_request.id).status == "cancelled"

    with pytest.raises(StateTransitionError):
        service.cancel_request(procurement_request.id)


# ========== QUOTES ==========


def test_first_quote_moves_request_to_negotiating(db, settings, procurement_request, vendors):
    quote = make_quote(db, settings, procurement_request, vendors[0])

    assert quote.status == "pending"
    assert quote.original_total_price == 3000.0
    assert quote.original_unit_price == 3.00
    assert quote.payment_terms == "NET 30"
    assert quote.valid_until is not None
    assert quote.negotiations == []
    assert procurement_request.status == "negotiating"


def test_quote_for_cancelled_request_is_refused(db, settings, procurement_request, vendors):
    ProcurementService(db).cancel_request(procurement_request.id)

    with pytest.raises(StateTransitionError):
        make_quote(db, settings, procurement_request, vendors[0])


def test_quote_for_unknown_vendor(db, settings, procurement_request):
    with pytest.raises(NotFoundError):
        QuoteService(db, settings).create_quote({
            'request_id': procurement_request.id,
            'vendor_id': 'vendor_missing',
            'unit_price': 1.0,
            'total_price': 10.0,
        })


def test_quote_status_cannot_be_set_to_accepted(db, settings, procurement_request, vendors):
    quote = make_quote(db, settings, procurement_request, vendors[0])

    with pytest.raises(ValidationError):
        QuoteService(db, settings).update_quote_status(quote.id, "accepted")


def test_rejected_quote_cannot_be_reopened(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])
    service.update_quote_status(quote.id, "rejected")

    with pytest.raises(StateTransitionError):
        service.update_quote_status(quote.id, "pending")


# ========== NEGOTIATION MESSAGES ==========


def test_message_without_changes_leaves_quote_untouched(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])

    message = service.record_negotiation_message(quote.id, "buyer", "Can you deliver earlier?")

    assert message.sequence == 1
    assert message.proposed_changes == {}
    assert quote.status == "pending"
    assert quote.total_price == 3000.0


def test_message_with_changes_counters_quote(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])

    changes = {'totalPrice': 2850.0, 'unit_price': 2.85, 'deliveryDate': '2026-11-28', 'paymentTerms': 'NET 45'}
    message = service.record_negotiation_message(quote.id, "vendor", "We can do 2850.", changes)

    assert message.proposed_changes == changes
    assert quote.status == "countered"
    assert quote.total_price == 2850.0
    assert quote.unit_price == 2.85
    assert quote.delivery_date == date(2026, 11, 28)
    assert quote.payment_terms == "NET 45"
    assert quote.original_total_price == 3000.0


def test_first_counter_moves_open_request_to_negotiating(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])
    # force the request back to open to exercise the counter path on its own
    procurement_request.status = "open"
    db.commit()

    service.record_negotiation_message(quote.id, "buyer", "Counter", {'totalPrice': 2900})

    assert procurement_request.status == "negotiating"


def test_proposed_prices_are_clamped(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])

    service.record_negotiation_message(quote.id, "buyer", "Half price?", {'totalPrice': 1000, 'unitPrice': 5.0})

    assert quote.total_price == pytest.approx(2250.0)
    assert quote.unit_price == pytest.approx(3.75)


def test_unknown_keys_are_recorded_but_not_applied(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])

    message = service.record_negotiation_message(quote.id, "buyer", "Coupon?", {'discountCode': 'SAVE10'})

    assert message.proposed_changes == {'discountCode': 'SAVE10'}
    assert quote.status == "pending"


def test_malformed_change_writes_nothing(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])

    with pytest.raises(ValidationError):
        service.record_negotiation_message(quote.id, "buyer", "Price?", {'totalPrice': 'cheap'})

    assert service.list_negotiations(quote.id) == []
    assert quote.total_price == 3000.0


def test_non_finite_price_writes_nothing(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])

    with pytest.raises(ValidationError):
        service.record_negotiation_message(quote.id, "buyer", "Price?", {'totalPrice': 'nan'})

    assert service.list_negotiations(quote.id) == []
    assert quote.total_price == 3000.0
    assert quote.status == "pending"


def test_empty_dates_are_not_applied(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0], delivery_date=date(2026, 12, 1))

    changes = {'deliveryDate': None, 'validUntil': ''}
    message = service.record_negotiation_message(quote.id, "vendor", "Dates unchanged", changes)

    assert message.proposed_changes == changes
    assert quote.delivery_date == date(2026, 12, 1)
    assert quote.valid_until is not None
    assert quote.status == "pending"
    assert normalize_proposed_changes(changes) == {}


def test_changes_on_terminal_quote_are_refused(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])
    service.update_quote_status(quote.id, "rejected")

    with pytest.raises(StateTransitionError):
        service.record_negotiation_message(quote.id, "buyer", "Reconsider?", {'totalPrice': 2800})

    # plain messages are still allowed
    message = service.record_negotiation_message(quote.id, "buyer", "Thanks anyway")
    assert message.sequence == 1


def test_message_validation(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])

    with pytest.raises(ValidationError):
        service.record_negotiation_message(quote.id, "robot", "hello")
    with pytest.raises(ValidationError):
        service.record_negotiation_message(quote.id, "buyer", "   ")
    with pytest.raises(NotFoundError):
        service.record_negotiation_message("quote_missing", "buyer", "hello")


def test_negotiation_history_round_trip(db, settings, procurement_request, vendors):
    service = QuoteService(db, settings)
    quote = make_quote(db, settings, procurement_request, vendors[0])
    senders = ["buyer", "vendor", "ai-vendor", "buyer", "ai-buyer"]

    for i, sender in enumerate(senders):
        service.record_negotiation_message(quote.id, sender, f"message {i}")

    history = service.list_negotiations(quote.id)
    assert [m.message for m in history] == [f"message {i}" for i in range(len(senders))]
    assert [m.sender for m in history] == senders
    assert [m.sequence for m in history] == [1, 2, 3, 4, 5]
    assert db.query(NegotiationMessage).count() == len(senders)


def test_normalize_proposed_changes():
    updates = normalize_proposed_changes({
        'totalPrice': '950.50',
        'delivery_date': '2026-01-20',
        'validUntil': '2026-01-15T10:00:00Z',
        'notes': None,
        'color': 'red',
    })

    assert updates['total_price'] == 950.5
    assert updates['delivery_date'] == date(2026, 1, 20)
    assert updates['valid_until'].tzinfo is None
    assert updates['notes'] == ''
    assert 'color' not in updates


@pytest.mark.parametrize("changes", [
    {'totalPrice': -5},
    {'totalPrice': 'nan'},
    {'totalPrice': float('nan')},
    {'unitPrice': float('inf')},
    {'unitPrice': True},
    {'deliveryDate': 'soon'},
])
def test_normalize_rejects_malformed_values(changes):
    with pytest.raises(ValidationError):
        normalize_proposed_changes(changes)


# ========== ORDERS ==========


def test_accept_quote_places_order(db, settings, procurement_request, vendors):
    winner = make_quote(db, settings, procurement_request, vendors[0], delivery_date=date(2026, 12, 1))
    loser = make_quote(db, settings, procurement_request, vendors[1], unit_price=3.3, total_price=3300.0)
    QuoteService(db, settings).record_negotiation_message(winner.id, "vendor", "Deal at 2850", {'totalPrice': 2850})

    order = OrderService(db).accept_quote(winner.id)

    assert order.final_price == 2850.0
    assert order.quote_id == winner.id
    assert order.buyer_id == procurement_request.buyer_id
    assert order.vendor_id == vendors[0].id
    assert order.delivery_date == date(2026, 12, 1)
    assert order.payment_terms == "NET 30"
    assert order.status == "confirmed"
    assert winner.status == "accepted"
    assert db.get(Quote, loser.id).status == "rejected"
    assert procurement_request.status == "completed"


def test_second_accept_is_refused(db, settings, procurement_request, vendors):
    first = make_quote(db, settings, procurement_request, vendors[0])
    second = make_quote(db, settings, procurement_request, vendors[1])
    orders = OrderService(db)
    orders.accept_quote(first.id)

    with pytest.raises(StateTransitionError):
        orders.accept_quote(second.id)
    with pytest.raises(StateTransitionError):
        orders.accept_quote(first.id)

    assert len(orders.list_orders()) == 1


def test_accept_on_cancelled_request_is_refused(db, settings, procurement_request, vendors):
    quote = make_quote(db, settings, procurement_request, vendors[0])
    ProcurementService(db).cancel_request(procurement_request.id)

    with pytest.raises(StateTransitionError):
        OrderService(db).accept_quote(quote.id)

    assert OrderService(db).list_orders() == []
    assert quote.status == "pending"


def test_order_status_moves_forward_only(db, settings, procurement_request, vendors):
    quote = make_quote(db, settings, procurement_request, vendors[0])
    orders = OrderService(db)
    order = orders.accept_quote(quote.id)

    assert orders.update_order_status(order.id, "shipped").status == "shipped"
    with pytest.raises(StateTransitionError):
        orders.update_order_status(order.id, "confirmed")
    with pytest.raises(ValidationError):
        orders.update_order_status(order.id, "lost")


def test_delete_request_removes_history(db, settings, procurement_request, vendors):
    quote = make_quote(db, settings, procurement_request, vendors[0])
    QuoteService(db, settings).record_negotiation_message(quote.id, "buyer", "hello")

    ProcurementService(db).delete_request(procurement_request.id)

    assert db.query(Quote).count() == 0
    assert db.query(NegotiationMessage).count() == 0
    with pytest.raises(NotFoundError):
        ProcurementService(db).delete_request(procurement_request.id)


def test_delete_request_with_order_is_refused(db, settings, procurement_request, vendors):
    quote = make_quote(db, settings, procurement_request, vendors[0])
    OrderService(db).accept_quote(quote.id)

    with pytest.raises(StateTransitionError):
        ProcurementService(db).delete_request(procurement_request.id)

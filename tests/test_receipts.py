from datetime import datetime, timezone

from orderdesk.models import FulfillmentType
from orderdesk.schemas import OrderRecord
from orderdesk.services.receipts import render_receipt

PRINTED_AT = datetime(2026, 10, 18, 12, 30, tzinfo=timezone.utc)


def _order(**overrides) -> OrderRecord:
    data = {
        "id": 42,
        "tenant_id": "tenant-a",
        "customer_name": "Yassine",
        "table_number": "7",
        "verification_code": "4821",
        "items": [
            {"dish": {"id": "1", "name": "Tajine", "price": 45.0}, "quantity": 2},
            {"dish": {"id": "2", "name": "Mint Tea", "price": 10.0}, "quantity": 1},
        ],
        "total": 100.0,
    }
    data.update(overrides)
    return OrderRecord(**data)


def test_dine_in_receipt():
    doc = render_receipt(_order(), restaurant_name="Dar Fes", currency="MAD", printed_at=PRINTED_AT)

    assert doc.order_id == 42
    assert doc.title == "Order #42"
    assert "Dar Fes" in doc.html
    assert "2026-10-18 12:30" in doc.html
    assert "#42" in doc.html
    assert "طاولة: 7" in doc.html
    assert "كود: 4821" in doc.html
    assert "Tajine" in doc.html
    assert "90.00" in doc.html
    assert "100.00 MAD" in doc.html
    assert "delivery-box" not in doc.html.split("</style>")[1]


def test_delivery_receipt_shows_contact_block():
    order = _order(
        fulfillment_type=FulfillmentType.DELIVERY,
        table_number=None,
        verification_code=None,
        phone="0612345678",
        address="12 Rue Atlas, Fes",
    )

    html = render_receipt(order, printed_at=PRINTED_AT).html

    assert "طلب توصيل" in html
    assert "0612345678" in html
    assert "12 Rue Atlas, Fes" in html
    assert "طاولة" not in html


def test_customer_input_is_escaped():
    html = render_receipt(_order(customer_name="<script>x</script>"), printed_at=PRINTED_AT).html

    assert "<script>" not in html
    assert "&lt;script&gt;" in html

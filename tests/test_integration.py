import json

from brazadash.models import Order

from conftest import ADMIN_ID, CUSTOMER_ID, VENDOR_ID, add_role


def test_full_order_lifecycle_integration(client, db, restaurant, current_user, mocker):
    """
    Test the full lifecycle:
    1. Customer creates a payment intent (cart priced server-side, Stripe mocked)
    2. Customer confirms the payment (order created once)
    3. Vendor delivers the order
    4. Customer reviews it
    5. Admin sees it in the financial report
    """

    # --- 1. CREATE PAYMENT INTENT ---
    create = mocker.patch(
        "stripe.PaymentIntent.create",
        return_value={"id": "pi_lifecycle", "client_secret": "secret_lifecycle"},
    )
    cart = {
        "restaurant_id": "rest-1",
        "items": [{"menu_item_id": "item-1", "quantity": 1}, {"menu_item_id": "item-2", "quantity": 2}],
        "delivery_address": "500 Ocean Ave",
    }
    response = client.post("/checkout/create-payment-intent", json=cart)
    assert response.status_code == 200
    sent = create.call_args.kwargs
    # 60.00 subtotal + 4.80 fee + 3.99 delivery
    assert sent["amount"] == 6879

    # --- 2. CONFIRM PAYMENT ---
    mocker.patch("stripe.PaymentIntent.retrieve", return_value={
        "id": "pi_lifecycle",
        "status": "succeeded",
        "amount": sent["amount"],
        "metadata": sent["metadata"],
    })
    response = client.post("/checkout/confirm-payment", json={"payment_intent_id": "pi_lifecycle"})
    assert response.status_code == 200
    order = response.json()
    assert order["total"] == "68.79"
    assert [i["name"] for i in order["items"]] == ["Picanha", "Pao de Queijo"]
    assert json.loads(sent["metadata"]["items"])[1]["quantity"] == 2

    # Review is refused until delivery
    response = client.post("/reviews", json={"order_id": order["id"], "rating": 5})
    assert response.status_code == 400

    # --- 3. VENDOR DELIVERS ---
    add_role(db, VENDOR_ID, "vendor")
    current_user["id"] = VENDOR_ID
    response = client.patch(f"/vendor/orders/{order['id']}", json={"status": "delivered"})
    assert response.status_code == 200

    # --- 4. CUSTOMER REVIEWS ---
    current_user["id"] = CUSTOMER_ID
    response = client.post("/reviews", json={"order_id": order["id"], "rating": 5, "comment": "Perfeito"})
    assert response.status_code == 201

    # --- 5. ADMIN REPORT ---
    add_role(db, ADMIN_ID, "admin")
    current_user["id"] = ADMIN_ID
    day = db.get(Order, order["id"]).created_at.date().isoformat()
    response = client.get(f"/admin/financial-report?startDate={day}&endDate={day}")
    assert response.status_code == 200
    report = response.json()
    assert report["num_days"] == 1
    assert report["restaurants"][0]["gross_revenue"] == "60.00"
    assert report["restaurants"][0]["platform_fee"] == "4.80"
    assert report["restaurants"][0]["net_payout"] == "55.20"
    assert report["summary"]["total_orders"] == 1

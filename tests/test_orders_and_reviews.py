from decimal import Decimal

from brazadash.models import Booking, Notification, Order, Restaurant, ServiceProvider

from conftest import CUSTOMER_ID, PROVIDER_USER_ID, VENDOR_ID, add_role


def _order(db, id="order-1", status="pending", customer_id=CUSTOMER_ID, reference=None):
    order = Order(
        id=id,
        customer_id=customer_id,
        restaurant_id="rest-1",
        status=status,
        items=[],
        subtotal=Decimal("20.00"),
        delivery_fee=Decimal("3.99"),
        total=Decimal("25.59"),
        payment_reference=reference or f"pi_{id}",
    )
    db.add(order)
    db.commit()
    return order


def _booking(db, id="booking-1", status="pending"):
    booking = Booking(
        id=id,
        customer_id=CUSTOMER_ID,
        provider_id="prov-1",
        status=status,
        price=Decimal("100.00"),
        booking_fee=Decimal("13.00"),
        total_paid=Decimal("113.00"),
        payment_reference=f"cs_{id}",
        is_paid=True,
    )
    db.add(booking)
    db.commit()
    return booking


def test_cannot_review_undelivered_order(client, db, restaurant):
    _order(db, status="pending")

    response = client.post("/reviews", json={"order_id": "order-1", "rating": 5})

    assert response.status_code == 400
    assert response.json() == {"detail": "Can only review delivered orders"}


def test_order_can_be_reviewed_once(client, db, restaurant):
    _order(db, status="delivered")

    first = client.post("/reviews", json={"order_id": "order-1", "rating": 4, "comment": "Great"})
    second = client.post("/reviews", json={"order_id": "order-1", "rating": 5})

    assert first.status_code == 201
    assert first.json()["rating"] == 4
    assert second.status_code == 400
    assert second.json() == {"detail": "Order already reviewed"}


def test_review_updates_restaurant_rating(client, db, restaurant):
    _order(db, id="order-1", status="delivered")
    _order(db, id="order-2", status="delivered")

    client.post("/reviews", json={"order_id": "order-1", "rating": 5})
    client.post("/reviews", json={"order_id": "order-2", "rating": 4})

    db.expire_all()
    r = db.get(Restaurant, "rest-1")
    assert r.rating == Decimal("4.5")
    assert r.review_count == 2


def test_cannot_review_someone_elses_order(client, db, restaurant):
    _order(db, status="delivered", customer_id="other-customer")

    response = client.post("/reviews", json={"order_id": "order-1", "rating": 5})

    assert response.status_code == 403


def test_rating_out_of_range(client, db, restaurant):
    _order(db, status="delivered")
    response = client.post("/reviews", json={"order_id": "order-1", "rating": 6})
    assert response.status_code == 400
    assert response.json() == {"detail": "Rating must be between 1 and 5"}


def test_service_review_requires_completed_booking(client, db, provider):
    _booking(db, status="confirmed")
    pending = client.post("/services/reviews", json={"booking_id": "booking-1", "rating": 5})
    assert pending.status_code == 400
    assert pending.json() == {"detail": "Can only review completed bookings"}

    db.get(Booking, "booking-1").status = "completed"
    db.commit()

    done = client.post("/services/reviews", json={"booking_id": "booking-1", "rating": 3})
    assert done.status_code == 201

    db.expire_all()
    p = db.get(ServiceProvider, "prov-1")
    assert p.rating == Decimal("3.0")
    assert p.review_count == 1


def test_customer_lists_own_orders(client, db, restaurant):
    _order(db, id="order-1")
    _order(db, id="order-2", customer_id="other-customer")

    response = client.get("/orders")

    assert [o["id"] for o in response.json()] == ["order-1"]


def test_order_detail_hidden_from_other_customers(client, db, restaurant, current_user):
    _order(db)
    current_user["id"] = "other-customer"

    assert client.get("/orders/order-1").status_code == 403
    assert client.get("/orders/missing").status_code == 404


def test_vendor_updates_order_status(client, db, vendor):
    _order(db)

    response = client.patch("/vendor/orders/order-1", json={"status": "out_for_delivery"})

    assert response.status_code == 200
    assert response.json()["status"] == "out_for_delivery"
    notes = db.query(Notification).filter_by(user_id=CUSTOMER_ID).all()
    assert [n.message for n in notes] == ["Your order is out for delivery!"]


def test_vendor_rejects_unknown_status(client, db, vendor):
    _order(db)
    response = client.patch("/vendor/orders/order-1", json={"status": "teleported"})
    assert response.status_code == 400


def test_pending_vendor_cannot_update_orders(client, db, restaurant, current_user):
    add_role(db, VENDOR_ID, "vendor", approval_status="pending")
    current_user["id"] = VENDOR_ID
    _order(db)

    response = client.patch("/vendor/orders/order-1", json={"status": "confirmed"})

    assert response.status_code == 403
    assert response.json() == {"detail": "Your vendor account is pending approval"}


def test_provider_confirms_booking(client, db, provider, current_user):
    add_role(db, PROVIDER_USER_ID, "service_provider")
    current_user["id"] = PROVIDER_USER_ID
    _booking(db)

    response = client.patch("/provider/bookings/booking-1", json={
        "status": "confirmed",
        "confirmed_time": "14:00",
    })

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert response.json()["confirmed_time"] == "14:00"
    assert db.query(Notification).filter_by(user_id=CUSTOMER_ID).count() == 1

    # Provider can also read the booking
    assert client.get("/bookings/booking-1").status_code == 200


def test_notifications_are_listed_per_user(client, db, restaurant):
    _order(db, status="delivered")
    db.add(Notification(user_id=CUSTOMER_ID, title="Hi", message="Welcome", type="system"))
    db.add(Notification(user_id="someone-else", title="Hi", message="Not yours", type="system"))
    db.commit()

    response = client.get("/notifications")

    assert [n["message"] for n in response.json()] == ["Welcome"]

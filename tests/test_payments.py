import json

from prolance.auth.models import User, UserRole
from prolance.contracts.models import AcceptanceMethod, Contract
from prolance.notifications.models import Notification
from prolance.payments.escrow import accept_contract
from prolance.payments.gateway import compute_signature
from prolance.payments.models import EscrowStatus, Payment, PaymentStatus
from prolance.projects.models import Project


def send_webhook(client, gateway, payload, signature=None):
    body = json.dumps(payload).encode("utf-8")
    return client.post(
        "/api/payments/webhook",
        content=body,
        headers={
            "Content-Type": "application/json",
            "x-razorpay-signature": signature or compute_signature(gateway.webhook_secret, body),
        },
    )


def notification_types(db, user_id):
    return [n.type for n in db.query(Notification).filter(Notification.user_id == user_id).all()]


def test_create_escrow_order(client, market):
    deal = market.pending_contract(amount=3000)
    order = market.create_order(deal.owner, deal.project["id"], 3000, deal.contract["id"])

    assert order["key_id"] == "rzp_test_fake"
    assert order["escrow_status"] == "held"
    assert order["order"]["amount"] == 300000
    assert order["order"]["receipt"].startswith(f"prj_{deal.project['id']}_")
    assert order["order"]["notes"]["escrow"] == "true"


def test_create_order_requires_project_client(client, market):
    deal = market.pending_contract()
    response = client.post("/api/payments/create-order", json={
        "project_id": deal.project["id"], "amount": 3000, "contract_id": deal.contract["id"],
    }, headers=deal.freelancer.headers)
    assert response.status_code == 403


def test_direct_order_requires_completed_project(client, market):
    deal = market.pending_contract()
    client.patch(f"/api/contracts/{deal.contract['id']}/status",
                 json={"status": "accepted"}, headers=deal.owner.headers)
    response = client.post("/api/payments/create-order", json={
        "project_id": deal.project["id"], "amount": 3000,
    }, headers=deal.owner.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Project must be completed before payment"


def test_verify_funds_escrow(client, market, db):
    deal = market.pending_contract(amount=3000)
    order = market.create_order(deal.owner, deal.project["id"], 3000, deal.contract["id"])
    response = market.verify(deal.owner, order["order"]["id"])

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Payment verified and held in escrow"
    assert data["escrow"] is True
    assert data["payment"]["status"] == "captured"
    assert data["payment"]["escrow_status"] == "held"
    assert data["payment"]["verified"] is True
    assert data["payment"]["payment_method"] == "upi"

    contract = db.get(Contract, deal.contract["id"])
    assert contract.status.value == "accepted"
    assert contract.acceptance_method.value == "escrow_funded"
    assert contract.escrow_funded is True
    assert contract.escrow_payment_id == order["payment_id"]

    project = db.get(Project, deal.project["id"])
    assert project.status.value == "in-progress"
    assert project.assigned_freelancer_id == deal.freelancer.id

    assert "escrow_funded" in notification_types(db, deal.freelancer.id)
    assert "escrow_payment_held" in notification_types(db, deal.owner.id)


def test_signature_mismatch_marks_payment_failed(client, market, db):
    deal = market.pending_contract()
    order = market.create_order(deal.owner, deal.project["id"], 3000, deal.contract["id"])
    response = market.verify(deal.owner, order["order"]["id"], signature="0" * 64)

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "message": "Payment verification failed",
        "error": "Invalid payment signature",
    }
    payment = db.get(Payment, order["payment_id"])
    assert payment.status.value == "failed"
    assert payment.verified is False
    assert db.get(Contract, deal.contract["id"]).status.value == "pending"


def test_failed_gateway_payment_does_not_accept_contract(client, market, gateway, db):
    deal = market.pending_contract()
    order = market.create_order(deal.owner, deal.project["id"], 3000, deal.contract["id"])
    gateway.payments["pay_declined"] = {
        "id": "pay_declined", "status": "failed", "method": "card", "error_description": "Card declined",
    }
    response = market.verify(deal.owner, order["order"]["id"], payment_id="pay_declined")

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot accept contract - payment has failed"
    assert response.json()["error"] == "Card declined"
    assert db.get(Payment, order["payment_id"]).status.value == "failed"
    assert db.get(Contract, deal.contract["id"]).status.value == "pending"


def test_verify_unknown_order(client, market):
    owner = market.user(UserRole.CLIENT)
    response = market.verify(owner, "order_missing")
    assert response.status_code == 404


def test_release_before_completion_changes_nothing(client, market, db):
    deal = market.pending_contract()
    order = market.fund_escrow(deal)

    response = client.post(f"/api/payments/release-escrow/{order['payment_id']}", headers=deal.owner.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Project must be in completed status before releasing payment"
    assert response.json()["error"] == "Project status is in-progress"

    assert db.get(Payment, order["payment_id"]).escrow_status.value == "held"
    assert db.get(Project, deal.project["id"]).status.value == "in-progress"
    assert db.get(User, deal.freelancer.id).total_earnings == 0


def test_full_escrow_flow(client, market, db):
    deal = market.pending_contract(amount=3000)
    order = market.fund_escrow(deal)
    market.finish_work(deal.freelancer, deal.project["id"])

    response = client.post(f"/api/payments/release-escrow/{order['payment_id']}", headers=deal.freelancer.headers)
    assert response.status_code == 403

    response = client.post(f"/api/payments/release-escrow/{order['payment_id']}", headers=deal.owner.headers)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Escrow payment released successfully"
    assert body["payment"]["escrow_status"] == "released"
    assert body["payment"]["released_by"] == deal.owner.id

    assert db.get(Project, deal.project["id"]).status.value == "closed"
    freelancer = db.get(User, deal.freelancer.id)
    owner = db.get(User, deal.owner.id)
    assert freelancer.total_earnings == 3000
    assert freelancer.completed_projects == 1
    assert owner.total_spent == 3000
    assert owner.completed_projects == 1
    assert "escrow_released" in notification_types(db, deal.freelancer.id)
    assert "project_closed" in notification_types(db, deal.owner.id)

    response = client.post(f"/api/payments/release-escrow/{order['payment_id']}", headers=deal.owner.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Payment is not in escrow status"
    db.expire_all()
    assert db.get(User, deal.freelancer.id).total_earnings == 3000


def test_direct_payment_closes_project(client, market, db):
    deal = market.pending_contract(amount=2500)
    client.patch(f"/api/contracts/{deal.contract['id']}/status",
                 json={"status": "accepted"}, headers=deal.owner.headers)
    market.finish_work(deal.freelancer, deal.project["id"])

    order = market.create_order(deal.owner, deal.project["id"], 2500)
    assert order["escrow_status"] == "released"
    response = market.verify(deal.owner, order["order"]["id"])

    assert response.status_code == 200
    assert response.json()["message"] == "Payment verified successfully"
    assert response.json()["escrow"] is False
    assert db.get(Project, deal.project["id"]).status.value == "closed"
    assert db.get(User, deal.freelancer.id).total_earnings == 2500
    assert db.get(User, deal.owner.id).total_spent == 2500
    assert "payment_received" in notification_types(db, deal.freelancer.id)

    response = market.verify(deal.owner, order["order"]["id"])
    assert response.status_code == 200
    db.expire_all()
    assert db.get(User, deal.freelancer.id).total_earnings == 2500


def test_webhook_rejects_bad_signature(client, gateway):
    response = send_webhook(client, gateway, {"event": "payment.captured"}, signature="bogus")
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid webhook signature"


def test_webhook_for_unknown_payment(client, gateway):
    response = send_webhook(client, gateway, {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": "pay_x", "order_id": "order_x"}}},
    })
    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_webhook_capture_then_verify_accepts_once(client, market, gateway, db):
    deal = market.pending_contract()
    order = market.create_order(deal.owner, deal.project["id"], 3000, deal.contract["id"])
    order_id = order["order"]["id"]

    response = send_webhook(client, gateway, {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": "pay_hook", "order_id": order_id, "method": "card"}}},
    })
    assert response.status_code == 200

    payment = db.get(Payment, order["payment_id"])
    assert payment.status.value == "captured"
    assert payment.verified is True
    assert payment.gateway_payment_id == "pay_hook"
    assert payment.webhook_data["event"] == "payment.captured"
    assert db.get(Contract, deal.contract["id"]).acceptance_method.value == "escrow_funded"

    response = market.verify(deal.owner, order_id, payment_id="pay_hook")
    assert response.status_code == 200
    assert response.json()["message"] == "Payment verified and held in escrow"
    assert notification_types(db, deal.freelancer.id).count("escrow_funded") == 1


def test_webhook_payment_failed(client, market, gateway, db):
    deal = market.pending_contract()
    order = market.create_order(deal.owner, deal.project["id"], 3000, deal.contract["id"])
    send_webhook(client, gateway, {
        "event": "payment.failed",
        "payload": {"payment": {"entity": {
            "id": "pay_f", "order_id": order["order"]["id"],
            "error_code": "BAD_REQUEST_ERROR", "error_description": "Payment declined by bank",
        }}},
    })
    payment = db.get(Payment, order["payment_id"])
    assert payment.status.value == "failed"
    assert payment.error_code == "BAD_REQUEST_ERROR"
    assert payment.error_description == "Payment declined by bank"


def test_refund_blocks_release_but_keeps_escrow_status(client, market, gateway, db):
    deal = market.pending_contract()
    order = market.fund_escrow(deal, payment_id="pay_refund")
    market.finish_work(deal.freelancer, deal.project["id"])

    response = send_webhook(client, gateway, {
        "event": "refund.created",
        "payload": {"refund": {"entity": {"id": "rfnd_1", "payment_id": "pay_refund"}}},
    })
    assert response.status_code == 200

    payment = db.get(Payment, order["payment_id"])
    assert payment.status.value == "refunded"
    assert payment.refunded_at is not None
    assert payment.escrow_status.value == "held"

    response = client.post(f"/api/payments/release-escrow/{order['payment_id']}", headers=deal.owner.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot release escrow - payment has been refunded"


def test_payment_history_and_project_lookup(client, market):
    deal = market.pending_contract()
    order = market.fund_escrow(deal)

    response = client.get("/api/payments/history", params={"role": "client"}, headers=deal.owner.headers)
    data = response.json()
    assert data["pagination"]["total"] == 1
    assert data["payments"][0]["id"] == order["payment_id"]

    response = client.get("/api/payments/history", params={"role": "client"}, headers=deal.freelancer.headers)
    assert response.json()["payments"] == []

    response = client.get(f"/api/payments/project/{deal.project['id']}", headers=deal.freelancer.headers)
    assert response.status_code == 200
    assert response.json()["id"] == order["payment_id"]

    outsider = market.user(UserRole.CLIENT)
    response = client.get(f"/api/payments/project/{deal.project['id']}", headers=outsider.headers)
    assert response.status_code == 403


def test_direct_accept_blocked_while_escrow_order_open(client, market, db):
    deal = market.pending_contract(amount=3000)
    order = market.create_order(deal.owner, deal.project["id"], 3000, deal.contract["id"])

    response = client.patch(f"/api/contracts/{deal.contract['id']}/status",
                            json={"status": "accepted"}, headers=deal.owner.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Contract has an escrow payment in progress"
    assert db.get(Contract, deal.contract["id"]).status.value == "pending"

    response = market.verify(deal.owner, order["order"]["id"])
    assert response.status_code == 200
    db.expire_all()
    contract = db.get(Contract, deal.contract["id"])
    assert contract.acceptance_method.value == "escrow_funded"
    assert contract.escrow_funded is True


def test_direct_accept_allowed_after_failed_escrow_order(client, market, db):
    deal = market.pending_contract()
    order = market.create_order(deal.owner, deal.project["id"], 3000, deal.contract["id"])
    market.verify(deal.owner, order["order"]["id"], signature="0" * 64)

    response = client.patch(f"/api/contracts/{deal.contract['id']}/status",
                            json={"status": "accepted"}, headers=deal.owner.headers)
    assert response.status_code == 200
    assert response.json()["acceptance_method"] == "direct"


def test_escrow_funding_recorded_on_already_accepted_contract(client, market, db):
    deal = market.pending_contract(amount=3000)
    client.patch(f"/api/contracts/{deal.contract['id']}/status",
                 json={"status": "accepted"}, headers=deal.owner.headers)
    contract = db.get(Contract, deal.contract["id"])
    payment = Payment(
        gateway_order_id="order_late", amount=3000, currency="INR",
        status=PaymentStatus.CAPTURED, escrow_status=EscrowStatus.HELD, verified=True,
        project_id=deal.project["id"], client_id=deal.owner.id, freelancer_id=deal.freelancer.id,
        contract_id=contract.id, notes={},
    )
    db.add(payment)
    db.flush()

    events = accept_contract(db, contract, AcceptanceMethod.ESCROW_FUNDED, payment)
    assert [event.type for event in events] == ["escrow.funded"]
    assert events[0].data["payment_id"] == payment.id
    assert contract.escrow_funded is True
    assert contract.escrow_payment_id == payment.id
    assert contract.escrow_funded_at is not None
    assert contract.acceptance_method.value == "direct"

    assert accept_contract(db, contract, AcceptanceMethod.ESCROW_FUNDED, payment) == []
    db.rollback()


def test_release_rejects_uncaptured_payment(client, market, gateway, db):
    deal = market.pending_contract(amount=3000)
    gateway.payments["pay_auth"] = {"id": "pay_auth", "status": "authorized", "method": "card"}
    order = market.create_order(deal.owner, deal.project["id"], 3000, deal.contract["id"])
    assert market.verify(deal.owner, order["order"]["id"], payment_id="pay_auth").status_code == 200
    market.finish_work(deal.freelancer, deal.project["id"])

    response = client.post(f"/api/payments/release-escrow/{order['payment_id']}", headers=deal.owner.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot release escrow - payment not captured"

    payment = db.get(Payment, order["payment_id"])
    assert payment.status.value == "authorized"
    assert payment.escrow_status.value == "held"
    assert payment.released_at is None
    assert db.get(Project, deal.project["id"]).status.value == "completed"
    assert db.get(User, deal.freelancer.id).total_earnings == 0
    assert db.get(User, deal.owner.id).total_spent == 0


def test_release_rejects_unverified_payment(client, market, db):
    deal = market.pending_contract(amount=3000)
    order = market.fund_escrow(deal)
    market.finish_work(deal.freelancer, deal.project["id"])
    db.query(Payment).filter(Payment.id == order["payment_id"]).update({"verified": False})
    db.commit()

    response = client.post(f"/api/payments/release-escrow/{order['payment_id']}", headers=deal.owner.headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot release escrow - payment not verified"

    db.expire_all()
    payment = db.get(Payment, order["payment_id"])
    assert payment.status.value == "captured"
    assert payment.escrow_status.value == "held"
    assert payment.verified is False
    assert db.get(Project, deal.project["id"]).status.value == "completed"
    assert db.get(User, deal.freelancer.id).total_earnings == 0
    assert db.get(User, deal.owner.id).total_spent == 0


def test_bad_signature_replay_keeps_verified_payment(client, market, db):
    deal = market.pending_contract(amount=3000)
    order = market.fund_escrow(deal)
    market.finish_work(deal.freelancer, deal.project["id"])

    response = market.verify(deal.owner, order["order"]["id"], signature="deadbeef")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid payment signature"
    payment = db.get(Payment, order["payment_id"])
    assert payment.status.value == "captured"
    assert payment.verified is True

    response = client.post(f"/api/payments/release-escrow/{order['payment_id']}", headers=deal.owner.headers)
    assert response.status_code == 200
    assert response.json()["payment"]["escrow_status"] == "released"

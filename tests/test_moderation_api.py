# tests/test_moderation_api.py
from cepetdeal.models import Report, Review, ReviewStatus


def test_report_listing_and_admin_resolves(client, auth, db, admin, seller, buyer, make_listing):
    listing = make_listing(seller)
    res = client.post("/reports", json={
        "reportable_type": "listing", "reportable_id": listing.id, "reason": "scam",
        "description": "Minta transfer DP dulu",
    }, headers=auth(buyer))
    assert res.status_code == 201
    report = res.json()
    assert report["status"] == "PENDING"
    assert report["reportable_type"] == "LISTING"
    assert report["reason"] == "SCAM"

    again = client.post("/reports", json={
        "reportable_type": "LISTING", "reportable_id": listing.id, "reason": "FRAUD",
    }, headers=auth(buyer))
    assert again.status_code == 409
    assert again.json()["code"] == "DUPLICATE_REPORT"

    assert client.get("/admin/stats", headers=auth(admin)).json()["pending_reports"] == 1
    queue = client.get("/admin/reports?status=pending", headers=auth(admin)).json()
    assert [r["id"] for r in queue["items"]] == [report["id"]]
    assert client.get("/admin/reports", headers=auth(buyer)).status_code == 403

    res = client.put(f"/admin/reports/{report['id']}", json={"status": "RESOLVED", "notes": "Iklan diturunkan"},
                     headers=auth(admin))
    assert res.status_code == 200
    assert res.json()["status"] == "RESOLVED"
    assert res.json()["reviewed_by"] == admin.id
    assert res.json()["reviewed_at"] is not None

    # once closed, the same item can be reported again
    res = client.post("/reports", json={
        "reportable_type": "LISTING", "reportable_id": listing.id, "reason": "SPAM",
    }, headers=auth(buyer))
    assert res.status_code == 201

    mine = client.get("/reports?status=resolved", headers=auth(buyer)).json()
    assert [r["id"] for r in mine] == [report["id"]]


def test_reviewing_status_keeps_report_open(client, auth, admin, seller, buyer):
    report = client.post("/reports", json={
        "reportable_type": "USER", "reportable_id": seller.id, "reason": "OTHER",
    }, headers=auth(buyer)).json()
    res = client.put(f"/admin/reports/{report['id']}", json={"status": "REVIEWING"}, headers=auth(admin))
    assert res.json()["reviewed_by"] is None
    again = client.post("/reports", json={
        "reportable_type": "USER", "reportable_id": seller.id, "reason": "SPAM",
    }, headers=auth(buyer))
    assert again.status_code == 409


def test_report_validation(client, auth, buyer):
    res = client.post("/reports", json={"reportable_type": "LISTING", "reason": "SPAM"}, headers=auth(buyer))
    assert res.status_code == 400
    assert res.json()["field"] == "reportable_id"
    res = client.post("/reports", json={"reportable_type": "COMMENT", "reportable_id": 1, "reason": "SPAM"},
                      headers=auth(buyer))
    assert res.status_code == 400
    assert res.json()["field"] == "reportable_type"
    res = client.post("/reports", json={"reportable_type": "USER", "reportable_id": 1, "reason": "BORING"},
                      headers=auth(buyer))
    assert res.json()["field"] == "reason"
    res = client.post("/reports", json={"reportable_type": "LISTING", "reportable_id": 9999, "reason": "SPAM"},
                      headers=auth(buyer))
    assert res.status_code == 404
    assert client.post("/reports", json={}).status_code == 401


def test_admin_deletes_report(client, auth, db, admin, seller, buyer):
    report = client.post("/reports", json={
        "reportable_type": "USER", "reportable_id": seller.id, "reason": "FRAUD",
    }, headers=auth(buyer)).json()
    assert client.delete(f"/admin/reports/{report['id']}", headers=auth(admin)).status_code == 200
    assert db.query(Report).count() == 0
    assert client.delete(f"/admin/reports/{report['id']}", headers=auth(admin)).status_code == 404
    res = client.put("/admin/reports/9999", json={"status": "DISMISSED"}, headers=auth(admin))
    assert res.status_code == 404


def test_review_needs_approval_before_it_is_public(client, auth, admin, seller, buyer, make_listing):
    listing = make_listing(seller)
    res = client.post("/reviews", json={
        "seller_id": seller.id, "listing_id": listing.id, "rating": 4,
        "title": "Penjual jujur", "content": "Mobil sesuai deskripsi",
    }, headers=auth(buyer))
    assert res.status_code == 201
    review = res.json()
    assert review["status"] == "PENDING"
    assert client.get(f"/reviews?seller_id={seller.id}").json()["total"] == 0
    assert client.get("/admin/stats", headers=auth(admin)).json()["pending_reviews"] == 1

    res = client.put(f"/admin/reviews/{review['id']}", json={"status": "approved", "response": "Terima kasih"},
                     headers=auth(admin))
    assert res.status_code == 200
    assert res.json()["status"] == "APPROVED"
    assert res.json()["response"] == "Terima kasih"

    public = client.get(f"/reviews?seller_id={seller.id}").json()
    assert public["total"] == 1
    assert public["average_rating"] == 4.0
    assert [r["id"] for r in public["items"]] == [review["id"]]
    assert client.get(f"/reviews?listing_id={listing.id}").json()["total"] == 1


def test_review_rules(client, auth, seller, buyer, make_listing):
    other_listing = make_listing(buyer)
    body = {"seller_id": seller.id, "rating": 5, "content": "Mantap"}

    assert client.post("/reviews", json={**body, "rating": 0}, headers=auth(buyer)).json()["field"] == "rating"
    assert client.post("/reviews", json={**body, "content": " "}, headers=auth(buyer)).json()["field"] == "content"
    res = client.post("/reviews", json={**body, "seller_id": buyer.id}, headers=auth(buyer))
    assert res.status_code == 400
    assert res.json()["error"] == "Cannot review yourself"
    assert client.post("/reviews", json={**body, "seller_id": 9999}, headers=auth(buyer)).status_code == 404
    res = client.post("/reviews", json={**body, "listing_id": other_listing.id}, headers=auth(buyer))
    assert res.status_code == 400
    assert res.json()["field"] == "listing_id"

    assert client.post("/reviews", json=body, headers=auth(buyer)).status_code == 201
    res = client.post("/reviews", json=body, headers=auth(buyer))
    assert res.status_code == 409
    assert res.json()["code"] == "DUPLICATE_REVIEW"


def test_admin_hides_review(client, auth, db, admin, seller, buyer):
    review = client.post("/reviews", json={"seller_id": seller.id, "rating": 2, "content": "Lambat"},
                         headers=auth(buyer)).json()
    client.put(f"/admin/reviews/{review['id']}", json={"status": "APPROVED"}, headers=auth(admin))

    res = client.delete(f"/admin/reviews/{review['id']}", headers=auth(admin))
    assert res.status_code == 200
    assert res.json()["status"] == "HIDDEN"
    db.expire_all()
    assert db.get(Review, review["id"]).status == ReviewStatus.HIDDEN
    assert client.get(f"/reviews?seller_id={seller.id}").json()["total"] == 0

    hidden = client.get("/admin/reviews?status=hidden", headers=auth(admin)).json()
    assert [r["id"] for r in hidden["items"]] == [review["id"]]
    res = client.put(f"/admin/reviews/{review['id']}", json={"status": "LOST"}, headers=auth(admin))
    assert res.status_code == 400
    assert client.put(f"/admin/reviews/{review['id']}", json={}, headers=auth(admin)).status_code == 400

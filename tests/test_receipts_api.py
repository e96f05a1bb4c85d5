# tests/test_receipts_api.py
from datetime import timedelta
import pytest
from bs4 import BeautifulSoup
from cepetdeal import crud
from cepetdeal.models import Listing, ListingStatus, Receipt, Role
from cepetdeal.utils import utcnow


@pytest.fixture
def dealer(make_user, dealer_profile):
    user = make_user(Role.DEALER, name="Budi Dealer", finance_enabled=True)
    dealer_profile(user)
    return user


def _sale(listing, **overrides):
    body = {
        "listingId": listing.id,
        "paymentMethod": "CREDIT",
        "downPayment": 100_000_000,
        "tandaJadi": 5_000_000,
        "buyerName": "Siti Rahma",
        "buyerAddress": "Jl. Melati 5, Bandung",
    }
    body.update(overrides)
    return body


def test_credit_sale_marks_listing_sold(client, auth, db, dealer, make_listing):
    listing = make_listing(dealer)
    res = client.post("/receipts", json=_sale(listing), headers=auth(dealer))
    assert res.status_code == 200
    body = res.json()
    assert body["receipt_number"] == f"RCP{utcnow():%Y%m%d}0001"
    assert body["payment_method"] == "CREDIT"
    assert body["total_price"] == 300_000_000
    assert body["total_paid"] == 105_000_000
    assert body["remaining_payment"] == 195_000_000
    assert body["listing_status"] == "SOLD"

    db.expire_all()
    assert db.get(Listing, listing.id).status == ListingStatus.SOLD


def test_receipt_numbers_increase_within_a_day(client, auth, dealer, make_listing):
    first = make_listing(dealer)
    second = make_listing(dealer)
    a = client.post("/receipts", json=_sale(first), headers=auth(dealer)).json()
    b = client.post("/receipts", json=_sale(second, paymentMethod="CASH"), headers=auth(dealer)).json()
    assert a["receipt_number"].endswith("0001")
    assert b["receipt_number"].endswith("0002")
    assert b["down_payment"] == 0
    assert b["remaining_payment"] == 295_000_000


def test_receipt_can_leave_listing_active(client, auth, db, dealer, make_listing):
    listing = make_listing(dealer)
    res = client.post("/receipts", json=_sale(listing, markAsSold=False), headers=auth(dealer))
    assert res.status_code == 200
    assert res.json()["listing_status"] == "ACTIVE"


def test_sale_of_inactive_listing_is_refused(client, auth, db, dealer, make_listing):
    listing = make_listing(dealer, status=ListingStatus.PENDING)
    res = client.post("/receipts", json=_sale(listing), headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["code"] == "LISTING_NOT_ACTIVE"
    assert db.query(Receipt).count() == 0


def test_receipt_rolled_back_when_listing_sold_concurrently(client, auth, db, dealer, make_listing, monkeypatch):
    listing = make_listing(dealer)
    # another request wins the race between the status check and the update
    monkeypatch.setattr(crud, "set_listing_status", lambda *args, **kwargs: 0)

    res = client.post("/receipts", json=_sale(listing), headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["code"] == "LISTING_NOT_ACTIVE"

    db.expire_all()
    assert db.query(Receipt).count() == 0
    assert db.get(Listing, listing.id).status == ListingStatus.ACTIVE


def test_invalid_amounts_are_rejected(client, auth, db, dealer, make_listing):
    listing = make_listing(dealer)
    res = client.post("/receipts", json=_sale(listing, downPayment=300_000_000), headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["field"] == "down_payment"

    res = client.post("/receipts", json=_sale(listing, downPayment=None), headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["error"] == "Down payment is required for credit payment"

    res = client.post("/receipts", json=_sale(listing, tandaJadi=250_000_000), headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["field"] == "tanda_jadi"

    res = client.post("/receipts", json=_sale(listing, buyerName=" "), headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["field"] == "buyer_name"

    db.expire_all()
    assert db.get(Listing, listing.id).status == ListingStatus.ACTIVE
    assert db.query(Receipt).count() == 0


def test_finance_feature_must_be_enabled(client, auth, seller, make_listing):
    listing = make_listing(seller)
    res = client.post("/receipts", json=_sale(listing), headers=auth(seller))
    assert res.status_code == 403
    assert "keuangan" in res.json()["error"]


def test_only_owner_records_sale(client, auth, dealer, make_user, make_listing):
    other = make_user(Role.DEALER, finance_enabled=True)
    listing = make_listing(other)
    assert client.post("/receipts", json=_sale(listing), headers=auth(dealer)).status_code == 403
    assert client.post("/receipts", json=_sale(listing, listingId=9999), headers=auth(dealer)).status_code == 404


def test_printable_receipt(client, auth, dealer, make_listing):
    listing = make_listing(dealer, color="Putih")
    receipt = client.post("/receipts", json=_sale(listing), headers=auth(dealer)).json()

    res = client.get(f"/receipts/{receipt['id']}/pdf", headers=auth(dealer))
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/html")
    assert f"kwitansi-{receipt['receipt_number']}" in res.headers["content-disposition"]

    soup = BeautifulSoup(res.text, "html.parser")
    assert receipt["receipt_number"] in soup.find(id="receipt-number").get_text()
    assert soup.find(id="dealer-name").get_text(strip=True) == "Auto Prima Motor"
    assert soup.find(id="vehicle").get_text(strip=True) == "Toyota Avanza"
    assert soup.find(id="payment-method").get_text(strip=True) == "Kredit"
    assert soup.find(id="tanda-jadi").get_text(strip=True) == "Rp 5.000.000"
    assert soup.find(id="down-payment").get_text(strip=True) == "Rp 100.000.000"
    assert soup.find(id="total-paid").get_text(strip=True) == "Rp 105.000.000"
    assert soup.find(id="remaining").get_text(strip=True) == "Rp 195.000.000"
    assert soup.find(id="total-price").get_text(strip=True) == "Rp 300.000.000"
    assert "window.print()" in res.text


def test_cash_receipt_without_deposit_hides_breakdown(client, auth, dealer, make_listing):
    listing = make_listing(dealer)
    receipt = client.post(
        "/receipts", json=_sale(listing, paymentMethod="CASH", tandaJadi=None), headers=auth(dealer)
    ).json()
    soup = BeautifulSoup(client.get(f"/receipts/{receipt['id']}/pdf", headers=auth(dealer)).text, "html.parser")
    assert soup.find(id="payment-method").get_text(strip=True) == "Tunai"
    assert soup.find(id="remaining") is None
    assert soup.find(id="down-payment") is None


def test_buyer_details_are_escaped(client, auth, dealer, make_listing):
    listing = make_listing(dealer)
    receipt = client.post(
        "/receipts", json=_sale(listing, buyerName="<script>alert(1)</script>"), headers=auth(dealer)
    ).json()
    html = client.get(f"/receipts/{receipt['id']}/pdf", headers=auth(dealer)).text
    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html


def test_list_get_and_delete(client, auth, dealer, buyer, make_listing):
    first = make_listing(dealer)
    second = make_listing(dealer)
    r1 = client.post("/receipts", json=_sale(first), headers=auth(dealer)).json()
    client.post("/receipts", json=_sale(second), headers=auth(dealer))

    rows = client.get("/receipts", headers=auth(dealer)).json()
    assert len(rows) == 2
    rows = client.get(f"/receipts?listing_id={first.id}", headers=auth(dealer)).json()
    assert [r["id"] for r in rows] == [r1["id"]]
    assert rows[0]["listing"]["slug"] == first.slug

    assert client.get(f"/receipts/{r1['id']}", headers=auth(buyer)).status_code == 403
    assert client.get(f"/receipts/{r1['id']}/pdf", headers=auth(buyer)).status_code == 403
    assert client.get("/receipts/9999", headers=auth(dealer)).status_code == 404

    assert client.delete(f"/receipts/{r1['id']}", headers=auth(dealer)).status_code == 200
    assert len(client.get("/receipts", headers=auth(dealer)).json()) == 1


def test_bulk_delete_only_touches_own_receipts(client, auth, db, dealer, make_user, make_listing):
    other = make_user(Role.DEALER, finance_enabled=True)
    mine = [client.post("/receipts", json=_sale(make_listing(dealer)), headers=auth(dealer)).json()["id"]
            for _ in range(2)]
    theirs = client.post("/receipts", json=_sale(make_listing(other)), headers=auth(other)).json()["id"]

    res = client.post("/receipts/bulk-delete", json={"ids": mine + [theirs]}, headers=auth(dealer))
    assert res.status_code == 200
    assert res.json()["deleted_count"] == 2
    assert db.query(Receipt).count() == 1

    res = client.post("/receipts/bulk-delete", json={"ids": []}, headers=auth(dealer))
    assert res.status_code == 400


def test_deleted_receipt_number_is_not_issued_again(client, auth, dealer, make_listing):
    first = client.post("/receipts", json=_sale(make_listing(dealer)), headers=auth(dealer)).json()
    second = client.post("/receipts", json=_sale(make_listing(dealer)), headers=auth(dealer)).json()
    assert client.delete(f"/receipts/{second['id']}", headers=auth(dealer)).status_code == 200

    third = client.post("/receipts", json=_sale(make_listing(dealer)), headers=auth(dealer)).json()
    assert third["receipt_number"].endswith("0003")
    assert third["receipt_number"] not in (first["receipt_number"], second["receipt_number"])


def test_receipt_needs_active_listing_even_when_not_marking_sold(client, auth, db, dealer, make_listing):
    sold = make_listing(dealer, status=ListingStatus.SOLD)
    res = client.post("/receipts", json=_sale(sold, markAsSold=False), headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["code"] == "LISTING_NOT_ACTIVE"

    pending = make_listing(dealer, status=ListingStatus.PENDING)
    res = client.post("/receipts", json=_sale(pending, markAsSold=False), headers=auth(dealer))
    assert res.status_code == 400
    assert db.query(Receipt).count() == 0


def test_receipts_survive_listing_removal(client, auth, db, dealer, admin, make_listing):
    listing = make_listing(dealer, color="Putih")
    slug = listing.slug
    receipt = client.post("/receipts", json=_sale(listing), headers=auth(dealer)).json()
    assert receipt["vehicle"]["color"] == "Putih"

    assert client.delete(f"/listings/{slug}", headers=auth(admin)).status_code == 200
    db.expire_all()
    assert crud.get_listing_by_slug(db, slug) is None
    kept = db.get(Receipt, receipt["id"])
    assert kept.listing_id is None
    assert kept.receipt_number == receipt["receipt_number"]

    body = client.get(f"/receipts/{receipt['id']}", headers=auth(dealer)).json()
    assert body["listing"] is None
    assert body["remaining_payment"] == 195_000_000

    soup = BeautifulSoup(client.get(f"/receipts/{receipt['id']}/pdf", headers=auth(dealer)).text, "html.parser")
    assert soup.find(id="vehicle").get_text(strip=True) == "Toyota Avanza"
    assert soup.find(id="dealer-name").get_text(strip=True) == "Auto Prima Motor"

# finance dashboard

def _backdate(db, receipt_id, days):
    db.query(Receipt).filter(Receipt.id == receipt_id).update(
        {Receipt.created_at: utcnow() - timedelta(days=days)}, synchronize_session=False
    )
    db.commit()


def test_finance_stats_for_range(client, auth, db, dealer, make_listing):
    client.post("/receipts", json=_sale(make_listing(dealer)), headers=auth(dealer))
    client.post("/receipts", json=_sale(make_listing(dealer, price=200_000_000), paymentMethod="CASH",
                                        tandaJadi=None), headers=auth(dealer))
    old = client.post("/receipts", json=_sale(make_listing(dealer, price=100_000_000), downPayment=50_000_000),
                      headers=auth(dealer)).json()
    _backdate(db, old["id"], 40)

    res = client.get("/dashboard/finance/stats", headers=auth(dealer))
    assert res.status_code == 200
    body = res.json()
    assert body["range"] == "30d"
    stats = body["stats"]
    assert stats["total_revenue"] == 500_000_000
    assert stats["total_sales"] == 2
    assert stats["average_sale_value"] == 250_000_000
    assert stats["total_profit"] == 75_000_000
    assert stats["profit_margin"] == 15
    assert stats["cash_sales"] == 1
    assert stats["credit_sales"] == 1
    assert stats["total_collected"] == 105_000_000
    assert stats["total_pending"] == 395_000_000
    assert stats["collection_rate"] == 21.0

    # the backdated sale falls in the previous 30 days
    comparison = body["comparison"]
    assert comparison["revenue_change"] == 400.0
    assert comparison["sales_change"] == 100.0

    everything = client.get("/dashboard/finance/stats?range=all", headers=auth(dealer)).json()
    assert everything["stats"]["total_sales"] == 3
    assert everything["start"] is None
    assert everything["comparison"]["revenue_change"] == 0.0


def test_finance_stats_custom_range(client, auth, db, dealer, make_listing):
    receipt = client.post("/receipts", json=_sale(make_listing(dealer)), headers=auth(dealer)).json()
    _backdate(db, receipt["id"], 10)
    day = (utcnow() - timedelta(days=10)).date()

    res = client.get(f"/dashboard/finance/stats?range=custom&start_date={day}&end_date={day}", headers=auth(dealer))
    assert res.json()["stats"]["total_sales"] == 1
    res = client.get("/dashboard/finance/stats?range=7d", headers=auth(dealer))
    assert res.json()["stats"]["total_sales"] == 0

    res = client.get(f"/dashboard/finance/stats?range=custom&start_date={day}", headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["field"] == "end_date"
    res = client.get("/dashboard/finance/stats?range=12h", headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["field"] == "range"


def test_finance_transactions_paginate_and_sort(client, auth, dealer, make_user, make_listing):
    for price in (150_000_000, 300_000_000, 250_000_000):
        client.post("/receipts", json=_sale(make_listing(dealer, price=price)), headers=auth(dealer))
    other = make_user(Role.DEALER, finance_enabled=True)
    client.post("/receipts", json=_sale(make_listing(other)), headers=auth(other))

    res = client.get("/dashboard/finance/transactions?limit=2&sort_by=total_price&sort_order=asc",
                     headers=auth(dealer))
    assert res.status_code == 200
    body = res.json()
    assert body["pagination"] == {"total": 3, "page": 1, "limit": 2, "total_pages": 2}
    rows = body["transactions"]
    assert [r["total_price"] for r in rows] == [150_000_000, 250_000_000]
    assert rows[0]["vehicle"] == "Toyota Avanza 2019"
    assert rows[0]["buyer"] == "Siti Rahma"
    assert rows[0]["collected"] == 105_000_000
    assert rows[0]["remaining_payment"] == 45_000_000

    page2 = client.get("/dashboard/finance/transactions?limit=2&page=2&sort_by=total_price&sort_order=asc",
                       headers=auth(dealer)).json()
    assert [r["total_price"] for r in page2["transactions"]] == [300_000_000]

    res = client.get("/dashboard/finance/transactions?sort_by=buyer", headers=auth(dealer))
    assert res.status_code == 400
    assert res.json()["field"] == "sort_by"


def test_finance_dashboard_needs_finance_feature(client, auth, seller):
    for path in ("/dashboard/finance/stats", "/dashboard/finance/transactions"):
        res = client.get(path, headers=auth(seller))
        assert res.status_code == 403
        assert "keuangan" in res.json()["error"]
    assert client.get("/dashboard/finance/stats").status_code == 401

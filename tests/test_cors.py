def test_preflight_allows_browser_clients(client):
    resp = client.options("/api/v1/payments/create-razorpay-order")

    assert resp.status_code == 200
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert resp.headers["Access-Control-Allow-Headers"] == "authorization, x-client-info, apikey, content-type"
    assert "POST" in resp.headers["Access-Control-Allow-Methods"]


def test_error_responses_carry_cors_headers(client):
    resp = client.post("/api/v1/payments/create-razorpay-order", json={})

    assert resp.status_code == 400
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/v1/nope")

    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "error": "Not found"}
    assert resp.headers["Access-Control-Allow-Origin"] == "*"

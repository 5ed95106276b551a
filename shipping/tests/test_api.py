def test_counties(http):
    data = http.get("/shipping/counties").json()
    assert len(data) == 42
    assert {"code": "B", "name": "Bucuresti"} in data


def test_localities_with_search(http):
    assert http.get("/shipping/localities?county=BV").json() == ["Apața", "Ârcuș", "Brașov", "Zărnești"]
    assert http.get("/shipping/localities?county=Brasov&search=zarn").json() == ["Zărnești"]


def test_communes(http):
    assert http.get("/shipping/communes?county=CJ&locality=Sat%20Nou").json() == ["Aghiresu", "Mociu"]


def test_lockers(http):
    capital = http.get("/shipping/lockers?county=B&locality=Bucuresti").json()
    assert [lk["id"] for lk in capital] == ["1001", "1002"]

    cluj = http.get("/shipping/lockers?county=CJ&locality=Floresti").json()
    assert cluj[0]["postal_code"] == "407280"
    assert cluj[0]["box_capacity"] == 30


def test_unknown_county(http):
    assert http.get("/shipping/localities?county=Atlantis").status_code == 400

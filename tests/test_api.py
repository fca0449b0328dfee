import pytest
from fastapi.testclient import TestClient

from feedsync.api.main import app, get_engine, get_trigger
from feedsync.db.catalog import CatalogStore
from feedsync.db.jobs import BATCH, JobStore
from feedsync.ingest.models import Coordinate, RemoteRecord, Zone
from feedsync.jobs.trigger import ImportTrigger
from feedsync.logic.profiles import ListingProfile
from feedsync.logic.reconcile import CatalogReconciler, RunResult, cursor_key
from feedsync.settings import CRON_MODE_KEY, CRON_SECRET_KEY, EXTERNAL, TIMER

from conftest import StaticFeed


class RunSpy:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return [RunResult("eikon", "completed", total=3, created=3)]


@pytest.fixture()
def runs():
    return RunSpy()


@pytest.fixture()
def client(engine, options, runs, monkeypatch):
    monkeypatch.delenv("CRON_MODE", raising=False)
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_trigger] = lambda: ImportTrigger(options, runs)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def external(options):
    options.set(CRON_MODE_KEY, EXTERNAL)
    options.set(CRON_SECRET_KEY, "s3cret")


def test_cron_runs_imports(client, runs, external):
    response = client.get("/cron", params={"pass": "s3cret"})

    assert response.status_code == 200
    assert response.json()["results"][0]["created"] == 3
    assert runs.calls == 1

    assert client.post("/cron?pass=s3cret").status_code == 200
    assert runs.calls == 2


@pytest.mark.parametrize(
    "query, status",
    [
        ("", 400),
        ("?pass=", 400),
        ("?pass=s3cret&debug=1", 400),
        ("?pass=s3cret&pass=s3cret", 400),
        ("?pass=wrong", 403),
    ],
)
def test_cron_rejections(client, runs, external, query, status):
    assert client.get(f"/cron{query}").status_code == status
    assert runs.calls == 0


def test_cron_rejected_outside_external_mode(client, runs, options):
    options.set(CRON_MODE_KEY, TIMER)
    options.set(CRON_SECRET_KEY, "s3cret")

    assert client.get("/cron", params={"pass": "s3cret"}).status_code == 403
    assert runs.calls == 0


def test_cron_rejected_without_configured_secret(client, runs, options):
    options.set(CRON_MODE_KEY, EXTERNAL)

    assert client.get("/cron", params={"pass": "anything"}).status_code == 403
    assert options.get(CRON_SECRET_KEY) is None
    assert runs.calls == 0


def test_status_reports_progress(client, engine, options):
    options.set(cursor_key("eikon"), 40)
    JobStore(engine, "gvamax").add(1, BATCH, {"offset": 0, "length": 50})

    response = client.get("/status")

    assert response.status_code == 200
    sources = {item["name"]: item for item in response.json()["sources"]}
    assert sources["eikon"]["cursor"] == 40
    assert sources["eikon"]["status"] == "idle"
    assert sources["eikon"]["pending_jobs"] == 0
    assert sources["gvamax"]["pending_jobs"] == 1


def test_property_view(client, engine, options):
    zone = Zone(
        id="1",
        name="Cerro",
        polygon=((-64.25, -31.35), (-64.10, -31.35), (-64.10, -31.45), (-64.25, -31.45)),
    )
    record = RemoteRecord(
        sku="1001",
        name="Casa con pileta",
        price=125000.0,
        classification={"operation": "Venta", "type": "Casa", "subtype": "Chalet"},
        coordinate=Coordinate(latitude=-31.4, longitude=-64.18),
        attributes={"calle": "Av. Rafael Núñez", "nro": "4500", "dormitorios": "3", "localidad": "Córdoba"},
    )
    reconciler = CatalogReconciler(
        CatalogStore(engine, "gvamax"), options, StaticFeed([]), ListingProfile(zones=[zone])
    )
    reconciler.import_record(record)

    response = client.get("/properties/1001")

    assert response.status_code == 200
    body = response.json()
    assert body["operation"] == "Venta"
    assert body["type"] == "Chalet"
    assert body["zones"] == ["Cerro"]
    assert body["primary_zone"] == "Cerro"
    assert body["whatsapp"] == "5493512359666"
    assert body["whatsapp_url"].startswith("https://wa.me/5493512359666?text=")
    assert body["bedrooms"] == "3"
    assert body["bathrooms"] is None
    assert body["address"] == "Av. Rafael Núñez 4500"
    assert body["city"] == "Córdoba"
    assert body["coordinates"] == {"latitude": -31.4, "longitude": -64.18}


def test_primary_zone_is_the_listing_own_zone(client, engine, options):
    zone = Zone(
        id="1",
        name="Cerro",
        polygon=((-64.25, -31.35), (-64.10, -31.35), (-64.10, -31.45), (-64.25, -31.45)),
    )
    inside = Coordinate(latitude=-31.4, longitude=-64.18)
    reconciler = CatalogReconciler(
        CatalogStore(engine, "gvamax"), options, StaticFeed([]), ListingProfile(zones=[zone])
    )
    # the geofenced zone term exists before the listing's own zone label
    reconciler.import_record(RemoteRecord(sku="1000", name="Lote", coordinate=inside))
    reconciler.import_record(
        RemoteRecord(
            sku="1001",
            name="Casa con pileta",
            classification={"zone": "Zona Norte"},
            coordinate=inside,
        )
    )

    body = client.get("/properties/1001").json()

    assert body["zones"] == ["Zona Norte", "Cerro"]
    assert body["primary_zone"] == "Zona Norte"


def test_property_not_found(client):
    assert client.get("/properties/404").status_code == 404

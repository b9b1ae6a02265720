import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

import main
from match_types import Candidate
from mongodb_client import record_to_candidate


@pytest.fixture
def client(monkeypatch, catalog_records):
    monkeypatch.setattr(main, 'API_KEY', None)
    monkeypatch.setattr(main, 'current_year', lambda: 2024)
    monkeypatch.setattr(main, 'load_candidates',
                        lambda: [record_to_candidate(rec) for rec in catalog_records])
    return TestClient(main.app)


def test_format_price():
    assert main.format_price(189900) == '$189,900.00 MXN'
    assert main.format_price(None) is None


def test_stock_status():
    assert main.stock_status(4) == 'Disponible'
    assert main.stock_status(1) == 'Últimas unidades'
    assert main.stock_status(0) == 'Agotado'


def test_smart_search_found(client):
    response = client.get('/api/catalog/smart-search', params={'model': 'mt 07 naked'})

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['id'] == 'a1'
    assert body['model'] == 'MT-07'
    assert body['price_formatted'] == '$189,900.00 MXN'
    assert body['stock_status'] == 'Disponible'
    assert body['color_options'] == ['Azul']
    assert body['riding_modes'] == []
    assert body['match_confidence'] == 'high'
    assert body['alternative_models_available'] == 0
    assert body['search_query'] == 'mt 07 naked'
    assert 'Exact segment match' in body['match_reasons']


def test_smart_search_not_found(client):
    response = client.get('/api/catalog/smart-search', params={'model': 'zzz cruiser'})

    assert response.status_code == 404
    body = response.json()
    assert body['success'] is False
    assert body['error'] == 'No se encontró coincidencia'
    assert '"zzz cruiser"' in body['message']
    assert body['suggestion']
    assert len(body['diagnostics']) == 2


def test_smart_search_blank_query(client):
    response = client.get('/api/catalog/smart-search', params={'model': '   '})

    assert response.status_code == 400
    assert response.json()['error'] == 'Consulta vacía'


def test_smart_search_missing_parameter(client):
    response = client.get('/api/catalog/smart-search')
    assert response.status_code == 422


def test_smart_search_empty_catalog(monkeypatch):
    monkeypatch.setattr(main, 'API_KEY', None)
    monkeypatch.setattr(main, 'current_year', lambda: 2024)
    monkeypatch.setattr(main, 'load_candidates', lambda: [])

    response = TestClient(main.app).get('/api/catalog/smart-search', params={'model': 'mt 07'})

    assert response.status_code == 404
    assert response.json()['error'] == 'Catálogo vacío'


def test_smart_search_store_error(monkeypatch):
    def boom():
        raise ServerSelectionTimeoutError("timed out")

    monkeypatch.setattr(main, 'API_KEY', None)
    monkeypatch.setattr(main, 'current_year', lambda: 2024)
    monkeypatch.setattr(main, 'load_candidates', boom)

    response = TestClient(main.app).get('/api/catalog/smart-search', params={'model': 'mt 07'})

    assert response.status_code == 500
    assert response.json()['success'] is False


def test_api_key_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(main, 'API_KEY', 'secret')

    denied = client.get('/api/catalog/smart-search', params={'model': 'mt 07'})
    allowed = client.get('/api/catalog/smart-search', params={'model': 'mt 07'},
                         headers={'X-API-Key': 'secret'})

    assert denied.status_code == 401
    assert allowed.status_code == 200


def test_stats(monkeypatch):
    monkeypatch.setattr(main, 'test_connection', lambda: {
        'connected': True, 'database': 'dealer', 'collection': 'catalog', 'active_models': 2,
    })

    response = TestClient(main.app).get('/api/stats')

    assert response.json() == {
        'status': 'ready', 'database': 'dealer', 'collection': 'catalog', 'active_models': 2,
    }


def test_build_match_payload_without_price():
    from matcher import smart_search

    cand = Candidate(name='R3', segment='DEPORTIVA', year=2024, stock=1)
    result = smart_search('r3 deportiva', 2024, [cand])
    payload = main.build_match_payload(result)

    assert payload['price_formatted'] is None
    assert payload['stock_status'] == 'Últimas unidades'


def test_concurrent_searches_do_not_wait_on_each_other(monkeypatch, catalog_records):
    def slow_store():
        time.sleep(0.5)
        return [record_to_candidate(rec) for rec in catalog_records]

    monkeypatch.setattr(main, 'API_KEY', None)
    monkeypatch.setattr(main, 'current_year', lambda: 2024)
    monkeypatch.setattr(main, 'load_candidates', slow_store)

    async def search_four_times():
        transport = httpx.ASGITransport(app=main.app)
        async with httpx.AsyncClient(transport=transport, base_url='http://testserver') as ac:
            return await asyncio.gather(*(
                ac.get('/api/catalog/smart-search', params={'model': 'mt 07 naked'})
                for _ in range(4)
            ))

    start = time.perf_counter()
    responses = asyncio.run(search_four_times())
    elapsed = time.perf_counter() - start

    assert [r.status_code for r in responses] == [200, 200, 200, 200]
    assert elapsed < 1.5


# ============================================================================
# CATALOG LISTING
# ============================================================================

@pytest.fixture
def list_client(monkeypatch, catalog_records):
    calls = []

    def fake_fetch(**filters):
        calls.append(filters)
        return catalog_records

    monkeypatch.setattr(main, 'API_KEY', None)
    monkeypatch.setattr(main, 'fetch_catalog', fake_fetch)
    return TestClient(main.app), calls


def test_catalog_list_formats_models_and_stats(list_client):
    client, calls = list_client

    response = client.get('/api/catalog/list')

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['count'] == 2
    assert [m['model'] for m in body['models']] == ['MT-07', 'NMAX 155']
    assert body['models'][0]['price_formatted'] == '$189,900.00 MXN'
    assert body['models'][1]['stock_status'] == 'Últimas unidades'
    assert body['models'][1]['color_options'] == []
    assert body['stats'] == {
        'total_models': 2,
        'segments': ['NAKED', 'SCOOTER'],
        'price_range': {'min': 62900.0, 'max': 189900.0, 'avg': 126400},
        'total_stock': 7,
        'test_drive_available': 1,
    }
    assert calls == [{'segment': None, 'min_price': None, 'max_price': None, 'test_drive': False}]


def test_catalog_list_passes_filters(list_client):
    client, calls = list_client

    client.get('/api/catalog/list', params={
        'segment': 'NAKED', 'min_price': '100000', 'max_price': '200000', 'test_drive': 'true',
    })

    assert calls == [{'segment': 'NAKED', 'min_price': 100000.0, 'max_price': 200000.0, 'test_drive': True}]


def test_catalog_list_empty(monkeypatch):
    monkeypatch.setattr(main, 'API_KEY', None)
    monkeypatch.setattr(main, 'fetch_catalog', lambda **filters: [])

    body = TestClient(main.app).get('/api/catalog/list', params={'segment': 'CRUISER'}).json()

    assert body['success'] is True
    assert body['count'] == 0
    assert body['models'] == []
    assert 'stats' not in body


def test_catalog_list_requires_api_key(list_client, monkeypatch):
    client, calls = list_client
    monkeypatch.setattr(main, 'API_KEY', 'secret')

    response = client.get('/api/catalog/list')

    assert response.status_code == 401
    assert calls == []


def test_catalog_list_store_error(monkeypatch):
    def boom(**filters):
        raise ServerSelectionTimeoutError("timed out")

    monkeypatch.setattr(main, 'API_KEY', None)
    monkeypatch.setattr(main, 'fetch_catalog', boom)

    response = TestClient(main.app).get('/api/catalog/list')

    assert response.status_code == 500
    assert response.json()['error'] == 'Error al obtener el catálogo'


# ============================================================================
# ENTRY POINT
# ============================================================================

def test_main_rejects_non_numeric_port(monkeypatch, capsys):
    def fail_run(*args, **kwargs):
        raise AssertionError("server must not start")

    monkeypatch.setattr(main, 'PORT', 'eighty')
    monkeypatch.setattr(main.uvicorn, 'run', fail_run)

    main.main()

    assert "PORT must be a number" in capsys.readouterr().out

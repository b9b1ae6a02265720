# -*- coding: utf-8 -*-
"""
Catalog Smart Search API

Chat-facing catalog endpoints. Smart search resolves a customer's free-text
model query to the best catalog motorcycle; the listing returns the active
catalog with optional filters. The catalog is read from MongoDB on every
request and matching itself is delegated to the pure matcher module.
"""
import os
import socket
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.errors import PyMongoError
import uvicorn

from match_types import FailureKind, MatchResult, ScoredCandidate
from matcher import smart_search
from mongodb_client import fetch_catalog, load_candidates, test_connection


# ============================================================================
# CONFIGURATION
# ============================================================================

API_KEY = os.environ.get('API_KEY')
HOST = os.environ.get('HOST', '127.0.0.1')
PORT = os.environ.get('PORT')

# Detail fields copied into the flat response (list-valued ones default to [])
DETAIL_FIELDS = (
    'price_cash', 'engine_cc', 'engine_type', 'max_power', 'max_torque',
    'transmission', 'fuel_capacity', 'weight', 'seat_height', 'abs',
    'traction_control', 'description', 'image_url', 'brochure_url',
)
LIST_DETAIL_FIELDS = ('color_options', 'riding_modes', 'key_features')

FAILURE_MESSAGES = {
    FailureKind.EMPTY_QUERY: ('Consulta vacía', 'Debe proporcionar un término de búsqueda'),
    FailureKind.EMPTY_CATALOG: ('Catálogo vacío', 'No hay modelos disponibles en el catálogo'),
    FailureKind.NO_CONFIDENT_MATCH: (
        'No se encontró coincidencia',
        'No se encontró un modelo que coincida con "{query}". Intenta con otro término de búsqueda.',
    ),
}
NO_MATCH_SUGGESTION = 'Verifica el nombre del modelo o busca por categoría (Scooter, Deportiva, etc.)'


# ============================================================================
# RESPONSE FORMATTING
# ============================================================================

def format_price(price: Optional[float]) -> Optional[str]:
    """Format a cash price the way the dealership shows it ($12,345.00 MXN)."""
    if price is None:
        return None
    return f"${float(price):,.2f} MXN"


def current_year() -> int:
    """Reference year handed to the matcher for recency scoring."""
    return datetime.now().year


def stock_status(stock: int) -> str:
    if stock > 3:
        return 'Disponible'
    if stock > 0:
        return 'Últimas unidades'
    return 'Agotado'


def build_match_payload(result: MatchResult) -> Dict[str, Any]:
    """Flatten an accepted MatchResult into the chat integration payload."""
    best = result.match
    cand = best.candidate
    details = cand.details

    payload: Dict[str, Any] = {
        'success': True,
        'id': cand.id,
        'model': cand.name,
        'segment': cand.segment,
        'year': cand.year,
        'stock': cand.stock,
        'stock_status': stock_status(cand.stock),
        'test_drive_available': cand.test_drive_available,
    }
    for field in DETAIL_FIELDS:
        payload[field] = details.get(field)
    for field in LIST_DETAIL_FIELDS:
        payload[field] = details.get(field) or []

    payload['price_formatted'] = format_price(details.get('price_cash'))
    payload['match_score'] = best.score
    payload['match_confidence'] = result.confidence
    payload['match_reasons'] = ' | '.join(best.reasons)
    payload['alternative_models_available'] = result.alternative_count
    payload['search_query'] = result.query
    return payload


def build_list_item(rec: Dict[str, Any]) -> Dict[str, Any]:
    """Format a raw catalog document for the catalog listing."""
    stock = rec.get('stock') or 0
    return {
        'id': rec.get('id'),
        'model': rec.get('model'),
        'segment': rec.get('segment'),
        'price_cash': rec.get('price_cash'),
        'price_formatted': format_price(rec.get('price_cash')),
        'stock': stock,
        'stock_status': stock_status(stock),
        'test_drive_available': bool(rec.get('test_drive_available')),
        'year': rec.get('year'),
        'color_options': rec.get('color_options') or [],
        'engine_cc': rec.get('engine_cc'),
        'image_url': rec.get('image_url'),
        'brochure_url': rec.get('brochure_url'),
        'description': rec.get('description'),
    }


def catalog_stats(models: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Summarize a non-empty catalog listing (segments, price range, stock)."""
    prices = [m['price_cash'] for m in models if m['price_cash'] is not None]
    price_range = None
    if prices:
        price_range = {
            'min': min(prices),
            'max': max(prices),
            'avg': round(sum(prices) / len(prices)),
        }
    return {
        'total_models': len(models),
        'segments': list(dict.fromkeys(m['segment'] for m in models)),
        'price_range': price_range,
        'total_stock': sum(m['stock'] for m in models),
        'test_drive_available': sum(1 for m in models if m['test_drive_available']),
    }


def _diagnostic(sc: ScoredCandidate) -> Dict[str, Any]:
    return {'model': sc.candidate.name, 'score': sc.score, 'reasons': sc.reasons}


def build_failure_payload(result: MatchResult) -> Dict[str, Any]:
    """Build the not-found body; unknown failures fall back to the generic text."""
    error, message = FAILURE_MESSAGES.get(result.failure, ('Error en búsqueda', result.message or ''))
    payload: Dict[str, Any] = {
        'success': False,
        'error': error,
        'message': message.format(query=result.query),
    }
    if result.failure == FailureKind.NO_CONFIDENT_MATCH:
        payload['suggestion'] = NO_MATCH_SUGGESTION
        payload['diagnostics'] = [_diagnostic(sc) for sc in result.diagnostics]
    return payload


# ============================================================================
# FASTAPI APPLICATION
# ============================================================================

app = FastAPI(
    title="Catalog Smart Search",
    description="Free-text model search over the published motorcycle catalog",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type", "X-API-Key"],
)


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    suggestion: Optional[str] = None
    diagnostics: List[Dict[str, Any]] = []


def check_api_key(api_key: Optional[str]):
    """Reject the request when an API key is configured and does not match."""
    if API_KEY and api_key != API_KEY:
        raise HTTPException(status_code=401, detail="API Key inválida")


@app.get("/api/stats")
def stats():
    """Get catalog store status."""
    conn = test_connection()
    if not conn.get('connected'):
        return {"status": "error", "message": conn.get('error')}
    return {
        "status": "ready",
        "database": conn.get('database'),
        "collection": conn.get('collection'),
        "active_models": conn.get('active_models'),
    }


@app.get("/api/catalog/list")
def catalog_list(
    segment: Optional[str] = Query(default=None, description="Exact segment"),
    min_price: Optional[float] = Query(default=None, description="Minimum cash price"),
    max_price: Optional[float] = Query(default=None, description="Maximum cash price"),
    test_drive: bool = Query(default=False, description="Only models with test drive"),
    x_api_key: Optional[str] = Header(default=None),
):
    """List active catalog models, ordered by segment then price."""
    check_api_key(x_api_key)

    try:
        records = fetch_catalog(
            segment=segment, min_price=min_price, max_price=max_price, test_drive=test_drive
        )
    except PyMongoError as e:
        print(f"Error en /api/catalog/list: {e}")
        body = ErrorResponse(error='Error al obtener el catálogo', message=str(e))
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))

    if not records:
        return {
            'success': True,
            'count': 0,
            'models': [],
            'message': 'No hay modelos disponibles con los filtros especificados',
        }

    models = [build_list_item(rec) for rec in records]
    return {
        'success': True,
        'count': len(models),
        'stats': catalog_stats(models),
        'models': models,
    }


@app.get("/api/catalog/smart-search")
def catalog_smart_search(
    model: str = Query(..., description="Free-text model query"),
    x_api_key: Optional[str] = Header(default=None),
):
    """Return the best catalog match for a free-text query."""
    check_api_key(x_api_key)

    try:
        candidates = load_candidates()
    except PyMongoError as e:
        print(f"Error en /api/catalog/smart-search: {e}")
        body = ErrorResponse(error='Error al consultar catálogo', message=str(e))
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))

    result = smart_search(model, current_year(), candidates)

    if result.success:
        return build_match_payload(result)

    best = result.diagnostics[0].score if result.diagnostics else None
    print(f"Smart search miss: failure={result.failure} query={model!r} best_score={best}")

    status_code = 400 if result.failure == FailureKind.EMPTY_QUERY else 404
    return JSONResponse(status_code=status_code, content=build_failure_payload(result))


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def find_available_port(start_port=8000, max_attempts=10):
    """Find an available port starting from start_port."""
    for port in range(start_port, start_port + max_attempts):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind((HOST, port))
                return port
        except OSError:
            continue
    return None


def main():
    """Run the API server."""
    print("=" * 60)
    print("Catalog Smart Search API")
    print("=" * 60)

    if PORT:
        try:
            port = int(PORT)
        except ValueError:
            print(f"\nERROR: PORT must be a number, got {PORT!r}.")
            return
    else:
        port = find_available_port()
    if port is None:
        print("\nERROR: Could not find an available port (8000-8009).")
        return

    print("\nTesting MongoDB connection...")
    conn_test = test_connection()
    if conn_test.get('connected'):
        print(f"  Connected to MongoDB: {conn_test.get('database')}.{conn_test.get('collection')}")
        print(f"  Active catalog models: {conn_test.get('active_models', 'unknown')}")
    else:
        print(f"  WARNING: MongoDB connection failed: {conn_test.get('error')}")
        print("  Requests will fail until the catalog store is reachable...")

    print(f"\nStarting server at http://{HOST}:{port}")
    print("Press Ctrl+C to stop\n")

    uvicorn.run(app, host=HOST, port=port, log_level="warning")


if __name__ == "__main__":
    main()

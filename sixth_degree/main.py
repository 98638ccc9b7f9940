from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging
from typing import Optional

from sixth_degree import config
from sixth_degree.database import EntityStore
from sixth_degree.errors import (
    CacheLoadFailed, PersonAlreadyExists, PersonNotFound, SixthDegreeError
)
from sixth_degree.models import (
    Connection, ConnectionCreate, GraphData, GraphStats, Person, PersonCreate,
    PersonListResponse, SearchRequest, SearchResult
)
from sixth_degree.search import SearchService

# Configure structured logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

router = APIRouter()


def get_service(request: Request) -> SearchService:
    return request.app.state.service


def _error_body(status_code: int, message: str) -> dict:
    return {'statusCode': status_code, 'message': message}


async def person_not_found_handler(request: Request, exc: PersonNotFound):
    return JSONResponse(status_code=404, content=_error_body(404, str(exc)))


async def person_exists_handler(request: Request, exc: PersonAlreadyExists):
    return JSONResponse(status_code=409, content=_error_body(409, str(exc)))


async def cache_load_failed_handler(request: Request, exc: CacheLoadFailed):
    logger.error(f"Graph cache unavailable: {exc.cause}")
    return JSONResponse(status_code=503, content=_error_body(503, 'Graph cache is unavailable, try again later'))


async def internal_error_handler(request: Request, exc: SixthDegreeError):
    logger.error(f"Internal error while handling {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=_error_body(500, 'Search failed'))


@router.post('/api/search', response_model=SearchResult)
@limiter.limit(config.SEARCH_RATE_LIMIT)
def search(request: Request, search_request: SearchRequest):
    """
    Find the shortest connection path between two persons

    Returns 404 with the (empty) result when no directed path exists.
    """
    service = get_service(request)
    result = service.search(search_request.start_person, search_request.end_person)

    if not result.found:
        return JSONResponse(
            status_code=404,
            content={
                **_error_body(
                    404,
                    f'No path found between "{search_request.start_person}" and "{search_request.end_person}"'
                ),
                'result': result.model_dump(mode='json', by_alias=True),
            }
        )

    return result


@router.get('/api/search/persons', response_model=PersonListResponse)
def get_all_persons(request: Request):
    """Get all available persons for search, ordered by name"""
    persons = get_service(request).list_all_persons()
    return PersonListResponse(count=len(persons), persons=persons)


@router.get('/api/search/graph', response_model=GraphData)
def get_graph_data(request: Request):
    """Get graph data for visualization"""
    return get_service(request).get_graph_data()


@router.get('/api/search/stats', response_model=GraphStats)
def get_stats(request: Request):
    """
    Get graph statistics

    Returns:
    - Total persons and connections
    - Average outgoing connections per person
    - Whether the graph cache is loaded
    """
    return get_service(request).get_graph_stats()


@router.get('/api/search/cache/stats')
def get_cache_stats(request: Request):
    """Get graph cache size and build count"""
    return get_service(request).cache.get_stats()


@router.post('/api/search/cache/reload', response_model=GraphStats)
def reload_cache(request: Request):
    """Rebuild the graph cache from the database and return fresh stats"""
    service = get_service(request)
    service.reload_cache()
    return service.get_graph_stats()


@router.post('/api/persons', response_model=Person, status_code=201)
def create_person(request: Request, person: PersonCreate):
    """
    Add a person

    The graph cache is not updated until the next reload.
    """
    return get_service(request).store.create_person(
        name=person.name,
        wikipedia_url=person.wikipedia_url,
        category=person.category,
    )


@router.post('/api/connections', response_model=Connection, status_code=201)
def create_connection(request: Request, connection: ConnectionCreate):
    """
    Add a directed connection between two existing persons

    The graph cache is not updated until the next reload.
    """
    return get_service(request).store.create_connection(
        connection.from_person_id, connection.to_person_id
    )


def create_app(store: Optional[EntityStore] = None, warm_cache: bool = config.WARM_CACHE_ON_STARTUP) -> FastAPI:
    """
    Build the FastAPI application around one store and its graph cache

    Args:
        store: Entity store to serve (default: SQLite database at DATABASE_PATH)
        warm_cache: Whether to build the graph cache on startup
    """
    if store is None:
        store = EntityStore()
    store.init_db()

    app = FastAPI(title=config.API_TITLE, version=config.API_VERSION)
    app.state.service = SearchService(store)

    # Add rate limit exception handler
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(PersonNotFound, person_not_found_handler)
    app.add_exception_handler(PersonAlreadyExists, person_exists_handler)
    app.add_exception_handler(CacheLoadFailed, cache_load_failed_handler)
    app.add_exception_handler(SixthDegreeError, internal_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Security headers middleware
    @app.middleware("http")
    async def add_security_headers(request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    @app.on_event("startup")
    def warm_graph_cache():
        """Build the graph cache up front so the first search is fast"""
        if not warm_cache:
            return
        try:
            app.state.service.cache.ensure_loaded()
        except CacheLoadFailed as e:
            # The next search retries the load
            logger.error(f"Graph cache warmup failed: {e}")

    app.include_router(router)
    return app


app = create_app()

if __name__ == '__main__':
    import uvicorn
    import os
    port = int(os.environ.get('PORT', 8000))
    uvicorn.run(app, host='0.0.0.0', port=port)

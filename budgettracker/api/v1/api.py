"""
API v1 router aggregation
"""
from fastapi import APIRouter

from budgettracker.api.v1.endpoints import query, recommendations

api_router = APIRouter()

# [(router module, prefix, tags), ...]
_ROUTES = [
    (query, "/query", ["query"]),
    (recommendations, "/recommendations", ["recommendations"]),
]

for router_module, prefix, tags in _ROUTES:
    api_router.include_router(
        router_module.router,
        prefix=prefix,
        tags=tags
    )

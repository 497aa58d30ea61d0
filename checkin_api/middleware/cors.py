from fastapi import Request, Response
from fastapi.routing import APIRoute

ALLOWED_HEADERS = "Content-Type,Authorization"


def allowed_methods(request: Request) -> str:
    methods = set()
    for route in request.app.routes:
        if isinstance(route, APIRoute) and route.path == request.url.path:
            methods |= route.methods
    methods.discard("HEAD")
    return ",".join(sorted(methods or {"GET"}) + ["OPTIONS"])


def cors_headers(request: Request) -> dict:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": allowed_methods(request),
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
    }


async def cors_middleware(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=cors_headers(request))

    response = await call_next(request)
    response.headers.update(cors_headers(request))
    return response

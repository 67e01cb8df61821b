from contextlib import asynccontextmanager

from ariadne import make_executable_schema
from ariadne.asgi import GraphQL
from ariadne.asgi.handlers import GraphQLHTTPHandler, GraphQLWSHandler
from ariadne.explorer import ExplorerGraphiQL
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from .context import make_context_value
from .errors import DatabaseConnectionError, format_error
from .models import ModelRegistry
from .permissions import shield
from .pubsub import Broadcaster
from .routes import mutation, query, student, subscription
from .schema import type_defs
from .settings import get_settings
from .utils.logger import log_error, write_log


def build_schema():
    return make_executable_schema(type_defs, query, mutation, subscription, student, convert_names_case=True)


def _store_connection_params(websocket, params):
    # Read back by the context builder when the client authenticates on connection_init
    websocket.scope["connection_params"] = params or {}


async def startup(models, settings):
    try:
        await models.connect()
    except DatabaseConnectionError as e:
        log_error("database_connection_failed", e, stream="system")
        raise
    if settings.seed_database:
        from gateway.seed import seed_database
        await seed_database(models)


async def health(request):
    return JSONResponse({"status": "ok"})


def create_app(settings=None, models=None, permissions=None, schema=None):
    """
    Compose schema, permission gate, context builder and error formatter
    into one ASGI application. The schema and gate are built here once and
    never mutated afterwards.
    """
    settings = settings or get_settings()
    models = models or ModelRegistry(settings.database_url)
    permissions = permissions or shield()
    schema = schema or build_schema()
    pubsub = Broadcaster(settings.broadcast_url)

    graphql_app = GraphQL(
        schema,
        context_value=make_context_value(models, settings, pubsub=pubsub, permissions=permissions),
        error_formatter=format_error,
        debug=settings.debug,
        introspection=True,
        explorer=ExplorerGraphiQL(),
        http_handler=GraphQLHTTPHandler(middleware=[permissions]),
        websocket_handler=GraphQLWSHandler(on_connect=_store_connection_params),
    )

    @asynccontextmanager
    async def lifespan(app):
        await startup(models, settings)
        await pubsub.connect()
        write_log({"event": "server_ready", "path": "/graphql"}, stream="system")
        try:
            yield
        finally:
            await pubsub.disconnect()
            await models.close()

    app = Starlette(
        debug=settings.debug,
        routes=[
            Route("/health", health),
            Route("/graphql", graphql_app, methods=["GET", "POST", "OPTIONS"]),
            WebSocketRoute("/graphql", graphql_app),
        ],
        middleware=[
            Middleware(CORSMiddleware, allow_origins=settings.cors_origins, allow_methods=["*"], allow_headers=["*"]),
        ],
        lifespan=lifespan,
    )
    app.state.models = models
    app.state.pubsub = pubsub
    app.state.permissions = permissions
    return app

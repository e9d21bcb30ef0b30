"""aiohttp server for Navstage.

Application factory and route registration for standalone server mode.
"""

import logging

from aiohttp import web

from navstage.api.navigation import create_navigation_routes
from navstage.app_keys import editors_key, projector_key, store_key
from navstage.config import Config
from navstage.core.projector import DropProjector
from navstage.editors import EditorRegistry
from navstage.store import NavigationStore

logger = logging.getLogger(__name__)


def create_app(config: Config) -> web.Application:
    """Create aiohttp application.

    Args:
        config: Application configuration

    Returns:
        Configured aiohttp application
    """
    app = web.Application()

    store = NavigationStore(config.store.data_file, config.store.languages)
    projector = DropProjector(config.dnd.to_settings())

    app[store_key] = store
    app[projector_key] = projector
    app[editors_key] = EditorRegistry(store, projector, timeout=config.persistence.timeout)

    app.router.add_routes(create_navigation_routes())

    return app


def run_server(config: Config) -> None:
    """Run the server.

    Args:
        config: Application configuration
    """
    app = create_app(config)
    logger.info(f"Serving navigation from {config.store.data_file}")
    web.run_app(app, host=config.server.host, port=config.server.port)

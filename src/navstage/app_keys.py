"""Application keys for type-safe app configuration access."""

from aiohttp import web

from navstage.core.projector import DropProjector
from navstage.editors import EditorRegistry
from navstage.store import NavigationStore

store_key = web.AppKey("store", NavigationStore)
projector_key = web.AppKey("projector", DropProjector)
editors_key = web.AppKey("editors", EditorRegistry)

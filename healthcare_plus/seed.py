"""
Data directory bootstrap.

``initialize_data`` runs at application startup and only fills in what is
missing. Running this module (``python -m healthcare_plus.seed``) resets
the data directory to the seed state: empty appointments, the default
admin and the built-in health tips.
"""
import asyncio
import logging

from .core.config import settings
from .core.storage import RecordStore, get_store
from .models import appointment as appointment_model
from .models import health_tip as health_tip_model
from .models import user as user_model
from .services.auth_service import AuthService
from .services.health_tip_service import HealthTipService

logger = logging.getLogger(__name__)

COLLECTIONS = (
    user_model.COLLECTION,
    appointment_model.COLLECTION,
    health_tip_model.COLLECTION,
)


async def initialize_data(store: RecordStore) -> None:
    """Create missing collection files, default tips and the default admin."""
    await store.ensure_collections(COLLECTIONS)
    await HealthTipService(store).seed_defaults()
    await AuthService(store).ensure_admin()


async def reset_data(store: RecordStore) -> None:
    for collection in COLLECTIONS:
        await store.bulk_persist(collection, [])
    await initialize_data(store)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    store = get_store()
    logger.info(f"Seeding data directory {store.data_dir}...")
    asyncio.run(reset_data(store))
    logger.info("Data directory seeded successfully")
    logger.info(f"Admin account: {settings.DEFAULT_ADMIN_EMAIL}")


if __name__ == "__main__":
    main()

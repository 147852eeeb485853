from cms.config import get_settings
from cms.core.logging import setup_logging
from cms.database.session import build_engine, build_session_factory
from cms.services.metadata_client import MetadataClient
from cms.services.user_service import UserService


def sync_users() -> dict:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    client = MetadataClient(settings.METADATA_SERVER_URL, settings.METADATA_API_KEY)
    db = build_session_factory(build_engine(settings))()
    try:
        return UserService(db).sync_from_metadata(client.list_employees())
    finally:
        db.close()
        client.close()


def main():
    result = sync_users()
    print(
        f"Users synced: {result['created']} created, "
        f"{result['reactivated']} reactivated, {result['deactivated']} deactivated"
    )


if __name__ == "__main__":
    main()

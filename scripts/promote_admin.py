import logging
import sys

from jotter.db.couchdb import get_couch
from jotter.repos.users_repo import CouchUsersRepo

logger = logging.getLogger(__name__)


def promote(username: str, repo: CouchUsersRepo) -> bool:
    user = repo.find_by_username(username)
    if not user:
        return False
    repo.update(user["_id"], {"role": "admin"})
    return True


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) != 2:
        print("usage: python scripts/promote_admin.py <username>")
        sys.exit(2)

    username = sys.argv[1]
    try:
        if promote(username, CouchUsersRepo(get_couch())):
            logger.info(f"{username} is now an admin.")
        else:
            logger.error(f"No user named {username}.")
            sys.exit(1)
    except Exception as e:
        logger.error(f"Promotion failed: {e}", exc_info=True)
        sys.exit(1)

from fastapi import Depends

from jotter.db.couchdb import get_couch
from jotter.repos.posts_repo import CouchPostsRepo
from jotter.repos.users_repo import CouchUsersRepo
from jotter.services.auth_service import AuthService
from jotter.services.posts_service import PostsService


def get_posts_repo(couch_db=Depends(get_couch)):
    return CouchPostsRepo(couch_db)


def get_users_repo(couch_db=Depends(get_couch)):
    return CouchUsersRepo(couch_db)


def get_posts_service(
    repo=Depends(get_posts_repo),
    users_repo=Depends(get_users_repo),
):
    return PostsService(repo=repo, users_repo=users_repo)


def get_auth_service(users_repo=Depends(get_users_repo)):
    return AuthService(users_repo)

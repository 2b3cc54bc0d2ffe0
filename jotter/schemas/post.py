from typing import List, Optional

from pydantic import BaseModel, Field


class AuthorSummary(BaseModel):
    id: str
    username: Optional[str] = None
    avatar: Optional[str] = None


class AuthorDetail(AuthorSummary):
    bio: Optional[str] = None


class PostSummary(BaseModel):
    id: str
    title: str
    slug: str
    excerpt: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    privacy: str
    status: str
    author: AuthorSummary
    featured: bool = False
    coverImage: str = ""
    readTime: int = 1
    views: int = 0
    likes: List[str] = Field(default_factory=list)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class PostDetail(PostSummary):
    author: AuthorDetail
    content: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    hasNext: bool
    hasPrev: bool


class PostListResponse(BaseModel):
    posts: List[PostSummary]
    pagination: Optional[Pagination] = None


class UserPostsResponse(BaseModel):
    posts: List[PostSummary]


class PostResponse(BaseModel):
    message: Optional[str] = None
    post: PostDetail


class LikeResponse(BaseModel):
    message: str
    liked: bool
    likesCount: int


class MessageResponse(BaseModel):
    message: str

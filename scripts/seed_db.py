"""
Seed a development database with sample users, posts, comments and follows.

Usage: SEED_PASSWORD=secret python scripts/seed_db.py

Existing users (by email) and posts (by title) are left alone, so the script
can be re-run safely. Every seeded account gets SEED_PASSWORD
(default "password123").
"""
import json
import os

from sqlmodel import Session, select

from inkwell.core import security
from inkwell.core.errors import ErrorHandler
from inkwell.db import create_db_and_tables, engine
from inkwell.models.comment import Comment
from inkwell.models.post import Post
from inkwell.models.user import User
from inkwell.schemas import PostCreate
from inkwell.services.comments import create_comment
from inkwell.services.posts import create_post
from inkwell.services.users import is_following, toggle_follow

SEEDS_PATH = "data/seeds/blog.json"


def seed_users(session: Session, items: list, password: str) -> dict:
    users = {}
    hashed_password = security.get_password_hash(password)
    for item in items:
        existing = session.exec(select(User).where(User.email == item["email"])).first()
        if existing:
            users[existing.username] = existing
            continue

        user = User(
            username=item["username"],
            email=item["email"],
            role=item.get("role", "user"),
            bio=item.get("bio"),
            location=item.get("location"),
            hashed_password=hashed_password,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        users[user.username] = user
        print(f"Created user: {user.username}")
    return users


def seed_posts(session: Session, items: list, users: dict) -> dict:
    posts = {}
    for item in items:
        existing = session.exec(select(Post).where(Post.title == item["title"])).first()
        if existing:
            posts[existing.title] = existing
            continue

        with ErrorHandler("seed_post", context={"title": item["title"]}):
            data = PostCreate(**{k: v for k, v in item.items() if k != "author"})
            post = create_post(session, users[item["author"]], data)
            posts[post.title] = post
            print(f"Created post: {post.slug}")
    return posts


def seed_comments(session: Session, items: list, users: dict, posts: dict) -> int:
    created: list = []
    for item in items:
        post = posts.get(item["post"])
        if not post:
            created.append(None)
            continue

        existing = session.exec(
            select(Comment).where(Comment.post_id == post.id, Comment.content == item["content"])
        ).first()
        if existing:
            created.append(existing)
            continue

        parent = created[item["reply_to"]] if "reply_to" in item else None
        comment = None
        with ErrorHandler("seed_comment", context={"post": item["post"]}):
            comment = create_comment(
                session,
                users[item["author"]],
                post_id=post.id,
                content=item["content"],
                parent_id=parent.id if parent else None,
            )
        created.append(comment)
    return sum(1 for c in created if c is not None)


def seed_follows(session: Session, pairs: list, users: dict) -> None:
    for follower_name, following_name in pairs:
        follower = users[follower_name]
        following = users[following_name]
        if not is_following(session, follower.id, following.id):
            toggle_follow(session, follower, following.id)


def seed_db():
    if not os.path.exists(SEEDS_PATH):
        print(f"Seeds file not found at {SEEDS_PATH}")
        return

    with open(SEEDS_PATH, "r") as f:
        data = json.load(f)

    password = os.getenv("SEED_PASSWORD", "password123")

    create_db_and_tables()
    with Session(engine) as session:
        users = seed_users(session, data["users"], password)
        posts = seed_posts(session, data["posts"], users)
        comments = seed_comments(session, data["comments"], users, posts)
        seed_follows(session, data.get("follows", []), users)

    print(f"Seeded {len(users)} users, {len(posts)} posts, {comments} comments.")


if __name__ == "__main__":
    seed_db()

"""
Tests for the admin API.

Tests cover:
- Role gate (401 anonymous, 403 non-admin)
- Dashboard stats
- Role changes and the last-admin guard
- User deletion and what it takes with it
- Post and comment moderation listings
"""

import pytest
from sqlmodel import select, func

from inkwell.models.comment import Comment
from inkwell.models.post import Post, PostLike
from inkwell.models.user import Bookmark, Follow, User

ADMIN = "/api/admin"


class TestAccess:
    @pytest.mark.parametrize("path", ["/stats", "/users", "/posts", "/comments"])
    def test_requires_token(self, client, path):
        response = client.get(f"{ADMIN}{path}")

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Not authorized, no token"}

    @pytest.mark.parametrize("path", ["/stats", "/users", "/posts", "/comments"])
    def test_requires_admin_role(self, client, reader_headers, path):
        response = client.get(f"{ADMIN}{path}", headers=reader_headers)
        assert response.status_code == 403

    def test_invalid_token(self, client):
        response = client.get(f"{ADMIN}/stats", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized, token failed"


class TestStats:
    def test_counts(self, client, factory, author, reader, admin_headers):
        post = factory.create_post(author)
        factory.create_post(author, status="draft")
        factory.create_comment(post, reader)
        client.get(f"/api/posts/{post.slug}")

        data = client.get(f"{ADMIN}/stats", headers=admin_headers).json()["data"]

        assert data["totalUsers"] == 3
        assert data["totalPosts"] == 2
        assert data["totalComments"] == 1
        assert data["totalViews"] == 1
        assert data["newUsersThisMonth"] == 3


class TestUsers:
    def test_list_includes_post_counts(self, client, factory, author, admin_headers):
        factory.create_posts(author, 2)

        body = client.get(f"{ADMIN}/users", params={"sort": "username"}, headers=admin_headers).json()

        assert [u["username"] for u in body["data"]] == ["alice", "root"]
        assert body["data"][0]["posts"] == 2
        assert body["data"][0]["email"] == "alice@example.com"
        assert body["pagination"]["total"] == 2

    def test_search_by_email(self, client, author, reader, admin_headers):
        data = client.get(f"{ADMIN}/users", params={"search": "bob@"}, headers=admin_headers).json()["data"]
        assert [u["username"] for u in data] == ["bob"]

    def test_promote(self, client, reader, admin_headers):
        response = client.put(f"{ADMIN}/users/{reader.id}/role", json={"role": "admin"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["role"] == "admin"

    def test_invalid_role(self, client, reader, admin_headers):
        response = client.put(f"{ADMIN}/users/{reader.id}/role", json={"role": "owner"}, headers=admin_headers)
        assert response.status_code == 400

    def test_cannot_demote_last_admin(self, client, admin_user, admin_headers):
        response = client.put(f"{ADMIN}/users/{admin_user.id}/role", json={"role": "user"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Cannot demote the last admin user"

    def test_demote_when_another_admin_exists(self, client, factory, admin_headers):
        other = factory.create_user("second_admin", role="admin")

        response = client.put(f"{ADMIN}/users/{other.id}/role", json={"role": "user"}, headers=admin_headers)
        assert response.json()["data"]["role"] == "user"

    def test_cannot_delete_last_admin(self, client, admin_user, admin_headers):
        response = client.delete(f"{ADMIN}/users/{admin_user.id}", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Cannot delete the last admin user"

    def test_unknown_user(self, client, admin_headers):
        assert client.delete(f"{ADMIN}/users/999", headers=admin_headers).status_code == 404


class TestDeleteUser:
    def test_removes_user_and_content(
        self, client, test_session, factory, author, reader, admin_headers, author_headers, reader_headers
    ):
        own_post = factory.create_post(author, title="Alice post")
        other_post = factory.create_post(reader, title="Bob post")
        factory.create_comment(own_post, reader)
        alice_comment = factory.create_comment(other_post, author)
        factory.create_comment(other_post, reader, parent=alice_comment)
        bob_comment = factory.create_comment(other_post, reader)
        client.post(f"/api/posts/{other_post.id}/like", headers=author_headers)
        client.post(f"/api/posts/{other_post.id}/bookmark", headers=author_headers)
        client.post(f"/api/posts/{own_post.id}/bookmark", headers=reader_headers)
        client.post(f"/api/users/{author.id}/follow", headers=reader_headers)
        client.post(f"/api/users/{reader.id}/follow", headers=author_headers)

        response = client.delete(f"{ADMIN}/users/{author.id}", headers=admin_headers)

        assert response.status_code == 200
        # Own post with its comment, plus alice's comment and its direct reply
        assert response.json()["data"] == {"posts": 1, "comments": 2}

        test_session.expire_all()
        assert test_session.exec(select(User).where(User.id == author.id)).first() is None
        assert [p.id for p in test_session.exec(select(Post)).all()] == [other_post.id]
        assert [c.id for c in test_session.exec(select(Comment)).all()] == [bob_comment.id]
        assert test_session.exec(select(func.count()).select_from(Follow)).one() == 0
        assert test_session.exec(select(func.count()).select_from(Bookmark)).one() == 0
        assert test_session.exec(select(func.count()).select_from(PostLike)).one() == 0
        assert test_session.get(Post, other_post.id).likes == 0

    def test_token_stops_working(self, client, reader, reader_headers, admin_headers):
        client.delete(f"{ADMIN}/users/{reader.id}", headers=admin_headers)

        assert client.get("/api/auth/me", headers=reader_headers).status_code == 401


class TestModeration:
    def test_posts_include_every_status(self, client, factory, author, admin_headers):
        factory.create_post(author, title="Live")
        factory.create_post(author, title="Unfinished", status="draft")
        factory.create_post(author, title="Old", status="archived")

        body = client.get(f"{ADMIN}/posts", headers=admin_headers).json()
        assert body["pagination"]["total"] == 3

        drafts = client.get(f"{ADMIN}/posts", params={"status": "draft"}, headers=admin_headers).json()["data"]
        assert [p["title"] for p in drafts] == ["Unfinished"]

    def test_sort_by_status(self, client, factory, author, admin_headers):
        factory.create_post(author, title="Live")
        factory.create_post(author, title="Unfinished", status="draft")

        data = client.get(f"{ADMIN}/posts", params={"sort": "status"}, headers=admin_headers).json()["data"]
        assert [p["status"] for p in data] == ["draft", "published"]

    def test_delete_any_post(self, client, factory, author, admin_headers):
        post = factory.create_post(author)

        assert client.delete(f"{ADMIN}/posts/{post.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/posts/{post.slug}").status_code == 404

    def test_comments_include_orphans_and_spam(self, client, factory, author, reader, admin_headers):
        post = factory.create_post(author, title="Thread")
        parent = factory.create_comment(post, reader)
        child = factory.create_comment(post, author, parent=parent)
        factory.create_comment(post, reader, parent=child, content="orphan to be")
        factory.create_comment(post, reader, status="spam", content="buy now")

        client.delete(f"{ADMIN}/comments/{parent.id}", headers=admin_headers)
        data = client.get(f"{ADMIN}/comments", headers=admin_headers).json()["data"]

        assert sorted(c["content"] for c in data) == ["buy now", "orphan to be"]
        assert all(c["postTitle"] == "Thread" for c in data)

    def test_comments_filter_by_status(self, client, factory, author, reader, admin_headers):
        post = factory.create_post(author)
        factory.create_comment(post, reader)
        factory.create_comment(post, reader, status="spam")

        data = client.get(f"{ADMIN}/comments", params={"status": "spam"}, headers=admin_headers).json()["data"]
        assert [c["status"] for c in data] == ["spam"]

    def test_comments_unknown_status(self, client, admin_headers):
        response = client.get(f"{ADMIN}/comments", params={"status": "deleted"}, headers=admin_headers)
        assert response.status_code == 400

"""Tests for the post service: derived fields, visibility and listing rules."""

from unittest.mock import patch

import pytest
from sqlmodel import select

from inkwell.core.config import settings
from inkwell.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationFailedError
from inkwell.models.post import PostTag
from inkwell.schemas import PostCreate, PostUpdate
from inkwell.services.listing import PageParams
from inkwell.services.posts import (
    create_post,
    get_post_by_slug,
    is_visible_to,
    list_posts,
    toggle_like,
    update_post,
)


class TestPostCreateSchema:
    def test_tags_normalized(self):
        data = PostCreate(title="T", content="c", tags=[" Python", "python", "", "Web Dev "])
        assert data.tags == ["python", "web dev"]

    def test_camel_case_input(self):
        data = PostCreate.model_validate({"title": "T", "content": "c", "commentsEnabled": False})
        assert data.comments_enabled is False

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            PostCreate(title="T", content="c", status="deleted")


class TestUpdatePost:
    def test_explicit_null_leaves_required_fields(self, test_session, factory, author):
        post = factory.create_post(author, title="Keep me")

        updated = update_post(test_session, post, author, PostUpdate(title=None, excerpt="Short"))

        assert updated.title == "Keep me"
        assert updated.slug == "keep-me"
        assert updated.excerpt == "Short"

    def test_rename_into_taken_slug(self, test_session, factory, author):
        factory.create_post(author, title="Taken")
        post = factory.create_post(author, title="Free")

        updated = update_post(test_session, post, author, PostUpdate(title="Taken"))
        assert updated.slug == "taken-1"

    def test_tags_untouched_when_omitted(self, test_session, factory, author):
        post = factory.create_post(author, tags=["python"])

        update_post(test_session, post, author, PostUpdate(excerpt="x"))

        names = test_session.exec(select(PostTag.name).where(PostTag.post_id == post.id)).all()
        assert list(names) == ["python"]

    def test_forbidden(self, test_session, factory, author, reader):
        post = factory.create_post(author)
        with pytest.raises(PermissionDeniedError):
            update_post(test_session, post, reader, PostUpdate(title="Mine now"))


class TestVisibility:
    def test_rules(self, factory, author, reader, admin_user):
        draft = factory.create_post(author, status="draft")

        assert is_visible_to(draft, None) is False
        assert is_visible_to(draft, reader) is False
        assert is_visible_to(draft, author) is True
        assert is_visible_to(draft, admin_user) is True

    def test_archived_not_counted(self, test_session, factory, author):
        post = factory.create_post(author, title="Old news", status="archived")

        with pytest.raises(NotFoundError):
            get_post_by_slug(test_session, "old-news")
        test_session.refresh(post)
        assert post.views == 0


class TestListPosts:
    def test_invalid_status(self, test_session):
        with pytest.raises(ValidationFailedError):
            list_posts(test_session, PageParams(), status="deleted")

    def test_anonymous_drafts_empty(self, test_session, factory, author):
        factory.create_post(author, status="draft")

        page = list_posts(test_session, PageParams(), status="draft")
        assert page.items == []
        assert page.total == 0

    def test_sort_by_likes(self, test_session, factory, author, reader):
        quiet = factory.create_post(author)
        popular = factory.create_post(author)
        toggle_like(test_session, popular, reader)
        toggle_like(test_session, popular, author)
        toggle_like(test_session, quiet, reader)

        page = list_posts(test_session, PageParams(), sort="-likes")
        assert [p.id for p in page.items] == [popular.id, quiet.id]


class TestSlugCollisionRetry:
    """A slug taken between lookup and insert is resolved again."""

    def test_create_retries_with_fresh_slug(self, test_session, factory, author):
        factory.create_post(author, title="Foo")

        with patch("inkwell.services.posts.generate_unique_slug", side_effect=["foo", "foo-1"]) as slugger:
            post = create_post(test_session, author, PostCreate(title="Foo", content="Second take"))

        assert post.slug == "foo-1"
        assert slugger.call_count == 2

    def test_create_gives_up_with_conflict(self, test_session, factory, author):
        factory.create_post(author, title="Foo")

        with patch("inkwell.services.posts.generate_unique_slug", return_value="foo") as slugger:
            with pytest.raises(ConflictError):
                create_post(test_session, author, PostCreate(title="Foo", content="Never stored"))

        assert slugger.call_count == settings.SLUG_MAX_ATTEMPTS
        assert len(test_session.exec(select(PostTag)).all()) == 0

    def test_update_retries_with_fresh_slug(self, test_session, factory, author):
        factory.create_post(author, title="Foo")
        post = factory.create_post(author, title="Bar")

        with patch("inkwell.services.posts.generate_unique_slug", side_effect=["foo", "foo-1"]):
            updated = update_post(test_session, post, author, PostUpdate(title="Foo"))

        assert updated.slug == "foo-1"
        assert updated.title == "Foo"

    def test_update_gives_up_with_conflict(self, test_session, factory, author):
        factory.create_post(author, title="Foo")
        post = factory.create_post(author, title="Bar")

        with patch("inkwell.services.posts.generate_unique_slug", return_value="foo"):
            with pytest.raises(ConflictError):
                update_post(test_session, post, author, PostUpdate(title="Foo"))

        test_session.refresh(post)
        assert post.slug == "bar"
        assert post.title == "Bar"

"""End-to-end resolver tests against an in-memory database."""

import asyncio

import pytest
import pytest_asyncio
from ariadne import graphql, subscribe

from gateway.api import build_schema
from gateway.api.errors import format_error
from gateway.api.permissions import shield
from gateway.api.pubsub import STUDENT_CREATED, Broadcaster

SIGN_UP = """
mutation SignUp($username: String!, $email: String!, $password: String!, $role: Role) {
  signUp(username: $username, email: $email, password: $password, role: $role) {
    token
    user { id username email role }
  }
}
"""

CREATE_STUDENT = """
mutation CreateStudent($input: StudentInput!) {
  createStudent(input: $input) {
    id
    fullName
    parentRelationship
    createdBy { username }
  }
}
"""


@pytest.fixture
def schema():
    return build_schema()


@pytest.fixture
def execute(schema):
    async def run(ctx, document, variables=None):
        _, result = await graphql(
            schema,
            {"query": document, "variables": variables or {}},
            context_value=ctx,
            middleware=[shield()],
            error_formatter=format_error,
        )
        return result

    return run


async def sign_up(execute, ctx, username, email, role="TEACHER", password="secret-pass"):
    result = await execute(ctx, SIGN_UP, {
        "username": username, "email": email, "password": password, "role": role,
    })
    assert "errors" not in result, result
    return result["data"]["signUp"]


def student_input(name, **extra):
    fields = {
        "fullName": name,
        "email": "hello@robin.com",
        "school": "rwieruch",
        "parentRelationship": "FATHER",
    }
    fields.update(extra)
    return fields


@pytest.mark.asyncio
async def test_ping(execute, context_for) -> None:
    assert await execute(context_for(), "{ ping }") == {"data": {"ping": "pong"}}


@pytest.mark.asyncio
async def test_sign_up_then_me(execute, context_for) -> None:
    payload = await sign_up(execute, context_for(), "testuser1", "Hello@Robin.com", role="DIRECTOR")

    assert payload["user"]["email"] == "hello@robin.com"
    assert payload["user"]["role"] == "DIRECTOR"

    result = await execute(context_for(payload["token"]), "{ me { username role } }")

    assert result == {"data": {"me": {"username": "testuser1", "role": "DIRECTOR"}}}


@pytest.mark.asyncio
async def test_me_is_null_for_anonymous_caller(execute, context_for) -> None:
    assert await execute(context_for(), "{ me { id } }") == {"data": {"me": None}}


@pytest.mark.asyncio
async def test_duplicate_email_reports_clean_validation_message(execute, context_for) -> None:
    await sign_up(execute, context_for(), "testuser1", "hello@robin.com")

    result = await execute(context_for(), SIGN_UP, {
        "username": "testuser2", "email": "hello@robin.com", "password": "secret-pass",
    })

    assert result["data"] is None
    [error] = result["errors"]
    assert error["message"] == "email must be unique"
    assert error["extensions"]["code"] == "BAD_USER_INPUT"


@pytest.mark.asyncio
async def test_invalid_email_is_rejected(execute, context_for) -> None:
    result = await execute(context_for(), SIGN_UP, {
        "username": "testuser1", "email": "not-an-email", "password": "secret-pass",
    })

    assert result["errors"][0]["message"] == "email must be a valid email address"


@pytest.mark.asyncio
async def test_short_password_is_rejected(execute, context_for) -> None:
    result = await execute(context_for(), SIGN_UP, {
        "username": "testuser1", "email": "hello@robin.com", "password": "short",
    })

    assert result["errors"][0]["message"] == "password must be at least 7 characters"


@pytest.mark.asyncio
async def test_sign_in(execute, context_for) -> None:
    await sign_up(execute, context_for(), "testuser3", "hello@peter.com", password="peter22")
    document = "mutation($e: String!, $p: String!) { signIn(email: $e, password: $p) { token user { username } } }"

    ok = await execute(context_for(), document, {"e": "hello@peter.com", "p": "peter22"})
    bad = await execute(context_for(), document, {"e": "hello@peter.com", "p": "wrong-password"})

    assert ok["data"]["signIn"]["user"] == {"username": "testuser3"}
    assert ok["data"]["signIn"]["token"]
    assert bad["data"] is None
    assert bad["errors"][0]["message"] == "Invalid email or password"
    assert bad["errors"][0]["extensions"]["code"] == "UNAUTHENTICATED"


@pytest.mark.asyncio
async def test_user_lookup_by_id(execute, context_for) -> None:
    payload = await sign_up(execute, context_for(), "testuser1", "hello@robin.com")
    user_id = payload["user"]["id"]

    found = await execute(context_for(), "query($id: ID!) { user(id: $id) { username } }", {"id": user_id})
    missing = await execute(context_for(), "{ user(id: 999) { username } }")

    assert found == {"data": {"user": {"username": "testuser1"}}}
    assert missing == {"data": {"user": None}}


@pytest.mark.asyncio
async def test_created_by_is_batched_across_students(execute, context_for, models, monkeypatch) -> None:
    director = await sign_up(execute, context_for(), "testuser1", "hello@robin.com", role="DIRECTOR")
    manager = await sign_up(execute, context_for(), "testuser2", "hello@david.com", role="MANAGER")
    for token, name in ((director["token"], "a"), (manager["token"], "b"), (director["token"], "c")):
        result = await execute(context_for(token), CREATE_STUDENT, {"input": student_input(name)})
        assert "errors" not in result, result

    calls = []
    find_by_ids = models.users.find_by_ids

    async def spy(ids):
        calls.append(sorted(ids))
        return await find_by_ids(ids)

    monkeypatch.setattr(models.users, "find_by_ids", spy)

    result = await execute(context_for(), "{ students { fullName createdBy { username } } }")

    assert result["data"]["students"] == [
        {"fullName": "a", "createdBy": {"username": "testuser1"}},
        {"fullName": "b", "createdBy": {"username": "testuser2"}},
        {"fullName": "c", "createdBy": {"username": "testuser1"}},
    ]
    assert calls == [[1, 2]]


@pytest.mark.asyncio
async def test_anonymous_student_has_no_author(execute, context_for) -> None:
    result = await execute(context_for(), CREATE_STUDENT, {"input": student_input("testuser5555")})

    assert result["data"]["createStudent"]["fullName"] == "testuser5555"
    assert result["data"]["createStudent"]["parentRelationship"] == "FATHER"
    assert result["data"]["createStudent"]["createdBy"] is None


@pytest_asyncio.fixture
async def pubsub():
    broadcaster = Broadcaster()
    await broadcaster.connect()
    try:
        yield broadcaster
    finally:
        await broadcaster.disconnect()


async def wait_for_subscriber(pubsub, channel=STUDENT_CREATED):
    for _ in range(100):
        if pubsub.subscriber_count(channel):
            return
        await asyncio.sleep(0.01)
    raise AssertionError("subscription never started")


@pytest.mark.asyncio
async def test_student_created_subscription(schema, execute, context_for, pubsub) -> None:
    success, events = await subscribe(
        schema,
        {"query": "subscription { studentCreated { fullName } }"},
        context_value=context_for(pubsub=pubsub),
    )
    assert success

    next_event = asyncio.ensure_future(events.__anext__())
    await wait_for_subscriber(pubsub)

    await execute(context_for(pubsub=pubsub), CREATE_STUDENT, {"input": student_input("testuser333")})
    event = await asyncio.wait_for(next_event, timeout=1)

    assert event.data == {"studentCreated": {"fullName": "testuser333"}}
    await events.aclose()


@pytest.mark.asyncio
async def test_own_students_subscription_filters_by_caller(schema, execute, context_for, pubsub) -> None:
    director = await sign_up(execute, context_for(), "testuser1", "hello@robin.com", role="DIRECTOR")
    manager = await sign_up(execute, context_for(), "testuser2", "hello@david.com", role="MANAGER")
    success, events = await subscribe(
        schema,
        {"query": "subscription { studentCreated(mine: true) { fullName createdBy { username } } }"},
        context_value=context_for(director["token"], pubsub=pubsub),
    )
    assert success

    next_event = asyncio.ensure_future(events.__anext__())
    await wait_for_subscriber(pubsub)
    await execute(context_for(manager["token"], pubsub=pubsub), CREATE_STUDENT, {"input": student_input("theirs")})
    await execute(context_for(director["token"], pubsub=pubsub), CREATE_STUDENT, {"input": student_input("mine")})
    event = await asyncio.wait_for(next_event, timeout=1)

    assert event.data == {"studentCreated": {"fullName": "mine", "createdBy": {"username": "testuser1"}}}
    await events.aclose()


@pytest.mark.asyncio
async def test_own_students_subscription_needs_identity(schema, context_for, pubsub) -> None:
    success, errors = await subscribe(
        schema,
        {"query": "subscription { studentCreated(mine: true) { fullName } }"},
        context_value=context_for(pubsub=pubsub),
        error_formatter=format_error,
    )

    assert not success
    assert errors[0]["extensions"]["code"] == "UNAUTHENTICATED"

from ariadne import MutationType, ObjectType, QueryType, SubscriptionType

from gateway.api.auth.user import authenticate_user
from gateway.api.errors import AuthenticationError, ModelValidationError
from gateway.api.pubsub import STUDENT_CREATED
from gateway.api.utils.logger import write_log

query = QueryType()
mutation = MutationType()
subscription = SubscriptionType()
student = ObjectType("Student")


def _as_id(value, field="id"):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ModelValidationError(f"{field} must be a numeric id", field=field) from None


@query.field("ping")
def resolve_ping(_, info):
    return "pong"


@query.field("me")
async def resolve_me(_, info):
    return await info.context.current_user()


@query.field("user")
async def resolve_user(_, info, id):
    return await info.context.loaders.user.load(_as_id(id))


@query.field("users")
async def resolve_users(_, info):
    users = await info.context.models.users.list()
    for user in users:
        info.context.loaders.user.prime(user.id, user)
    return users


@query.field("student")
async def resolve_student(_, info, id):
    return await info.context.models.students.get(_as_id(id))


@query.field("students")
async def resolve_students(_, info):
    return await info.context.models.students.list()


@student.field("createdBy")
async def resolve_student_created_by(obj, info):
    if obj.created_by_id is None:
        return None
    return await info.context.loaders.user.load(obj.created_by_id)


@mutation.field("signUp")
async def resolve_sign_up(_, info, username, email, password, role="TEACHER"):
    ctx = info.context
    user = await ctx.models.users.create(username=username, email=email, password=password, role=role)
    write_log({"event": "sign_up", "user_id": user.id, "role": user.role}, stream="auth")
    return {"token": ctx.login(user), "user": user}


@mutation.field("signIn")
async def resolve_sign_in(_, info, email, password):
    ctx = info.context
    write_log({"event": "sign_in_attempt", "email": email}, stream="auth")
    user = await authenticate_user(ctx.models, email, password)
    if user is None:
        write_log({"event": "sign_in_failed", "email": email}, stream="auth")
        raise AuthenticationError("Invalid email or password")
    return {"token": ctx.login(user), "user": user}


@mutation.field("createStudent")
async def resolve_create_student(_, info, input):
    ctx = info.context
    author = await ctx.current_user()
    created = await ctx.models.students.create(
        created_by_id=author.id if author is not None else None,
        **input,
    )
    write_log({"event": "student_created", "student_id": created.id,
               "user_id": author.id if author is not None else None})
    if ctx.pubsub is not None:
        # Only the id travels so any broadcast backend can carry it
        await ctx.pubsub.publish(STUDENT_CREATED, str(created.id))
    return created


async def _created_students(ctx, author_id):
    async for message in ctx.pubsub.subscribe(STUDENT_CREATED):
        created = await ctx.models.students.get(int(message))
        if created is None:
            continue
        if author_id is not None and created.created_by_id != author_id:
            continue
        yield created


@subscription.source("studentCreated")
async def student_created_source(_, info, mine=False):
    ctx = info.context
    if ctx.permissions is not None:
        await ctx.permissions.authorize(None, info, mine=mine)
    author_id = None
    if mine:
        user = await ctx.current_user()
        if user is None:
            raise AuthenticationError()
        author_id = user.id
    return _created_students(ctx, author_id)


@subscription.field("studentCreated")
def resolve_student_created(created, info, **_):
    return created

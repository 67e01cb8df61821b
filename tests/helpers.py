"""Test doubles shared across the suite."""

SECRET = "test-secret"


class FakeRequest:
    def __init__(self, headers=None, scope=None):
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.scope = scope or {"type": "http"}


class FakeUserStore:
    """Records every batch fetch; can be told to fail."""

    def __init__(self, rows, error=None):
        self.rows = {row.id: row for row in rows}
        self.calls = []
        self.error = error

    async def find_by_ids(self, ids):
        ids = sorted(ids)
        self.calls.append(ids)
        if self.error is not None:
            raise self.error
        return [self.rows[i] for i in ids if i in self.rows]

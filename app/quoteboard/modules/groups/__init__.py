"""
Groups module.

- Groups are named visibility scopes; "Everyone" is the default one
- Memberships are (user, group) pairs, added/removed idempotently by admins
- Every group-scoped read goes through app.quoteboard.access
"""

"""
Feature modules live under this package.

Each module owns its models, service functions and blueprint, while reusing the
platform primitives (auth, access filter, audit, DB session).
"""

"""
Locust scenario user classes.

- :mod:`.base`: the shared :class:`~.base.RunContext`, the request
  primitives, and the abstract ServeRest user
- :mod:`.product_flow`: create user, log in, create product
"""

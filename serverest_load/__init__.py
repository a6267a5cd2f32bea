"""
Load testing package for the ServeRest API (Locust-based).

Contains the Locust user class, helper utilities, a stage-driven load
shape and threshold gates that together load-test the user sign-up,
login and product-creation flow of https://serverest.dev.

Key Concepts Demonstrated:
- Ramp-up / hold / ramp-down stages declared in YAML
- Threshold expressions (``rate<0.01``, ``p(95)<3000``) as pass/fail
  criteria, both in-process and against Locust's CSV output
- Non-fatal checks and a custom login-latency trend
- Data-driven requests from a shared read-only product fixture
"""

"""Service layer for business logic and cross-cutting concerns."""

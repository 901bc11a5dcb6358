"""Service layer — business logic called by API routes."""

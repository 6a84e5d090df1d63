"""HTTP routers exposing TaskService operations to the presentation layer."""

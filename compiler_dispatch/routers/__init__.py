"""HTTP routers for the compiler dispatch API."""

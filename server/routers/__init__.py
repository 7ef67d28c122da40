"""HTTP routers for the Daketi server."""

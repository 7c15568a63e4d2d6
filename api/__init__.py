"""HTTP routers for meals and meal photos."""

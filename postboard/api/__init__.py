"""HTTP surface: the FastAPI app and the GraphQL schema it serves."""

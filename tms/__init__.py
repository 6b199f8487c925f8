"""Transportation management service: GraphQL API over shipments and users."""

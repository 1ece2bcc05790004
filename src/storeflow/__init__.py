"""storeflow — multi-tenant order fulfillment core."""
